# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Asynchronous filesystem protocol and its two backends.

This module provides the `Filesystem` protocol that abstracts over storage
backends so application code can perform file operations without coupling
to a specific implementation.

Example usage::

    from floppy.filesystem import Filesystem, create_filesystem

    async def save(fs: Filesystem, text: str) -> None:
        await fs.create_dir_all("/out")
        await fs.write("/out/report.txt", text)

    fs = create_filesystem("memory")   # tests
    fs = create_filesystem("host")     # production

Backends:

- ``MemoryFilesystem``: In-process virtual filesystem
- ``HostFilesystem``: Host operating system, optionally scoped under a root

``SyncFile`` exposes an in-memory handle through the blocking ``io``
protocol for libraries that cannot await.
"""

from __future__ import annotations

from ._arena import ArenaUsage
from ._content import MemoryFile
from ._factory import Backend, create_filesystem
from ._host import HostFile, HostFilesystem, HostReadDir
from ._memory import MemoryFilesystem, MemoryReadDir
from ._path import StrPath
from ._protocol import File, Filesystem, ReadDir
from ._sync import SyncFile
from ._types import (
    DEFAULT_MAX_SYMLINK_DEPTH,
    DirEntry,
    FilesystemConfig,
    FileType,
    Metadata,
    OpenOptions,
    SeekFrom,
)

__all__ = [
    "DEFAULT_MAX_SYMLINK_DEPTH",
    "ArenaUsage",
    "Backend",
    "DirEntry",
    "File",
    "FileType",
    "Filesystem",
    "FilesystemConfig",
    "HostFile",
    "HostFilesystem",
    "HostReadDir",
    "MemoryFile",
    "MemoryFilesystem",
    "MemoryReadDir",
    "Metadata",
    "OpenOptions",
    "ReadDir",
    "SeekFrom",
    "StrPath",
    "SyncFile",
    "create_filesystem",
]
