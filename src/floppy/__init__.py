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

"""Swappable asynchronous filesystem backends."""

from __future__ import annotations

from .errors import (
    AlreadyExistsError,
    BackendError,
    DirectoryNotEmptyError,
    ErrorKind,
    FloppyError,
    InvalidDataError,
    InvalidInputError,
    IsDirectoryError,
    NotDirectoryError,
    NotFoundError,
    PermissionDeniedError,
    TooManyLinksError,
)
from .filesystem import (
    DirEntry,
    File,
    Filesystem,
    FilesystemConfig,
    FileType,
    HostFilesystem,
    MemoryFilesystem,
    Metadata,
    OpenOptions,
    ReadDir,
    SeekFrom,
    SyncFile,
    create_filesystem,
)

__all__ = [
    "AlreadyExistsError",
    "BackendError",
    "DirEntry",
    "DirectoryNotEmptyError",
    "ErrorKind",
    "File",
    "FileType",
    "Filesystem",
    "FilesystemConfig",
    "FloppyError",
    "HostFilesystem",
    "InvalidDataError",
    "InvalidInputError",
    "IsDirectoryError",
    "MemoryFilesystem",
    "Metadata",
    "NotDirectoryError",
    "NotFoundError",
    "OpenOptions",
    "PermissionDeniedError",
    "ReadDir",
    "SeekFrom",
    "SyncFile",
    "TooManyLinksError",
    "create_filesystem",
]
