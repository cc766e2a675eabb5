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

"""Value types used by the ``Filesystem`` protocol.

All result types are immutable frozen dataclasses. They are produced
identically by the in-memory and the host backend, so assertions written
against one hold against the other.

- **Metadata types**: ``Metadata``, ``DirEntry``, ``FileType``
- **Handle types**: ``OpenOptions``, ``SeekFrom``
- **Configuration**: ``FilesystemConfig``

Constants:

- ``DEFAULT_MAX_SYMLINK_DEPTH``: Symlink substitutions allowed per resolution (40)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Final

from ..clock import SYSTEM_CLOCK, WallClock
from ..errors import InvalidInputError

DEFAULT_MAX_SYMLINK_DEPTH: Final[int] = 40


class FileType(Enum):
    """Kind of a filesystem node."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


class SeekFrom(IntEnum):
    """Reference point for ``File.seek()``; values match ``os.SEEK_*``."""

    START = 0
    CURRENT = 1
    END = 2


# ---------------------------------------------------------------------------
# Metadata Types
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Metadata:
    """Metadata for a file, directory or symlink.

    Returned by ``Filesystem.metadata()``, ``Filesystem.symlink_metadata()``
    and ``File.metadata()``.

    Attributes:
        file_type: Kind of the node.
        size: Content length in bytes. Directories report 0; symlinks report
            the length of their target in UTF-8 bytes.
        modified: Last modification marker (UTC).
        created: Creation or status-change marker (UTC).
        ino: Stable node identifier within the backend.

    Example::

        meta = await fs.metadata("/src/main.py")
        if meta.is_file and meta.size > 0:
            data = await fs.read("/src/main.py")
    """

    file_type: FileType
    size: int
    modified: datetime
    created: datetime
    ino: int

    @property
    def is_file(self) -> bool:
        """True if this is a regular file."""
        return self.file_type is FileType.FILE

    @property
    def is_dir(self) -> bool:
        """True if this is a directory."""
        return self.file_type is FileType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        """True if this is a symlink (only from ``symlink_metadata``)."""
        return self.file_type is FileType.SYMLINK


@dataclass(slots=True, frozen=True)
class DirEntry:
    """Directory listing entry produced by ``ReadDir``.

    Attributes:
        name: Entry name without path (e.g., "main.py").
        path: Requested directory path joined with ``name``.
        file_type: Kind of the entry; symlinks are not followed.
        ino: Stable node identifier within the backend.
    """

    name: str
    path: str
    file_type: FileType
    ino: int


# ---------------------------------------------------------------------------
# Handle Types
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class OpenOptions:
    """Access mode requested from ``Filesystem.open()``.

    Attributes:
        read: Allow reads.
        write: Allow writes at the cursor.
        append: Every write goes to the current end of the file. Implies write.
        truncate: Empty an existing file on open. Requires ``write``.
        create: Create the file if it is missing.
        exclusive: Create the file and fail if the name already exists.

    Example::

        options = OpenOptions(write=True, create=True, truncate=True)
        async with await fs.open("/out.bin", options) as handle:
            await handle.write(b"payload")
    """

    read: bool = False
    write: bool = False
    append: bool = False
    truncate: bool = False
    create: bool = False
    exclusive: bool = False

    @classmethod
    def for_read(cls) -> OpenOptions:
        """Read-only access to an existing file."""
        return cls(read=True)

    @classmethod
    def for_write(cls) -> OpenOptions:
        """Create or truncate for writing."""
        return cls(write=True, create=True, truncate=True)

    @classmethod
    def for_append(cls) -> OpenOptions:
        """Create if missing and append to the end."""
        return cls(append=True, create=True)

    @property
    def readable(self) -> bool:
        return self.read

    @property
    def writable(self) -> bool:
        return self.write or self.append

    @property
    def creates(self) -> bool:
        return self.create or self.exclusive

    def validate(self) -> None:
        """Reject inconsistent combinations.

        Raises:
            InvalidInputError: No access mode, ``truncate`` without ``write``
                or with ``append``, or ``create``/``exclusive`` without write
                access.
        """
        if not (self.read or self.writable):
            msg = "Open options request neither read nor write access"
            raise InvalidInputError(msg)
        if self.truncate and (self.append or not self.write):
            msg = "truncate requires write access and cannot be combined with append"
            raise InvalidInputError(msg)
        if self.creates and not self.writable:
            msg = "create and exclusive require write or append access"
            raise InvalidInputError(msg)

    def os_flags(self) -> int:
        """Translate to ``os.open`` flags for the host backend."""
        if self.read and self.writable:
            flags = os.O_RDWR
        elif self.writable:
            flags = os.O_WRONLY
        else:
            flags = os.O_RDONLY
        if self.append:
            flags |= os.O_APPEND
        if self.truncate:
            flags |= os.O_TRUNC
        if self.exclusive:
            flags |= os.O_CREAT | os.O_EXCL
        elif self.create:
            flags |= os.O_CREAT
        return flags | getattr(os, "O_CLOEXEC", 0)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FilesystemConfig:
    """Configuration shared by both backends.

    Attributes:
        read_only: Reject every mutating operation with
            ``PermissionDeniedError``. Used to simulate permission failures
            on the in-memory backend.
        max_symlink_depth: Symlink substitutions allowed while resolving one
            path before ``TooManyLinksError``. In-memory backend only; the
            host kernel applies its own limit.
        clock: Source of the synthetic timestamps of the in-memory backend.
    """

    read_only: bool = False
    max_symlink_depth: int = DEFAULT_MAX_SYMLINK_DEPTH
    clock: WallClock = field(default=SYSTEM_CLOCK, compare=False)

    def __post_init__(self) -> None:
        if self.max_symlink_depth < 1:
            msg = "max_symlink_depth must be at least 1"
            raise ValueError(msg)


__all__ = [
    "DEFAULT_MAX_SYMLINK_DEPTH",
    "DirEntry",
    "FileType",
    "FilesystemConfig",
    "Metadata",
    "OpenOptions",
    "SeekFrom",
]
