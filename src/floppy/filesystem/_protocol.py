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

"""Filesystem capability contract.

This module provides the ``Filesystem`` protocol implemented by exactly two
backends, selected at construction time:

- ``MemoryFilesystem``: in-process virtual filesystem for tests
- ``HostFilesystem``: delegation onto the host operating system

Callers hold a ``Filesystem`` and never a concrete backend, so production
code runs against the test double unchanged. Both backends raise the same
``floppy.errors`` class for the same logical condition.

Every operation is a coroutine and suspends at least once, at entry, before
doing any work.
"""

from __future__ import annotations

from typing import Protocol, Self, runtime_checkable

from ._path import StrPath
from ._types import DirEntry, Metadata, OpenOptions, SeekFrom


@runtime_checkable
class File(Protocol):
    """Open file handle with its own cursor.

    Handles keep their content alive: a file removed from the tree while a
    handle is open stays readable and writable through that handle until it
    is closed.

    Example::

        async with await fs.open("/log.txt", OpenOptions.for_append()) as f:
            await f.write(b"started\\n")
    """

    @property
    def path(self) -> str:
        """Path the handle was opened with (display form)."""
        ...

    @property
    def options(self) -> OpenOptions:
        """Access mode of the handle."""
        ...

    @property
    def closed(self) -> bool:
        """True once ``close()`` has been called."""
        ...

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes from the cursor.

        Args:
            size: Maximum bytes to read. -1 means read to EOF.

        Returns:
            Bytes read. Empty bytes at EOF; EOF is never an error.

        Raises:
            InvalidInputError: Handle is closed or not readable.
        """
        ...

    async def write(self, data: bytes) -> int:
        """Write ``data`` at the cursor, extending the file with zero bytes.

        Returns:
            Number of bytes written (always ``len(data)``).

        Raises:
            InvalidInputError: Handle is closed or not writable.
        """
        ...

    async def seek(self, offset: int, whence: SeekFrom = SeekFrom.START) -> int:
        """Move the cursor and return the new absolute position.

        Raises:
            InvalidInputError: The resulting position would be negative.
        """
        ...

    def tell(self) -> int:
        """Current cursor position."""
        ...

    async def flush(self) -> None:
        """Flush buffered writes (no-op for unbuffered backends)."""
        ...

    async def sync_all(self) -> None:
        """Persist content and metadata."""
        ...

    async def sync_data(self) -> None:
        """Persist content; metadata may lag behind."""
        ...

    async def set_len(self, size: int) -> None:
        """Truncate or zero-extend the file to ``size`` bytes."""
        ...

    async def metadata(self) -> Metadata:
        """Metadata of the open file, even if it was removed from the tree."""
        ...

    async def try_clone(self) -> Self:
        """Open a second handle on the same content with its own cursor."""
        ...

    async def close(self) -> None:
        """Release the handle. Closing twice is a no-op."""
        ...

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager, closing the handle."""
        ...


@runtime_checkable
class ReadDir(Protocol):
    """Lazy, finite, non-restartable sequence of directory entries.

    The listing is a snapshot taken when ``read_dir()`` was called; later
    changes to the directory are not reflected. Once exhausted the sequence
    stays exhausted.

    Example::

        async for entry in await fs.read_dir("/src"):
            print(entry.name, entry.file_type)
    """

    async def next_entry(self) -> DirEntry | None:
        """Return the next entry, or ``None`` when exhausted."""
        ...

    def __aiter__(self) -> Self:
        """Return the iterator itself."""
        ...

    async def __anext__(self) -> DirEntry:
        """Return the next entry or raise ``StopAsyncIteration``."""
        ...


@runtime_checkable
class Filesystem(Protocol):
    """Uniform asynchronous filesystem contract.

    Paths are ``/``-separated strings (or ``os.PathLike``). ``.`` and ``..``
    are resolved lexically and ``..`` at the root is a no-op.

    Error kinds (see ``floppy.errors``) are part of the contract: for the
    same logical condition both backends raise the same class.

    Example::

        async def save(fs: Filesystem) -> str:
            await fs.create_dir_all("/a/b/c")
            await fs.write("/a/b/c/d.txt", "hi")
            return await fs.read_to_string("/a/b/c/d.txt")
    """

    # --- Directory Operations ---

    async def create_dir(self, path: StrPath) -> None:
        """Create one directory.

        Raises:
            AlreadyExistsError: The name exists.
            NotFoundError: The parent is missing.
            NotDirectoryError: A parent component is not a directory.
        """
        ...

    async def create_dir_all(self, path: StrPath) -> None:
        """Create a directory and every missing ancestor.

        Idempotent when the directory exists. Not atomic: ancestors created
        before a failure remain.

        Raises:
            NotDirectoryError: An existing component is not a directory.
        """
        ...

    async def remove_dir(self, path: StrPath) -> None:
        """Remove an empty directory.

        Raises:
            NotFoundError: Path does not exist.
            NotDirectoryError: Path is a file or symlink.
            DirectoryNotEmptyError: Directory has children.
            InvalidInputError: Path is the root.
        """
        ...

    async def remove_dir_all(self, path: StrPath) -> None:
        """Remove a directory and everything below it.

        Files still open elsewhere stay readable through their handles. A
        symlink is removed without touching its target.

        Raises:
            NotFoundError: Path does not exist.
            NotDirectoryError: Path is a file.
            InvalidInputError: Path is the root.
        """
        ...

    async def read_dir(self, path: StrPath) -> ReadDir:
        """Snapshot the entries of a directory.

        Raises:
            NotFoundError: Path does not exist.
            NotDirectoryError: Path is not a directory.
        """
        ...

    # --- File Operations ---

    async def open(self, path: StrPath, options: OpenOptions | None = None) -> File:
        """Open a handle. ``options`` defaults to ``OpenOptions.for_read()``.

        Raises:
            InvalidInputError: Inconsistent options.
            NotFoundError: Missing file without create, or missing parent.
            AlreadyExistsError: ``exclusive`` and the name exists.
            IsDirectoryError: Path is a directory.
            PermissionDeniedError: Write access on a read-only filesystem.
        """
        ...

    async def read(self, path: StrPath) -> bytes:
        """Read a whole file.

        Raises:
            NotFoundError: Path does not exist.
            IsDirectoryError: Path is a directory.
        """
        ...

    async def read_to_string(self, path: StrPath) -> str:
        """Read a whole file as UTF-8 text.

        Raises:
            InvalidDataError: Content is not valid UTF-8.
        """
        ...

    async def write(self, path: StrPath, data: bytes | str) -> None:
        """Create or truncate a file and write ``data`` (``str`` as UTF-8).

        Raises:
            NotFoundError: Parent directory is missing.
            IsDirectoryError: Path is a directory.
        """
        ...

    async def remove_file(self, path: StrPath) -> None:
        """Remove a file or symlink.

        Open handles keep the content readable until they close.

        Raises:
            NotFoundError: Path does not exist.
            IsDirectoryError: Path is a directory.
        """
        ...

    async def copy(self, src: StrPath, dst: StrPath) -> int:
        """Copy file content from ``src`` to ``dst`` and return the byte count.

        Raises:
            IsDirectoryError: Either side is a directory.
            InvalidInputError: Both paths name the same file.
        """
        ...

    async def rename(self, src: StrPath, dst: StrPath) -> None:
        """Atomically move ``src`` to ``dst``.

        A file or symlink may replace a file or symlink; a directory may
        replace an empty directory.

        Raises:
            NotFoundError: ``src`` or ``dst``'s parent is missing.
            InvalidInputError: ``dst`` is inside ``src``, or either is root.
            AlreadyExistsError: ``dst`` exists with an incompatible kind or
                is a non-empty directory.
        """
        ...

    # --- Links ---

    async def symlink(self, target: StrPath, link: StrPath) -> None:
        """Create ``link`` pointing at ``target`` (which may not exist).

        Raises:
            AlreadyExistsError: ``link`` exists.
        """
        ...

    async def read_link(self, path: StrPath) -> str:
        """Return the target stored in a symlink.

        Raises:
            InvalidInputError: Path is not a symlink.
        """
        ...

    async def canonicalize(self, path: StrPath) -> str:
        """Absolute path with every symlink resolved.

        Raises:
            NotFoundError: Path does not exist.
            TooManyLinksError: Symlink cycle.
        """
        ...

    # --- Metadata ---

    async def metadata(self, path: StrPath) -> Metadata:
        """Metadata of the target, following symlinks."""
        ...

    async def symlink_metadata(self, path: StrPath) -> Metadata:
        """Metadata of the path itself, without following a final symlink."""
        ...

    async def exists(self, path: StrPath) -> bool:
        """True if the path resolves; dangling symlinks report False.

        Raises:
            TooManyLinksError: Symlink cycle.
        """
        ...

    @property
    def root(self) -> str:
        """Root the backend addresses ("/" for the in-memory backend)."""
        ...

    @property
    def read_only(self) -> bool:
        """Whether mutating operations raise ``PermissionDeniedError``."""
        ...


__all__ = [
    "File",
    "Filesystem",
    "ReadDir",
]
