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

"""Host filesystem backend.

This module provides a ``Filesystem`` implementation that delegates to the
host operating system, optionally scoped under a root directory.

Example usage::

    from floppy.filesystem import HostFilesystem

    # Paths are interpreted under the root
    fs = HostFilesystem(_root="/path/to/workspace")
    await fs.write("/src/main.py", "print('hello')")
    assert await fs.read_to_string("src/main.py") == "print('hello')"

With a root, absolute paths are re-rooted and ``..`` clamps at the root. A
path whose real location escapes the root (through a symlink) raises
``PermissionDeniedError``. Absolute symlink targets are stored re-rooted
and translated back by ``read_link()``.

Native calls run on a worker thread through ``asyncio.to_thread``. Native
failures are translated with ``floppy.errors.from_os_error``; where the host
kernel disagrees with the in-memory backend (``create_dir_all`` over a file,
replacing rules of ``rename``, opening a directory) the condition is checked
first so both backends raise the same error class.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import stat
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Self

from ..errors import (
    AlreadyExistsError,
    FloppyError,
    InvalidDataError,
    InvalidInputError,
    IsDirectoryError,
    NotDirectoryError,
    PermissionDeniedError,
    from_os_error,
)
from ..logging import StructuredLogger, get_logger
from ._path import SEPARATOR, ParsedPath, StrPath, join_display, parse_path
from ._types import (
    DirEntry,
    FilesystemConfig,
    FileType,
    Metadata,
    OpenOptions,
    SeekFrom,
)

_logger: StructuredLogger = get_logger(__name__, context={"backend": "host"})

_CHUNK_SIZE = 64 * 1024


async def _offload[**P, R](
    display: str,
    func: Callable[P, R],
    /,
    *args: P.args,
    **kwargs: P.kwargs,
) -> R:
    """Run ``func`` on a worker thread and translate native failures."""
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except FloppyError:
        raise
    except OSError as error:
        _logger.debug(
            "host operation failed",
            event="fs.host.error",
            context={
                "path": display,
                "operation": getattr(func, "__name__", repr(func)),
                "errno": error.errno,
            },
        )
        raise from_os_error(error, display) from error


def _metadata_from_stat(result: os.stat_result) -> Metadata:
    if stat.S_ISDIR(result.st_mode):
        file_type, size = FileType.DIRECTORY, 0
    elif stat.S_ISLNK(result.st_mode):
        file_type, size = FileType.SYMLINK, result.st_size
    else:
        file_type, size = FileType.FILE, result.st_size
    return Metadata(
        file_type=file_type,
        size=size,
        modified=datetime.fromtimestamp(result.st_mtime, UTC),
        created=datetime.fromtimestamp(result.st_ctime, UTC),
        ino=result.st_ino,
    )


def _entry_type(entry: os.DirEntry[str]) -> FileType:
    if entry.is_symlink():
        return FileType.SYMLINK
    if entry.is_dir(follow_symlinks=False):
        return FileType.DIRECTORY
    return FileType.FILE


def _is_within(root: str, candidate: str) -> bool:
    return os.path.commonpath([root, candidate]) == root


# ---------------------------------------------------------------------------
# Directory listing
# ---------------------------------------------------------------------------


class HostReadDir:
    """Directory listing over a snapshot taken by ``read_dir()``."""

    __slots__ = ("_entries", "_index")

    def __init__(self, entries: Sequence[DirEntry]) -> None:
        self._entries = tuple(entries)
        self._index = 0

    async def next_entry(self) -> DirEntry | None:
        await asyncio.sleep(0)
        if self._index >= len(self._entries):
            return None
        entry = self._entries[self._index]
        self._index += 1
        return entry

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> DirEntry:
        entry = await self.next_entry()
        if entry is None:
            raise StopAsyncIteration
        return entry


# ---------------------------------------------------------------------------
# File handle
# ---------------------------------------------------------------------------


class HostFile:
    """Open host file with a cursor of its own.

    Reads and writes use ``os.pread``/``os.pwrite`` at the handle's cursor,
    so clones made with ``try_clone()`` move independently even though they
    share the underlying open file description.
    """

    __slots__ = ("_closed", "_cursor", "_fd", "_options", "_path")

    def __init__(
        self, fd: int, options: OpenOptions, path: str, *, cursor: int = 0
    ) -> None:
        self._fd = fd
        self._options = options
        self._path = path
        self._cursor = cursor
        self._closed = False

    def __repr__(self) -> str:
        return f"HostFile(path={self._path!r}, fd={self._fd}, closed={self._closed})"

    @property
    def path(self) -> str:
        return self._path

    @property
    def options(self) -> OpenOptions:
        return self._options

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            msg = "I/O operation on closed file"
            raise InvalidInputError(msg)

    def _check_writable(self) -> None:
        self._check_open()
        if not self._options.writable:
            msg = f"File not opened for writing: {self._path}"
            raise InvalidInputError(msg)

    def _read(self, size: int) -> bytes:
        self._check_open()
        if not self._options.readable:
            msg = f"File not opened for reading: {self._path}"
            raise InvalidInputError(msg)
        if size >= 0:
            data = os.pread(self._fd, size, self._cursor)
        else:
            chunks: list[bytes] = []
            offset = self._cursor
            while chunk := os.pread(self._fd, _CHUNK_SIZE, offset):
                chunks.append(chunk)
                offset += len(chunk)
            data = b"".join(chunks)
        self._cursor += len(data)
        return data

    def _write(self, data: bytes) -> int:
        self._check_writable()
        view = memoryview(data)
        if self._options.append:
            while view:
                view = view[os.write(self._fd, view) :]
            self._cursor = os.fstat(self._fd).st_size
            return len(data)
        while view:
            written = os.pwrite(self._fd, view, self._cursor)
            self._cursor += written
            view = view[written:]
        return len(data)

    def _seek(self, offset: int, whence: int) -> int:
        self._check_open()
        try:
            origin = SeekFrom(whence)
        except ValueError:
            msg = f"Invalid whence value: {whence}"
            raise InvalidInputError(msg) from None
        if origin is SeekFrom.START:
            base = 0
        elif origin is SeekFrom.CURRENT:
            base = self._cursor
        else:
            base = os.fstat(self._fd).st_size
        position = base + offset
        if position < 0:
            msg = f"Cannot seek to negative position {position}: {self._path}"
            raise InvalidInputError(msg)
        self._cursor = position
        return position

    def _set_len(self, size: int) -> None:
        self._check_writable()
        if size < 0:
            msg = f"Invalid file length {size}: {self._path}"
            raise InvalidInputError(msg)
        os.ftruncate(self._fd, size)

    def _sync(self) -> None:
        self._check_open()
        os.fsync(self._fd)

    def _sync_data(self) -> None:
        self._check_open()
        fdatasync = getattr(os, "fdatasync", os.fsync)
        fdatasync(self._fd)

    def _metadata(self) -> Metadata:
        self._check_open()
        return _metadata_from_stat(os.fstat(self._fd))

    def _clone(self) -> HostFile:
        self._check_open()
        return HostFile(
            os.dup(self._fd), self._options, self._path, cursor=self._cursor
        )

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        os.close(self._fd)

    async def read(self, size: int = -1) -> bytes:
        return await _offload(self._path, self._read, size)

    async def write(self, data: bytes) -> int:
        return await _offload(self._path, self._write, bytes(data))

    async def seek(self, offset: int, whence: SeekFrom = SeekFrom.START) -> int:
        return await _offload(self._path, self._seek, offset, whence)

    def tell(self) -> int:
        self._check_open()
        return self._cursor

    async def flush(self) -> None:
        await asyncio.sleep(0)
        self._check_open()

    async def sync_all(self) -> None:
        await _offload(self._path, self._sync)

    async def sync_data(self) -> None:
        await _offload(self._path, self._sync_data)

    async def set_len(self, size: int) -> None:
        await _offload(self._path, self._set_len, size)

    async def metadata(self) -> Metadata:
        return await _offload(self._path, self._metadata)

    async def try_clone(self) -> Self:
        clone = await _offload(self._path, self._clone)
        assert isinstance(clone, type(self))  # nosec: B101
        return clone

    async def close(self) -> None:
        await _offload(self._path, self._close)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# HostFilesystem Implementation
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class HostFilesystem:
    """Filesystem backed by the host operating system.

    Attributes:
        _root: Directory every path is interpreted under. ``None`` passes
            paths through to the OS (relative paths use the process working
            directory).
        _config: Backend configuration. Only ``read_only`` applies; the host
            kernel enforces its own symlink limit.
    """

    _root: str | None = None
    _config: FilesystemConfig = field(default_factory=FilesystemConfig)
    _real_root: str | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        if self._root is not None:
            self._real_root = os.path.realpath(self._root)

    @property
    def root(self) -> str:
        """Host directory the backend addresses."""
        return self._real_root if self._real_root is not None else SEPARATOR

    @property
    def read_only(self) -> bool:
        return self._config.read_only

    @property
    def config(self) -> FilesystemConfig:
        return self._config

    # --- Path mapping ---

    def _parse(self, path: StrPath) -> ParsedPath:
        """Parse a caller path.

        Without a root, a relative path is anchored at the working directory
        first, so a leading ``..`` climbs above it as it would on the host.
        """
        parsed = parse_path(path)
        if self._real_root is None and not parsed.absolute:
            return parse_path(os.path.join(os.getcwd(), os.fspath(path)))
        return parsed

    def _host_path(self, path: ParsedPath, *, follow_final: bool = True) -> str:
        """Map a parsed path onto the host.

        Raises:
            PermissionDeniedError: The real location escapes the root.
        """
        root = self._real_root
        if root is None:
            return path.display
        candidate = os.path.join(root, *path.components)
        checked = candidate if follow_final else os.path.dirname(candidate)
        if path.components and not _is_within(root, os.path.realpath(checked)):
            msg = f"Path escapes root directory: {path.display}"
            raise PermissionDeniedError(msg)
        return candidate

    def _check_writable(self, path: ParsedPath) -> None:
        if self._config.read_only:
            msg = f"Filesystem is read-only: {path.display}"
            raise PermissionDeniedError(msg)

    def _store_target(self, target: str) -> str:
        if self._real_root is None or not target.startswith(SEPARATOR):
            return target
        components = parse_path(target).components
        return os.path.join(self._real_root, *components)

    def _caller_path(self, host_path: str) -> str:
        """Translate an absolute host path back into the caller's namespace."""
        root = self._real_root
        if root is None or not _is_within(root, host_path):
            return host_path
        relative = os.path.relpath(host_path, root)
        return SEPARATOR if relative == "." else SEPARATOR + relative

    # --- Directory Operations ---

    def _create_dir(self, path: ParsedPath) -> None:
        self._check_writable(path)
        os.mkdir(self._host_path(path))

    async def create_dir(self, path: StrPath) -> None:
        parsed = self._parse(path)
        await _offload(parsed.display, self._create_dir, parsed)

    def _create_dir_all(self, path: ParsedPath) -> None:
        self._check_writable(path)
        for depth in range(1, len(path.components) + 1):
            prefix = ParsedPath(path.components[:depth], path.absolute)
            target = self._host_path(prefix)
            try:
                os.mkdir(target)
            except FileExistsError:
                if not os.path.isdir(target):
                    msg = f"Not a directory: {prefix.display}"
                    raise NotDirectoryError(msg) from None

    async def create_dir_all(self, path: StrPath) -> None:
        parsed = self._parse(path)
        await _offload(parsed.display, self._create_dir_all, parsed)

    def _remove_dir(self, path: ParsedPath) -> None:
        self._check_writable(path)
        if path.is_root:
            msg = "Cannot remove the root directory"
            raise InvalidInputError(msg)
        os.rmdir(self._host_path(path, follow_final=False))

    async def remove_dir(self, path: StrPath) -> None:
        parsed = self._parse(path)
        await _offload(parsed.display, self._remove_dir, parsed)

    def _remove_dir_all(self, path: ParsedPath) -> None:
        self._check_writable(path)
        if path.is_root:
            msg = "Cannot remove the root directory"
            raise InvalidInputError(msg)
        target = self._host_path(path, follow_final=False)
        mode = os.lstat(target).st_mode
        if stat.S_ISLNK(mode):
            os.unlink(target)
        elif not stat.S_ISDIR(mode):
            msg = f"Not a directory: {path.display}"
            raise NotDirectoryError(msg)
        else:
            shutil.rmtree(target)

    async def remove_dir_all(self, path: StrPath) -> None:
        parsed = self._parse(path)
        await _offload(parsed.display, self._remove_dir_all, parsed)

    def _read_dir(self, path: ParsedPath) -> list[DirEntry]:
        with os.scandir(self._host_path(path)) as entries:
            return [
                DirEntry(
                    name=entry.name,
                    path=join_display(path.display, entry.name),
                    file_type=_entry_type(entry),
                    ino=entry.inode(),
                )
                for entry in entries
            ]

    async def read_dir(self, path: StrPath) -> HostReadDir:
        parsed = self._parse(path)
        return HostReadDir(await _offload(parsed.display, self._read_dir, parsed))

    # --- File Operations ---

    def _open(self, path: ParsedPath, options: OpenOptions) -> HostFile:
        options.validate()
        if options.writable:
            self._check_writable(path)
        fd = os.open(self._host_path(path), options.os_flags(), 0o666)
        try:
            if stat.S_ISDIR(os.fstat(fd).st_mode):
                msg = f"Is a directory: {path.display}"
                raise IsDirectoryError(msg)
        except BaseException:
            os.close(fd)
            raise
        return HostFile(fd, options, path.display)

    async def open(self, path: StrPath, options: OpenOptions | None = None) -> HostFile:
        parsed = self._parse(path)
        return await _offload(
            parsed.display, self._open, parsed, options or OpenOptions.for_read()
        )

    def _read(self, path: ParsedPath) -> bytes:
        return Path(self._host_path(path)).read_bytes()

    async def read(self, path: StrPath) -> bytes:
        parsed = self._parse(path)
        return await _offload(parsed.display, self._read, parsed)

    async def read_to_string(self, path: StrPath) -> str:
        data = await self.read(path)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as error:
            msg = f"File is not valid UTF-8: {os.fspath(path)}"
            raise InvalidDataError(msg) from error

    def _write(self, path: ParsedPath, data: bytes) -> None:
        self._check_writable(path)
        _ = Path(self._host_path(path)).write_bytes(data)

    async def write(self, path: StrPath, data: bytes | str) -> None:
        parsed = self._parse(path)
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        await _offload(parsed.display, self._write, parsed, payload)
        _logger.debug(
            "wrote file",
            event="fs.write",
            context={"path": parsed.display, "size": len(payload)},
        )

    def _remove_file(self, path: ParsedPath) -> None:
        self._check_writable(path)
        if path.is_root:
            msg = f"Is a directory: {path.display}"
            raise IsDirectoryError(msg)
        os.unlink(self._host_path(path, follow_final=False))

    async def remove_file(self, path: StrPath) -> None:
        parsed = self._parse(path)
        await _offload(parsed.display, self._remove_file, parsed)

    def _copy(self, src: ParsedPath, dst: ParsedPath) -> int:
        self._check_writable(dst)
        source = self._host_path(src)
        target = self._host_path(dst)
        if stat.S_ISDIR(os.stat(source).st_mode):
            msg = f"Is a directory: {src.display}"
            raise IsDirectoryError(msg)
        if os.path.isdir(target):
            msg = f"Is a directory: {dst.display}"
            raise IsDirectoryError(msg)
        if os.path.exists(target) and os.path.samefile(source, target):
            msg = f"Source and destination are the same file: {dst.display}"
            raise InvalidInputError(msg)
        _ = shutil.copyfile(source, target)
        return os.stat(target).st_size

    async def copy(self, src: StrPath, dst: StrPath) -> int:
        parsed_src, parsed_dst = self._parse(src), self._parse(dst)
        return await _offload(parsed_src.display, self._copy, parsed_src, parsed_dst)

    def _rename(self, src: ParsedPath, dst: ParsedPath) -> None:
        self._check_writable(dst)
        if src.is_root or dst.is_root:
            msg = "Cannot rename to or from the root directory"
            raise InvalidInputError(msg)
        source = self._host_path(src, follow_final=False)
        target = self._host_path(dst, follow_final=False)
        source_stat = os.lstat(source)
        target_parent = os.stat(os.path.dirname(target))
        if not stat.S_ISDIR(target_parent.st_mode):
            msg = f"Not a directory: {dst.parent.display}"
            raise NotDirectoryError(msg)
        try:
            target_stat: os.stat_result | None = os.lstat(target)
        except FileNotFoundError:
            target_stat = None
        if target_stat is not None and os.path.samestat(source_stat, target_stat):
            return
        source_is_dir = stat.S_ISDIR(source_stat.st_mode)
        if source_is_dir and _is_within(
            os.path.realpath(source), os.path.realpath(os.path.dirname(target))
        ):
            msg = (
                "Cannot move a directory inside itself: "
                f"{src.display} -> {dst.display}"
            )
            raise InvalidInputError(msg)
        if target_stat is not None:
            target_is_dir = stat.S_ISDIR(target_stat.st_mode)
            replaceable = (
                target_is_dir and not os.listdir(target)
                if source_is_dir
                else not target_is_dir
            )
            if not replaceable:
                msg = f"Destination exists: {dst.display}"
                raise AlreadyExistsError(msg)
        os.rename(source, target)

    async def rename(self, src: StrPath, dst: StrPath) -> None:
        parsed_src, parsed_dst = self._parse(src), self._parse(dst)
        await _offload(parsed_src.display, self._rename, parsed_src, parsed_dst)
        _logger.debug(
            "renamed",
            event="fs.rename",
            context={"src": parsed_src.display, "dst": parsed_dst.display},
        )

    # --- Links ---

    def _symlink(self, target: str, link: ParsedPath) -> None:
        self._check_writable(link)
        _ = parse_path(target)
        if link.is_root:
            msg = f"File exists: {link.display}"
            raise AlreadyExistsError(msg)
        os.symlink(
            self._store_target(target), self._host_path(link, follow_final=False)
        )

    async def symlink(self, target: StrPath, link: StrPath) -> None:
        parsed = self._parse(link)
        await _offload(parsed.display, self._symlink, os.fspath(target), parsed)

    def _read_link(self, path: ParsedPath) -> str:
        target = os.readlink(self._host_path(path, follow_final=False))
        if target.startswith(SEPARATOR):
            return self._caller_path(target)
        return target

    async def read_link(self, path: StrPath) -> str:
        parsed = self._parse(path)
        return await _offload(parsed.display, self._read_link, parsed)

    def _canonicalize(self, path: ParsedPath) -> str:
        return self._caller_path(os.path.realpath(self._host_path(path), strict=True))

    async def canonicalize(self, path: StrPath) -> str:
        parsed = self._parse(path)
        return await _offload(parsed.display, self._canonicalize, parsed)

    # --- Metadata ---

    def _metadata(self, path: ParsedPath) -> Metadata:
        return _metadata_from_stat(os.stat(self._host_path(path)))

    async def metadata(self, path: StrPath) -> Metadata:
        parsed = self._parse(path)
        return await _offload(parsed.display, self._metadata, parsed)

    def _symlink_metadata(self, path: ParsedPath) -> Metadata:
        meta = _metadata_from_stat(os.lstat(self._host_path(path, follow_final=False)))
        if meta.is_symlink and self._real_root is not None:
            # Report the length of the target as the caller wrote it.
            meta = replace(meta, size=len(self._read_link(path).encode()))
        return meta

    async def symlink_metadata(self, path: StrPath) -> Metadata:
        parsed = self._parse(path)
        return await _offload(parsed.display, self._symlink_metadata, parsed)

    def _exists(self, path: ParsedPath) -> bool:
        try:
            _ = os.stat(self._host_path(path))
        except (FileNotFoundError, NotADirectoryError):
            return False
        return True

    async def exists(self, path: StrPath) -> bool:
        parsed = self._parse(path)
        return await _offload(parsed.display, self._exists, parsed)


__all__ = ["HostFile", "HostFilesystem", "HostReadDir"]
