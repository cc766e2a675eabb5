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

"""In-memory filesystem backend.

This module provides an in-process implementation of the ``Filesystem``
protocol for deterministic, side-effect-free tests. Each instance owns its
own store; nothing is shared between instances and nothing touches the host.

Example usage::

    from floppy.filesystem import MemoryFilesystem

    fs = MemoryFilesystem()
    await fs.create_dir_all("/a/b/c")
    await fs.write("/a/b/c/d.txt", "hi")
    assert await fs.read_to_string("/a/b/c/d.txt") == "hi"

Every operation suspends once at entry and then runs to completion under
the store's lock without suspending again.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Concatenate, Self

from . import _tree
from ._arena import ArenaUsage
from ._content import MemoryFile
from ._path import ParsedPath, StrPath, parse_path
from ._scheduling import checkpoint
from ._state import FilesystemState
from ._types import DirEntry, FilesystemConfig, Metadata, OpenOptions


class MemoryReadDir:
    """Directory listing over a snapshot taken by ``read_dir()``."""

    __slots__ = ("_entries", "_index")

    def __init__(self, entries: Sequence[DirEntry]) -> None:
        self._entries = tuple(entries)
        self._index = 0

    async def next_entry(self) -> DirEntry | None:
        await checkpoint()
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


@dataclass(slots=True)
class MemoryFilesystem:
    """In-memory implementation of the ``Filesystem`` protocol.

    Attributes:
        _config: Backend configuration (read-only mode, symlink depth, clock).
    """

    _config: FilesystemConfig = field(default_factory=FilesystemConfig)
    _state: FilesystemState = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._state = FilesystemState(self._config)

    async def _run[**P, R](
        self,
        operation: Callable[Concatenate[FilesystemState, P], R],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> R:
        await checkpoint()
        with self._state.lock:
            return operation(self._state, *args, **kwargs)

    async def _run_at[**P, R](
        self,
        operation: Callable[Concatenate[FilesystemState, ParsedPath, P], R],
        path: StrPath,
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> R:
        await checkpoint()
        parsed = parse_path(path)
        with self._state.lock:
            return operation(self._state, parsed, *args, **kwargs)

    @property
    def root(self) -> str:
        """Root of the virtual tree."""
        return "/"

    @property
    def read_only(self) -> bool:
        return self._config.read_only

    @property
    def config(self) -> FilesystemConfig:
        return self._config

    def usage(self) -> ArenaUsage:
        """Node counts of the store, including detached nodes kept by handles."""
        with self._state.lock:
            return self._state.arena.usage()

    @property
    def open_handles(self) -> int:
        """Handles currently open on this filesystem."""
        with self._state.lock:
            return self._state.contents.open_handles

    # --- Directory Operations ---

    async def create_dir(self, path: StrPath) -> None:
        await self._run_at(_tree.create_dir, path)

    async def create_dir_all(self, path: StrPath) -> None:
        await self._run_at(_tree.create_dir_all, path)

    async def remove_dir(self, path: StrPath) -> None:
        await self._run_at(_tree.remove_dir, path)

    async def remove_dir_all(self, path: StrPath) -> None:
        await self._run_at(_tree.remove_dir_all, path)

    async def read_dir(self, path: StrPath) -> MemoryReadDir:
        entries = await self._run_at(_tree.read_dir, path)
        return MemoryReadDir(entries)

    # --- File Operations ---

    async def open(
        self, path: StrPath, options: OpenOptions | None = None
    ) -> MemoryFile:
        return await self._run_at(
            _tree.open_file, path, options or OpenOptions.for_read()
        )

    async def read(self, path: StrPath) -> bytes:
        return await self._run_at(_tree.read_file, path)

    async def read_to_string(self, path: StrPath) -> str:
        return await self._run_at(_tree.read_text, path)

    async def write(self, path: StrPath, data: bytes | str) -> None:
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        await self._run_at(_tree.write_file, path, payload)

    async def remove_file(self, path: StrPath) -> None:
        await self._run_at(_tree.remove_file, path)

    async def copy(self, src: StrPath, dst: StrPath) -> int:
        return await self._run(
            lambda state: _tree.copy(state, parse_path(src), parse_path(dst))
        )

    async def rename(self, src: StrPath, dst: StrPath) -> None:
        await self._run(
            lambda state: _tree.rename(state, parse_path(src), parse_path(dst))
        )

    # --- Links ---

    async def symlink(self, target: StrPath, link: StrPath) -> None:
        await self._run(
            lambda state: _tree.symlink(state, os.fspath(target), parse_path(link))
        )

    async def read_link(self, path: StrPath) -> str:
        return await self._run_at(_tree.read_link, path)

    async def canonicalize(self, path: StrPath) -> str:
        return await self._run_at(_tree.canonicalize, path)

    # --- Metadata ---

    async def metadata(self, path: StrPath) -> Metadata:
        return await self._run_at(_tree.metadata, path)

    async def symlink_metadata(self, path: StrPath) -> Metadata:
        return await self._run_at(_tree.symlink_metadata, path)

    async def exists(self, path: StrPath) -> bool:
        return await self._run_at(_tree.exists, path)


__all__ = ["MemoryFilesystem", "MemoryReadDir"]
