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

"""File content buffers and open handles of the in-memory backend.

A ``Content`` record is shared by its ``FileNode`` and every ``MemoryFile``
opened on it. It carries an explicit ``linked`` flag and a ``handles``
counter; the buffer is released exactly when the file is unlinked from the
tree *and* the last handle is closed. This is what keeps a removed file
readable through handles that were open at removal time.

``MemoryFile`` exposes two surfaces over the same logic:

- coroutine methods (``read``, ``write``, ...) that suspend once at entry,
  implementing the ``File`` protocol;
- ``*_nowait`` methods that complete immediately, used by the sync bridging
  adapter (``SyncFile``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Self

from ..clock import WallClock
from ..errors import InvalidInputError
from ..logging import StructuredLogger, get_logger
from ._arena import FileNode, NodeArena, describe
from ._scheduling import checkpoint
from ._types import Metadata, OpenOptions, SeekFrom

if TYPE_CHECKING:
    from ._state import FilesystemState

_logger: StructuredLogger = get_logger(__name__)


@dataclass(slots=True)
class Content:
    """Byte buffer plus the accounting that decides when it is freed."""

    data: bytearray
    modified_at: datetime
    linked: bool = True
    handles: int = 0
    released: bool = False


class ContentManager:
    """Owns content lifetimes for one arena."""

    __slots__ = ("_arena", "_clock", "_open_handles")

    def __init__(self, arena: NodeArena, clock: WallClock) -> None:
        self._arena = arena
        self._clock = clock
        self._open_handles = 0

    @property
    def open_handles(self) -> int:
        """Handles currently open across all files."""
        return self._open_handles

    def new_file(self, data: bytes = b"") -> FileNode:
        """Allocate a file node with fresh content. The caller links it."""
        content = Content(data=bytearray(data), modified_at=self._clock.utcnow())
        return self._arena.alloc_file(content)

    def truncate(self, node: FileNode) -> None:
        content = node.content
        del content.data[:]
        content.modified_at = self._clock.utcnow()

    def acquire(self, node: FileNode) -> None:
        """Count a new handle on ``node``'s content."""
        node.content.handles += 1
        self._open_handles += 1

    def release(self, node: FileNode) -> bool:
        """Drop one handle. Returns True if the content was freed."""
        content = node.content
        assert content.handles > 0  # nosec: B101
        content.handles -= 1
        self._open_handles -= 1
        return self._maybe_free(node)

    def unlink(self, node: FileNode) -> bool:
        """Mark content as removed from the tree. Returns True if freed.

        The node must already be detached from its parent directory.
        """
        node.content.linked = False
        return self._maybe_free(node)

    def _maybe_free(self, node: FileNode) -> bool:
        content = node.content
        if content.linked or content.handles > 0:
            return False
        size = len(content.data)
        content.data = bytearray()
        content.released = True
        self._arena.discard(node.node_id)
        _logger.debug(
            "released file content",
            event="fs.content.freed",
            context={"ino": node.node_id, "size": size},
        )
        return True


class MemoryFile:
    """Open handle on an in-memory file.

    The handle references the file's ``Content`` directly, so it keeps
    working after the file is removed or renamed. Each handle has its own
    cursor; clones share content but not the cursor.
    """

    __slots__ = ("_closed", "_cursor", "_dirty", "_node", "_options", "_path", "_state")

    def __init__(
        self,
        state: FilesystemState,
        node: FileNode,
        options: OpenOptions,
        path: str,
        *,
        cursor: int = 0,
    ) -> None:
        self._state = state
        self._node = node
        self._options = options
        self._path = path
        self._cursor = cursor
        self._dirty = False
        self._closed = False
        state.contents.acquire(node)

    def __repr__(self) -> str:
        return (
            f"MemoryFile(path={self._path!r}, ino={self._node.node_id}, "
            f"cursor={self._cursor}, closed={self._closed})"
        )

    @property
    def path(self) -> str:
        return self._path

    @property
    def options(self) -> OpenOptions:
        return self._options

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dirty(self) -> bool:
        """True if bytes were written since the last flush or sync."""
        return self._dirty

    def _check_open(self) -> None:
        if self._closed:
            msg = "I/O operation on closed file"
            raise InvalidInputError(msg)

    # --- Immediate operations ---

    def read_nowait(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (-1 for all) without suspending."""
        with self._state.lock:
            self._check_open()
            if not self._options.readable:
                msg = f"File not opened for reading: {self._path}"
                raise InvalidInputError(msg)
            data = self._node.content.data
            if self._cursor >= len(data):
                return b""
            end = len(data) if size < 0 else min(len(data), self._cursor + size)
            chunk = bytes(data[self._cursor : end])
            self._cursor = end
            return chunk

    def write_nowait(self, data: bytes) -> int:
        """Write at the cursor (or the end in append mode) without suspending."""
        with self._state.lock:
            self._check_open()
            if not self._options.writable:
                msg = f"File not opened for writing: {self._path}"
                raise InvalidInputError(msg)
            content = self._node.content
            buffer = content.data
            if self._options.append:
                self._cursor = len(buffer)
            if self._cursor > len(buffer):
                buffer.extend(bytes(self._cursor - len(buffer)))
            end = self._cursor + len(data)
            buffer[self._cursor : end] = data
            self._cursor = end
            self._dirty = True
            content.modified_at = self._state.clock.utcnow()
            return len(data)

    def seek_nowait(self, offset: int, whence: int = SeekFrom.START) -> int:
        """Reposition the cursor without suspending."""
        with self._state.lock:
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
                base = len(self._node.content.data)
            position = base + offset
            if position < 0:
                msg = f"Cannot seek to negative position {position}: {self._path}"
                raise InvalidInputError(msg)
            self._cursor = position
            return position

    def tell(self) -> int:
        """Current cursor position."""
        with self._state.lock:
            self._check_open()
            return self._cursor

    def set_len_nowait(self, size: int) -> None:
        """Truncate or zero-extend the content without suspending."""
        with self._state.lock:
            self._check_open()
            if not self._options.writable:
                msg = f"File not opened for writing: {self._path}"
                raise InvalidInputError(msg)
            if size < 0:
                msg = f"Invalid file length {size}: {self._path}"
                raise InvalidInputError(msg)
            content = self._node.content
            if size < len(content.data):
                del content.data[size:]
            else:
                content.data.extend(bytes(size - len(content.data)))
            self._dirty = True
            content.modified_at = self._state.clock.utcnow()

    def flush_nowait(self) -> None:
        with self._state.lock:
            self._check_open()
            self._dirty = False

    def metadata_nowait(self) -> Metadata:
        with self._state.lock:
            self._check_open()
            return describe(self._node)

    def clone_nowait(self) -> MemoryFile:
        with self._state.lock:
            self._check_open()
            return MemoryFile(
                self._state,
                self._node,
                self._options,
                self._path,
                cursor=self._cursor,
            )

    def close_nowait(self) -> None:
        """Release the handle. Closing twice is a no-op."""
        with self._state.lock:
            if self._closed:
                return
            self._closed = True
            _ = self._state.contents.release(self._node)

    # --- File protocol ---

    async def read(self, size: int = -1) -> bytes:
        await checkpoint()
        return self.read_nowait(size)

    async def write(self, data: bytes) -> int:
        await checkpoint()
        return self.write_nowait(data)

    async def seek(self, offset: int, whence: SeekFrom = SeekFrom.START) -> int:
        await checkpoint()
        return self.seek_nowait(offset, whence)

    async def flush(self) -> None:
        await checkpoint()
        self.flush_nowait()

    async def sync_all(self) -> None:
        await checkpoint()
        self.flush_nowait()

    async def sync_data(self) -> None:
        await self.sync_all()

    async def set_len(self, size: int) -> None:
        await checkpoint()
        self.set_len_nowait(size)

    async def metadata(self) -> Metadata:
        await checkpoint()
        return self.metadata_nowait()

    async def try_clone(self) -> Self:
        await checkpoint()
        clone = self.clone_nowait()
        assert isinstance(clone, type(self))  # nosec: B101
        return clone

    async def close(self) -> None:
        await checkpoint()
        self.close_nowait()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()


__all__ = ["Content", "ContentManager", "MemoryFile"]
