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

"""Synchronous view of an in-memory file handle.

``SyncFile`` lets code that only speaks the blocking ``io`` protocol
(``zipfile``, ``tarfile``, ``csv`` through ``io.TextIOWrapper``, ...) operate
on a ``MemoryFile`` from inside a running event loop. Every call completes
immediately through the handle's ``*_nowait`` methods, so the event loop is
never blocked.

Only in-memory handles are accepted: over a host file the same calls would
perform real blocking I/O on the loop thread.

Example::

    handle = await fs.open("/archive.zip", OpenOptions(read=True))
    with zipfile.ZipFile(SyncFile(handle)) as archive:
        names = archive.namelist()
"""

from __future__ import annotations

import io
from collections.abc import Buffer
from typing import Self

from ._content import MemoryFile
from ._types import SeekFrom


class SyncFile(io.RawIOBase):
    """``io.RawIOBase`` adapter over a ``MemoryFile``.

    Closing the adapter closes the wrapped handle.
    """

    def __new__(cls, handle: object) -> Self:
        if not isinstance(handle, MemoryFile):
            msg = (
                "SyncFile only wraps in-memory handles, got "
                f"{type(handle).__name__}"
            )
            raise TypeError(msg)
        return super().__new__(cls)

    def __init__(self, handle: MemoryFile) -> None:
        super().__init__()
        self._handle = handle

    @property
    def handle(self) -> MemoryFile:
        return self._handle

    @property
    def name(self) -> str:
        return self._handle.path

    def readable(self) -> bool:
        return self._handle.options.readable

    def writable(self) -> bool:
        return self._handle.options.writable

    def seekable(self) -> bool:
        return True

    def readinto(self, buffer: Buffer) -> int:
        view = memoryview(buffer).cast("B")
        data = self._handle.read_nowait(len(view))
        view[: len(data)] = data
        return len(data)

    def readall(self) -> bytes:
        return self._handle.read_nowait(-1)

    def write(self, data: Buffer) -> int:
        return self._handle.write_nowait(bytes(data))

    def seek(self, offset: int, whence: int = SeekFrom.START) -> int:
        return self._handle.seek_nowait(offset, whence)

    def tell(self) -> int:
        return self._handle.tell()

    def truncate(self, size: int | None = None) -> int:
        target = self._handle.tell() if size is None else size
        self._handle.set_len_nowait(target)
        return target

    def flush(self) -> None:
        if not (self.closed or self._handle.closed):
            self._handle.flush_nowait()

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
        finally:
            self._handle.close_nowait()


__all__ = ["SyncFile"]
