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

"""Shared mutable store of one in-memory filesystem instance."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..clock import WallClock
from ..errors import PermissionDeniedError
from ._arena import NodeArena
from ._content import ContentManager
from ._resolver import PathResolver
from ._types import FilesystemConfig


@dataclass(slots=True)
class FilesystemState:
    """Arena, content manager and resolver behind one lock.

    Every tree and content operation takes the state explicitly and runs its
    whole mutation inside ``lock``. The lock is never held across an
    ``await``, so a critical section is a plain synchronous block and cannot
    be interrupted by task cancellation.
    """

    config: FilesystemConfig
    arena: NodeArena = field(init=False)
    contents: ContentManager = field(init=False)
    resolver: PathResolver = field(init=False)
    lock: threading.RLock = field(default_factory=threading.RLock, init=False)

    def __post_init__(self) -> None:
        self.arena = NodeArena(self.config.clock)
        self.contents = ContentManager(self.arena, self.config.clock)
        self.resolver = PathResolver(
            self.arena, max_depth=self.config.max_symlink_depth
        )

    @property
    def clock(self) -> WallClock:
        return self.config.clock

    def check_writable(self, path: str) -> None:
        """Raise if the filesystem is configured read-only."""
        if self.config.read_only:
            msg = f"Filesystem is read-only: {path}"
            raise PermissionDeniedError(msg)


__all__ = ["FilesystemState"]
