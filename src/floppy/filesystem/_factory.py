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

"""Backend selection."""

from __future__ import annotations

from typing import Literal

from ..logging import StructuredLogger, get_logger
from ._host import HostFilesystem
from ._memory import MemoryFilesystem
from ._protocol import Filesystem
from ._types import FilesystemConfig

_logger: StructuredLogger = get_logger(__name__)

type Backend = Literal["memory", "host"]


def create_filesystem(
    backend: Backend,
    *,
    root: str | None = None,
    config: FilesystemConfig | None = None,
) -> Filesystem:
    """Construct the backend named by ``backend``.

    Args:
        backend: ``"memory"`` for a fresh in-memory store or ``"host"`` for
            the operating system.
        root: Host directory to scope paths under. Host backend only.
        config: Shared backend configuration.

    Raises:
        ValueError: Unknown backend, or ``root`` given for the memory backend.
    """
    resolved = config or FilesystemConfig()
    if backend == "memory":
        if root is not None:
            msg = "The memory backend does not take a root directory"
            raise ValueError(msg)
        fs: Filesystem = MemoryFilesystem(resolved)
    elif backend == "host":
        fs = HostFilesystem(root, resolved)
    else:
        msg = f"Unknown filesystem backend: {backend!r}"
        raise ValueError(msg)
    _logger.debug(
        "created filesystem",
        event="fs.create",
        context={"backend": backend, "root": fs.root, "read_only": fs.read_only},
    )
    return fs


__all__ = ["Backend", "create_filesystem"]
