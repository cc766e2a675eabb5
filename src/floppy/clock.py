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

"""Controllable wall-clock time for filesystem timestamps.

The in-memory backend stamps every node with creation and modification
markers. Those markers come from a :class:`WallClock` so tests can pin them.

Example (production)::

    from floppy.clock import SYSTEM_CLOCK

    stamp = SYSTEM_CLOCK.utcnow()

Example (testing)::

    from floppy.clock import FakeClock
    from floppy.filesystem import FilesystemConfig, MemoryFilesystem

    clock = FakeClock()
    fs = MemoryFilesystem(FilesystemConfig(clock=clock))
    await fs.write("/a.txt", b"one")
    clock.advance(60)
    await fs.write("/a.txt", b"two")  # modified marker moved by one minute
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Final, Protocol, runtime_checkable


@runtime_checkable
class WallClock(Protocol):
    """Protocol for wall-clock time measurement.

    Wall clocks provide the current UTC datetime. They are suitable for
    timestamps and recording when events occurred.
    """

    def utcnow(self) -> datetime:
        """Return current UTC datetime (timezone-aware)."""
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Production clock delegating to ``datetime.now(UTC)``.

    Microseconds are truncated to millisecond precision so in-memory
    timestamps compare the way coarse host filesystem timestamps do.
    """

    def utcnow(self) -> datetime:
        """Return current UTC datetime truncated to milliseconds."""
        value = datetime.now(UTC)
        return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


SYSTEM_CLOCK: Final[WallClock] = SystemClock()
"""Default system clock instance.

Use this as the default value for clock parameters. Tests can inject
FakeClock instead for deterministic behavior.
"""


@dataclass
class FakeClock:
    """Controllable clock for deterministic testing.

    Time only moves when ``advance()`` or ``set_wall()`` is called.

    Example::

        clock = FakeClock()
        start = clock.utcnow()
        clock.advance(60)
        assert (clock.utcnow() - start).total_seconds() == 60

    Thread-safety:
        All operations are thread-safe.
    """

    _wall: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=UTC))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def utcnow(self) -> datetime:
        """Return current wall-clock time."""
        with self._lock:
            return self._wall

    def advance(self, seconds: float) -> None:
        """Advance the clock by the given duration.

        Args:
            seconds: Duration to advance in seconds (must be non-negative).

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            msg = "Cannot advance time by negative seconds"
            raise ValueError(msg)
        with self._lock:
            self._wall += timedelta(seconds=seconds)

    def set_wall(self, value: datetime) -> None:
        """Set wall-clock time to an absolute value.

        Args:
            value: Must be timezone-aware UTC datetime.

        Raises:
            ValueError: If value is not timezone-aware.
        """
        if value.tzinfo is None:
            msg = "Wall clock time must be timezone-aware"
            raise ValueError(msg)
        with self._lock:
            self._wall = value


__all__ = [
    "SYSTEM_CLOCK",
    "FakeClock",
    "SystemClock",
    "WallClock",
]
