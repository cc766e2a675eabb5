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

from __future__ import annotations

import pytest

from floppy.clock import FakeClock
from floppy.filesystem import FilesystemConfig, MemoryFilesystem


@pytest.fixture
def fake_clock() -> FakeClock:
    """Return a clock that only moves when advanced."""
    return FakeClock()


@pytest.fixture
def memory_fs(fake_clock: FakeClock) -> MemoryFilesystem:
    """Return an empty in-memory filesystem stamped by ``fake_clock``."""
    return MemoryFilesystem(FilesystemConfig(clock=fake_clock))
