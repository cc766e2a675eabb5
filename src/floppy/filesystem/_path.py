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

"""Lexical path handling shared by both backends.

Both backends parse caller paths with the same rules before touching any
storage, so ``.`` and ``..`` behave identically everywhere:

- The separator is ``/``. Empty components and ``.`` are dropped.
- ``..`` removes the previous component. At the root it is a no-op.
- The empty string is not a path (``NotFoundError``).
- A NUL character is rejected (``InvalidInputError``).

Relative and absolute paths address the same tree: the in-memory backend has
no working directory, so ``"a/b"`` and ``"/a/b"`` name the same node.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

from ..errors import InvalidInputError, NotFoundError

SEPARATOR: Final[str] = "/"

type StrPath = str | os.PathLike[str]


@dataclass(slots=True, frozen=True)
class ParsedPath:
    """A caller path after lexical normalisation.

    Attributes:
        components: Non-empty names from the root, with ``.``/``..`` resolved.
        absolute: Whether the caller wrote a leading separator.
    """

    components: tuple[str, ...]
    absolute: bool

    @property
    def is_root(self) -> bool:
        """True when the path names the root directory."""
        return not self.components

    @property
    def name(self) -> str | None:
        """Final component, or ``None`` for the root."""
        return self.components[-1] if self.components else None

    @property
    def parent(self) -> ParsedPath:
        """Path of the containing directory (the root is its own parent)."""
        return ParsedPath(self.components[:-1], self.absolute)

    def child(self, name: str) -> ParsedPath:
        """Path of ``name`` inside this directory."""
        return ParsedPath((*self.components, name), self.absolute)

    @property
    def display(self) -> str:
        """Canonical string form used in results and error messages."""
        joined = SEPARATOR.join(self.components)
        if self.absolute:
            return SEPARATOR + joined
        return joined or "."


def split_path(path: str) -> list[str]:
    """Split ``path`` into raw components, dropping empty and ``.`` entries.

    ``..`` entries are kept; see :func:`normalize_components`.

    Examples:
        >>> split_path("/a//b/./c/")
        ['a', 'b', 'c']
        >>> split_path("a/../b")
        ['a', '..', 'b']
    """
    return [segment for segment in path.split(SEPARATOR) if segment and segment != "."]


def normalize_components(segments: Iterable[str]) -> tuple[str, ...]:
    """Resolve ``..`` lexically, clamping at the root.

    Examples:
        >>> normalize_components(["a", "b", "..", "c"])
        ('a', 'c')
        >>> normalize_components(["..", "..", "a"])
        ('a',)
    """
    result: list[str] = []
    for segment in segments:
        if segment == "..":
            if result:
                _ = result.pop()
        elif segment and segment != ".":
            result.append(segment)
    return tuple(result)


def parse_path(path: StrPath) -> ParsedPath:
    """Parse and normalise a caller path.

    Raises:
        NotFoundError: ``path`` is the empty string.
        InvalidInputError: ``path`` contains a NUL character.
    """
    raw = os.fspath(path)
    if not raw:
        msg = "Empty path"
        raise NotFoundError(msg)
    if "\x00" in raw:
        msg = f"Path contains a NUL character: {raw!r}"
        raise InvalidInputError(msg)
    return ParsedPath(
        components=normalize_components(split_path(raw)),
        absolute=raw.startswith(SEPARATOR),
    )


def join_display(base: str, name: str) -> str:
    """Join a display path and a child name without doubling separators."""
    if base in {"", "."}:
        return name
    if base.endswith(SEPARATOR):
        return base + name
    return f"{base}{SEPARATOR}{name}"


__all__ = [
    "SEPARATOR",
    "ParsedPath",
    "StrPath",
    "join_display",
    "normalize_components",
    "parse_path",
    "split_path",
]
