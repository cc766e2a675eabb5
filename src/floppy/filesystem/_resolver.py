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

"""Path resolution against the node arena.

Resolution walks from the root one component at a time, keeping the chain of
directories it descended through. A symlink met along the way is replaced by
its target: an absolute target resets the chain to the root, a relative one
continues from the directory holding the link. Components of a target are
walked as they come, so a ``..`` after a followed link steps to the real
parent of where the link led, as the kernel does. Every substitution counts
towards ``max_depth``; exceeding it raises ``TooManyLinksError``, which is
how symlink cycles terminate.

Caller paths are normalised lexically by :func:`parse_path` before they get
here; only link targets still carry ``..``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from ..errors import (
    IsDirectoryError,
    NotDirectoryError,
    NotFoundError,
    TooManyLinksError,
)
from ._arena import ROOT_ID, DirectoryNode, Node, NodeArena, NodeId, SymlinkNode
from ._path import SEPARATOR, ParsedPath, split_path
from ._types import DEFAULT_MAX_SYMLINK_DEPTH

_PARENT = ".."


@dataclass(slots=True, frozen=True)
class Resolution:
    """Outcome of resolving a path.

    Attributes:
        node_id: Id of the node the path names.
        node: The node itself.
        components: Canonical components leading to the node.
    """

    node_id: NodeId
    node: Node
    components: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class Location:
    """Where a file would be created; ``existing`` is set if the name is taken."""

    parent_id: NodeId
    name: str
    existing: NodeId | None


@dataclass(slots=True)
class _Cursor:
    nodes: list[NodeId] = field(default_factory=lambda: [ROOT_ID])
    names: list[str] = field(default_factory=list)
    substitutions: int = 0

    @property
    def current(self) -> NodeId:
        return self.nodes[-1]

    def reset(self) -> None:
        del self.nodes[1:]
        self.names.clear()


class PathResolver:
    """Resolves parsed paths to nodes of one arena."""

    __slots__ = ("_arena", "_max_depth")

    def __init__(
        self, arena: NodeArena, *, max_depth: int = DEFAULT_MAX_SYMLINK_DEPTH
    ) -> None:
        self._arena = arena
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def resolve(self, path: ParsedPath, *, follow_final: bool = True) -> Resolution:
        """Resolve ``path`` to a node.

        Args:
            path: Parsed caller path.
            follow_final: When False a final symlink is returned itself.

        Raises:
            NotDirectoryError: A non-final component is not a directory.
            NotFoundError: A component does not exist.
            TooManyLinksError: Too many symlink substitutions.
        """
        cursor = _Cursor()
        self._walk(cursor, path.components, follow_final=follow_final, path=path)
        node_id = cursor.current
        return Resolution(node_id, self._arena.get(node_id), tuple(cursor.names))

    def resolve_parent(self, path: ParsedPath) -> tuple[NodeId, str]:
        """Resolve the directory that holds the final component of ``path``.

        The caller handles the root, which has no parent.

        Raises:
            NotDirectoryError: The parent is not a directory.
            NotFoundError: The parent does not exist.
        """
        name = path.name
        assert name is not None  # nosec: B101
        parent = self.resolve(path.parent)
        if not isinstance(parent.node, DirectoryNode):
            msg = f"Not a directory: {path.parent.display}"
            raise NotDirectoryError(msg)
        return parent.node_id, name

    def locate_new(self, path: ParsedPath) -> Location:
        """Find where a file named by ``path`` lives or would be created.

        A dangling final symlink is followed, so creating through it creates
        its target.

        Raises:
            IsDirectoryError: The path names the root or ends in ``..``.
            NotDirectoryError: The parent is not a directory.
            NotFoundError: The parent does not exist.
            TooManyLinksError: Too many symlink substitutions.
        """
        cursor = _Cursor()
        pending: Sequence[str] = path.components
        while True:
            if not pending or pending[-1] == _PARENT:
                self._walk(cursor, pending, follow_final=True, path=path)
                msg = f"Is a directory: {path.display}"
                raise IsDirectoryError(msg)
            *head, name = pending
            self._walk(cursor, head, follow_final=True, path=path)
            parent_id = cursor.current
            parent = self._arena.get(parent_id)
            if not isinstance(parent, DirectoryNode):
                msg = f"Not a directory: {_display(cursor.names)}"
                raise NotDirectoryError(msg)
            child_id = parent.children.get(name)
            if child_id is None:
                return Location(parent_id, name, None)
            child = self._arena.get(child_id)
            if not isinstance(child, SymlinkNode):
                return Location(parent_id, name, child_id)
            self._substitute(cursor, child.target, path)
            pending = split_path(child.target)

    def canonical(self, node_id: NodeId) -> str:
        """Absolute path of an attached node."""
        return SEPARATOR + SEPARATOR.join(self._arena.path_of(node_id))

    def _walk(
        self,
        cursor: _Cursor,
        components: Sequence[str],
        *,
        follow_final: bool,
        path: ParsedPath,
    ) -> None:
        pending = list(components)
        index = 0
        while index < len(pending):
            name = pending[index]
            directory = self._arena.get(cursor.current)
            if not isinstance(directory, DirectoryNode):
                msg = f"Not a directory: {_display(cursor.names)}"
                raise NotDirectoryError(msg)
            index += 1
            if name == _PARENT:
                if len(cursor.nodes) > 1:
                    cursor.nodes.pop()
                    cursor.names.pop()
                continue
            child_id = directory.children.get(name)
            if child_id is None:
                msg = f"No such file or directory: {path.display}"
                raise NotFoundError(msg)
            child = self._arena.get(child_id)
            is_final = index == len(pending)
            if isinstance(child, SymlinkNode) and (follow_final or not is_final):
                self._substitute(cursor, child.target, path)
                pending = [*split_path(child.target), *pending[index:]]
                index = 0
                continue
            cursor.nodes.append(child_id)
            cursor.names.append(name)

    def _substitute(self, cursor: _Cursor, target: str, path: ParsedPath) -> None:
        cursor.substitutions += 1
        if cursor.substitutions > self._max_depth:
            msg = f"Too many levels of symbolic links: {path.display}"
            raise TooManyLinksError(msg)
        if target.startswith(SEPARATOR):
            cursor.reset()


def _display(components: list[str]) -> str:
    return SEPARATOR + SEPARATOR.join(components)


__all__ = ["Location", "PathResolver", "Resolution"]
