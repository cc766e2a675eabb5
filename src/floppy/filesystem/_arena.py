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

"""Node arena of the in-memory backend.

The arena owns every node by a stable ``NodeId`` independent of where the
node sits in the tree. Directories store child ids by name; no node holds a
reference to its parent. Parent discovery goes through an explicit reverse
map (``child id -> (parent id, name)``) that ``link``/``unlink`` maintain.

Ids come from a counter and are never reused, so a handle or a stale lookup
can never observe a different node under an old id. The root is
``NodeId(0)`` and has no parent.

A node removed from the tree is either discarded at once or, for files with
open handles, kept in the arena as *detached* until its content is released
(see ``_content.ContentManager``).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Final, NewType

from ..clock import WallClock
from ._types import FileType, Metadata

if TYPE_CHECKING:
    from ._content import Content

NodeId = NewType("NodeId", int)

ROOT_ID: Final[NodeId] = NodeId(0)


@dataclass(slots=True)
class DirectoryNode:
    """Directory with children kept in insertion order."""

    node_id: NodeId
    created_at: datetime
    modified_at: datetime
    children: dict[str, NodeId] = field(default_factory=dict)


@dataclass(slots=True)
class FileNode:
    """Regular file. Bytes and handle accounting live in ``content``."""

    node_id: NodeId
    created_at: datetime
    content: Content

    @property
    def modified_at(self) -> datetime:
        return self.content.modified_at

    @property
    def size(self) -> int:
        return len(self.content.data)


@dataclass(slots=True)
class SymlinkNode:
    """Symbolic link. ``target`` is stored verbatim and resolved lazily."""

    node_id: NodeId
    created_at: datetime
    modified_at: datetime
    target: str


type Node = DirectoryNode | FileNode | SymlinkNode


@dataclass(slots=True, frozen=True)
class ArenaUsage:
    """Point-in-time node counts, for tests and diagnostics."""

    nodes: int
    directories: int
    files: int
    symlinks: int
    detached: int


class NodeArena:
    """Owning collection of all nodes, indexed by ``NodeId``."""

    __slots__ = ("_clock", "_next_id", "_nodes", "_parents")

    def __init__(self, clock: WallClock) -> None:
        self._clock = clock
        self._nodes: dict[NodeId, Node] = {}
        self._parents: dict[NodeId, tuple[NodeId, str]] = {}
        self._next_id = 1
        stamp = clock.utcnow()
        self._nodes[ROOT_ID] = DirectoryNode(ROOT_ID, stamp, stamp)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def root(self) -> DirectoryNode:
        root = self._nodes[ROOT_ID]
        assert isinstance(root, DirectoryNode)  # nosec: B101
        return root

    def _allocate_id(self) -> NodeId:
        node_id = NodeId(self._next_id)
        self._next_id += 1
        return node_id

    # --- Allocation ---

    def alloc_directory(self) -> DirectoryNode:
        stamp = self._clock.utcnow()
        node = DirectoryNode(self._allocate_id(), stamp, stamp)
        self._nodes[node.node_id] = node
        return node

    def alloc_file(self, content: Content) -> FileNode:
        node = FileNode(self._allocate_id(), self._clock.utcnow(), content)
        self._nodes[node.node_id] = node
        return node

    def alloc_symlink(self, target: str) -> SymlinkNode:
        stamp = self._clock.utcnow()
        node = SymlinkNode(self._allocate_id(), stamp, stamp, target)
        self._nodes[node.node_id] = node
        return node

    # --- Lookup ---

    def get(self, node_id: NodeId) -> Node:
        return self._nodes[node_id]

    def parent_of(self, node_id: NodeId) -> NodeId | None:
        entry = self._parents.get(node_id)
        return entry[0] if entry is not None else None

    def is_attached(self, node_id: NodeId) -> bool:
        """True if the node is reachable from the root."""
        return node_id == ROOT_ID or node_id in self._parents

    def is_ancestor(self, ancestor: NodeId, node_id: NodeId) -> bool:
        """True if ``ancestor`` is ``node_id`` or one of its parents."""
        current: NodeId | None = node_id
        while current is not None:
            if current == ancestor:
                return True
            current = self.parent_of(current)
        return False

    def path_of(self, node_id: NodeId) -> tuple[str, ...]:
        """Names from the root down to an attached node."""
        names: list[str] = []
        current = node_id
        while current != ROOT_ID:
            parent, name = self._parents[current]
            names.append(name)
            current = parent
        names.reverse()
        return tuple(names)

    def walk(self, node_id: NodeId) -> Iterator[Node]:
        """Yield the subtree rooted at ``node_id``, children before parents."""
        node = self._nodes[node_id]
        if isinstance(node, DirectoryNode):
            for child_id in tuple(node.children.values()):
                yield from self.walk(child_id)
        yield node

    # --- Mutation ---

    def link(self, parent_id: NodeId, name: str, child_id: NodeId) -> None:
        """Attach ``child_id`` under ``parent_id`` as ``name``."""
        parent = self._nodes[parent_id]
        assert isinstance(parent, DirectoryNode)  # nosec: B101
        assert name not in parent.children  # nosec: B101
        parent.children[name] = child_id
        parent.modified_at = self._clock.utcnow()
        self._parents[child_id] = (parent_id, name)

    def unlink(self, parent_id: NodeId, name: str) -> NodeId:
        """Detach the child ``name`` from ``parent_id`` and return its id."""
        parent = self._nodes[parent_id]
        assert isinstance(parent, DirectoryNode)  # nosec: B101
        child_id = parent.children.pop(name)
        parent.modified_at = self._clock.utcnow()
        del self._parents[child_id]
        return child_id

    def detach(self, node_id: NodeId) -> None:
        """Detach an attached node from whichever directory holds it."""
        parent_id, name = self._parents[node_id]
        _ = self.unlink(parent_id, name)

    def discard(self, node_id: NodeId) -> None:
        """Drop a detached node from the arena."""
        assert node_id != ROOT_ID  # nosec: B101
        assert node_id not in self._parents  # nosec: B101
        del self._nodes[node_id]

    def usage(self) -> ArenaUsage:
        directories = files = symlinks = detached = 0
        for node_id, node in self._nodes.items():
            if isinstance(node, DirectoryNode):
                directories += 1
            elif isinstance(node, FileNode):
                files += 1
            else:
                symlinks += 1
            if not self.is_attached(node_id):
                detached += 1
        return ArenaUsage(
            nodes=len(self._nodes),
            directories=directories,
            files=files,
            symlinks=symlinks,
            detached=detached,
        )


def describe(node: Node) -> Metadata:
    """Build the ``Metadata`` value for a node."""
    if isinstance(node, DirectoryNode):
        return Metadata(
            file_type=FileType.DIRECTORY,
            size=0,
            modified=node.modified_at,
            created=node.created_at,
            ino=node.node_id,
        )
    if isinstance(node, FileNode):
        return Metadata(
            file_type=FileType.FILE,
            size=node.size,
            modified=node.modified_at,
            created=node.created_at,
            ino=node.node_id,
        )
    return Metadata(
        file_type=FileType.SYMLINK,
        size=len(node.target.encode()),
        modified=node.modified_at,
        created=node.created_at,
        ino=node.node_id,
    )


__all__ = [
    "ROOT_ID",
    "ArenaUsage",
    "DirectoryNode",
    "FileNode",
    "Node",
    "NodeArena",
    "NodeId",
    "SymlinkNode",
    "describe",
]
