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

"""Tree operations of the in-memory backend.

Each function takes the ``FilesystemState`` explicitly and expects the caller
to hold ``state.lock`` for the whole call. Functions validate everything they
can before the first mutation, so a failing call leaves the tree unchanged
(``create_dir_all`` excepted: ancestors it created before a failure remain).
"""

from __future__ import annotations

from ..errors import (
    AlreadyExistsError,
    DirectoryNotEmptyError,
    InvalidDataError,
    InvalidInputError,
    IsDirectoryError,
    NotDirectoryError,
    NotFoundError,
)
from ..logging import StructuredLogger, get_logger
from ._arena import DirectoryNode, FileNode, Node, NodeId, SymlinkNode, describe
from ._content import MemoryFile
from ._path import ParsedPath, join_display, parse_path
from ._state import FilesystemState
from ._types import DirEntry, FileType, Metadata, OpenOptions

_logger: StructuredLogger = get_logger(__name__, context={"backend": "memory"})


def _directory(state: FilesystemState, node_id: NodeId) -> DirectoryNode:
    node = state.arena.get(node_id)
    assert isinstance(node, DirectoryNode)  # nosec: B101
    return node


def _lookup(state: FilesystemState, path: ParsedPath) -> tuple[NodeId, str, NodeId]:
    """Resolve ``path`` without following a final symlink.

    Returns the parent id, the final name and the child id.
    """
    parent_id, name = state.resolver.resolve_parent(path)
    child_id = _directory(state, parent_id).children.get(name)
    if child_id is None:
        msg = f"No such file or directory: {path.display}"
        raise NotFoundError(msg)
    return parent_id, name, child_id


def _file_type(node: Node) -> FileType:
    if isinstance(node, DirectoryNode):
        return FileType.DIRECTORY
    if isinstance(node, FileNode):
        return FileType.FILE
    return FileType.SYMLINK


def _drop(state: FilesystemState, node: Node) -> None:
    """Dispose of a node that was just detached from the tree."""
    if isinstance(node, FileNode):
        _ = state.contents.unlink(node)
    else:
        state.arena.discard(node.node_id)


def _drop_subtree(state: FilesystemState, top_id: NodeId) -> int:
    """Dispose of a detached subtree, children first. Returns the node count."""
    count = 0
    for node in tuple(state.arena.walk(top_id)):
        if node.node_id != top_id:
            state.arena.detach(node.node_id)
        _drop(state, node)
        count += 1
    return count


# --- Directories ---


def create_dir(state: FilesystemState, path: ParsedPath) -> None:
    state.check_writable(path.display)
    if path.is_root:
        msg = f"File exists: {path.display}"
        raise AlreadyExistsError(msg)
    parent_id, name = state.resolver.resolve_parent(path)
    if name in _directory(state, parent_id).children:
        msg = f"File exists: {path.display}"
        raise AlreadyExistsError(msg)
    node = state.arena.alloc_directory()
    state.arena.link(parent_id, name, node.node_id)
    _logger.debug(
        "created directory",
        event="fs.create_dir",
        context={"path": path.display, "ino": node.node_id},
    )


def create_dir_all(state: FilesystemState, path: ParsedPath) -> None:
    """Create ``path`` and its missing ancestors; symlinks to directories count."""
    state.check_writable(path.display)
    created = 0
    for depth in range(1, len(path.components) + 1):
        prefix = ParsedPath(path.components[:depth], path.absolute)
        try:
            resolution = state.resolver.resolve(prefix)
        except NotFoundError:
            parent_id, name = state.resolver.resolve_parent(prefix)
            if name in _directory(state, parent_id).children:
                # Dangling symlink in the way.
                msg = f"Not a directory: {prefix.display}"
                raise NotDirectoryError(msg) from None
            node = state.arena.alloc_directory()
            state.arena.link(parent_id, name, node.node_id)
            created += 1
            continue
        if not isinstance(resolution.node, DirectoryNode):
            msg = f"Not a directory: {prefix.display}"
            raise NotDirectoryError(msg)
    _logger.debug(
        "created directory tree",
        event="fs.create_dir_all",
        context={"path": path.display, "created": created},
    )


def remove_dir(state: FilesystemState, path: ParsedPath) -> None:
    state.check_writable(path.display)
    if path.is_root:
        msg = "Cannot remove the root directory"
        raise InvalidInputError(msg)
    parent_id, name, child_id = _lookup(state, path)
    node = state.arena.get(child_id)
    if not isinstance(node, DirectoryNode):
        msg = f"Not a directory: {path.display}"
        raise NotDirectoryError(msg)
    if node.children:
        msg = f"Directory not empty: {path.display}"
        raise DirectoryNotEmptyError(msg)
    _ = state.arena.unlink(parent_id, name)
    state.arena.discard(child_id)
    _logger.debug(
        "removed directory",
        event="fs.remove_dir",
        context={"path": path.display},
    )


def remove_dir_all(state: FilesystemState, path: ParsedPath) -> None:
    """Remove a directory tree. A final symlink is removed, not followed."""
    state.check_writable(path.display)
    if path.is_root:
        msg = "Cannot remove the root directory"
        raise InvalidInputError(msg)
    parent_id, name, child_id = _lookup(state, path)
    node = state.arena.get(child_id)
    if isinstance(node, FileNode):
        msg = f"Not a directory: {path.display}"
        raise NotDirectoryError(msg)
    _ = state.arena.unlink(parent_id, name)
    removed = _drop_subtree(state, child_id)
    _logger.debug(
        "removed directory tree",
        event="fs.remove_dir_all",
        context={"path": path.display, "removed": removed},
    )


def read_dir(state: FilesystemState, path: ParsedPath) -> list[DirEntry]:
    """Snapshot the entries of a directory in insertion order."""
    node = state.resolver.resolve(path).node
    if not isinstance(node, DirectoryNode):
        msg = f"Not a directory: {path.display}"
        raise NotDirectoryError(msg)
    return [
        DirEntry(
            name=name,
            path=join_display(path.display, name),
            file_type=_file_type(state.arena.get(child_id)),
            ino=child_id,
        )
        for name, child_id in node.children.items()
    ]


# --- Files ---


def open_file(
    state: FilesystemState, path: ParsedPath, options: OpenOptions
) -> MemoryFile:
    options.validate()
    if options.writable:
        state.check_writable(path.display)
    if options.exclusive:
        if path.is_root:
            msg = f"File exists: {path.display}"
            raise AlreadyExistsError(msg)
        parent_id, name = state.resolver.resolve_parent(path)
        if name in _directory(state, parent_id).children:
            msg = f"File exists: {path.display}"
            raise AlreadyExistsError(msg)
    if options.creates:
        location = state.resolver.locate_new(path)
        if location.existing is None:
            node: Node = state.contents.new_file()
            state.arena.link(location.parent_id, location.name, node.node_id)
            _logger.debug(
                "created file",
                event="fs.open.create",
                context={"path": path.display, "ino": node.node_id},
            )
        else:
            node = state.arena.get(location.existing)
    else:
        node = state.resolver.resolve(path).node
    if not isinstance(node, FileNode):
        msg = f"Is a directory: {path.display}"
        raise IsDirectoryError(msg)
    if options.truncate:
        state.contents.truncate(node)
    return MemoryFile(state, node, options, path.display)


def read_file(state: FilesystemState, path: ParsedPath) -> bytes:
    node = state.resolver.resolve(path).node
    if not isinstance(node, FileNode):
        msg = f"Is a directory: {path.display}"
        raise IsDirectoryError(msg)
    return bytes(node.content.data)


def read_text(state: FilesystemState, path: ParsedPath) -> str:
    data = read_file(state, path)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as error:
        msg = f"File is not valid UTF-8: {path.display}"
        raise InvalidDataError(msg) from error


def _store(state: FilesystemState, path: ParsedPath, data: bytes) -> FileNode:
    """Create or overwrite the file at ``path`` with ``data``."""
    location = state.resolver.locate_new(path)
    if location.existing is None:
        node = state.contents.new_file(data)
        state.arena.link(location.parent_id, location.name, node.node_id)
        return node
    existing = state.arena.get(location.existing)
    if not isinstance(existing, FileNode):
        msg = f"Is a directory: {path.display}"
        raise IsDirectoryError(msg)
    existing.content.data[:] = data
    existing.content.modified_at = state.clock.utcnow()
    return existing


def write_file(state: FilesystemState, path: ParsedPath, data: bytes) -> None:
    state.check_writable(path.display)
    node = _store(state, path, data)
    _logger.debug(
        "wrote file",
        event="fs.write",
        context={"path": path.display, "ino": node.node_id, "size": len(data)},
    )


def remove_file(state: FilesystemState, path: ParsedPath) -> None:
    """Remove a file or symlink; open handles keep file content alive."""
    state.check_writable(path.display)
    if path.is_root:
        msg = f"Is a directory: {path.display}"
        raise IsDirectoryError(msg)
    parent_id, name, child_id = _lookup(state, path)
    node = state.arena.get(child_id)
    if isinstance(node, DirectoryNode):
        msg = f"Is a directory: {path.display}"
        raise IsDirectoryError(msg)
    _ = state.arena.unlink(parent_id, name)
    _drop(state, node)
    _logger.debug(
        "removed file",
        event="fs.remove_file",
        context={"path": path.display, "ino": child_id},
    )


def copy(state: FilesystemState, src: ParsedPath, dst: ParsedPath) -> int:
    state.check_writable(dst.display)
    source = state.resolver.resolve(src)
    if not isinstance(source.node, FileNode):
        msg = f"Is a directory: {src.display}"
        raise IsDirectoryError(msg)
    location = state.resolver.locate_new(dst)
    if location.existing == source.node_id:
        msg = f"Source and destination are the same file: {dst.display}"
        raise InvalidInputError(msg)
    data = bytes(source.node.content.data)
    _ = _store(state, dst, data)
    _logger.debug(
        "copied file",
        event="fs.copy",
        context={"src": src.display, "dst": dst.display, "size": len(data)},
    )
    return len(data)


def rename(state: FilesystemState, src: ParsedPath, dst: ParsedPath) -> None:
    """Relink ``src`` as ``dst``. A final symlink is moved, not followed.

    When ``dst`` exists a file or symlink may replace a file or symlink and a
    directory may replace an empty directory; anything else is
    ``AlreadyExistsError``.
    """
    state.check_writable(dst.display)
    if src.is_root or dst.is_root:
        msg = "Cannot rename to or from the root directory"
        raise InvalidInputError(msg)
    src_parent, src_name, src_id = _lookup(state, src)
    dst_parent, dst_name = state.resolver.resolve_parent(dst)
    dst_id = _directory(state, dst_parent).children.get(dst_name)
    if dst_id == src_id:
        return
    source = state.arena.get(src_id)
    if isinstance(source, DirectoryNode) and state.arena.is_ancestor(
        src_id, dst_parent
    ):
        msg = f"Cannot move a directory inside itself: {src.display} -> {dst.display}"
        raise InvalidInputError(msg)
    replaced: Node | None = None
    if dst_id is not None:
        replaced = state.arena.get(dst_id)
        _check_replaceable(source, replaced, dst)
        _ = state.arena.unlink(dst_parent, dst_name)
    _ = state.arena.unlink(src_parent, src_name)
    state.arena.link(dst_parent, dst_name, src_id)
    if replaced is not None:
        _drop(state, replaced)
    _logger.debug(
        "renamed",
        event="fs.rename",
        context={
            "src": src.display,
            "dst": dst.display,
            "replaced": replaced is not None,
        },
    )


def _check_replaceable(source: Node, target: Node, dst: ParsedPath) -> None:
    if isinstance(source, DirectoryNode):
        if isinstance(target, DirectoryNode) and not target.children:
            return
    elif not isinstance(target, DirectoryNode):
        return
    msg = f"Destination exists: {dst.display}"
    raise AlreadyExistsError(msg)


# --- Links ---


def symlink(state: FilesystemState, target: str, link: ParsedPath) -> None:
    """Create ``link`` pointing at ``target``, stored verbatim."""
    state.check_writable(link.display)
    _ = parse_path(target)
    if link.is_root:
        msg = f"File exists: {link.display}"
        raise AlreadyExistsError(msg)
    parent_id, name = state.resolver.resolve_parent(link)
    if name in _directory(state, parent_id).children:
        msg = f"File exists: {link.display}"
        raise AlreadyExistsError(msg)
    node = state.arena.alloc_symlink(target)
    state.arena.link(parent_id, name, node.node_id)
    _logger.debug(
        "created symlink",
        event="fs.symlink",
        context={"link": link.display, "target": target},
    )


def read_link(state: FilesystemState, path: ParsedPath) -> str:
    node = state.resolver.resolve(path, follow_final=False).node
    if not isinstance(node, SymlinkNode):
        msg = f"Not a symbolic link: {path.display}"
        raise InvalidInputError(msg)
    return node.target


def canonicalize(state: FilesystemState, path: ParsedPath) -> str:
    resolution = state.resolver.resolve(path)
    return state.resolver.canonical(resolution.node_id)


# --- Metadata ---


def metadata(state: FilesystemState, path: ParsedPath) -> Metadata:
    return describe(state.resolver.resolve(path).node)


def symlink_metadata(state: FilesystemState, path: ParsedPath) -> Metadata:
    return describe(state.resolver.resolve(path, follow_final=False).node)


def exists(state: FilesystemState, path: ParsedPath) -> bool:
    try:
        _ = state.resolver.resolve(path)
    except (NotFoundError, NotDirectoryError):
        return False
    return True


__all__ = [
    "canonicalize",
    "copy",
    "create_dir",
    "create_dir_all",
    "exists",
    "metadata",
    "open_file",
    "read_dir",
    "read_file",
    "read_link",
    "read_text",
    "remove_dir",
    "remove_dir_all",
    "remove_file",
    "rename",
    "symlink",
    "symlink_metadata",
    "write_file",
]
