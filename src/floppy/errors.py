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

"""Error taxonomy shared by every :mod:`floppy` filesystem backend.

Callers match on the *kind* of a failure, never on its message. Each kind has
one exception class that also inherits the closest built-in exception, so both
styles work::

    try:
        await fs.read("/missing")
    except NotFoundError:
        ...

    try:
        await fs.read("/missing")
    except FileNotFoundError:
        ...

The host backend translates native :class:`OSError` values with
:func:`from_os_error`; the in-memory backend raises the same classes directly.
"""

from __future__ import annotations

import errno
from enum import StrEnum
from typing import ClassVar, Final


class ErrorKind(StrEnum):
    """Category of a filesystem failure."""

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    NOT_A_DIRECTORY = "not_a_directory"
    IS_A_DIRECTORY = "is_a_directory"
    DIRECTORY_NOT_EMPTY = "directory_not_empty"
    PERMISSION_DENIED = "permission_denied"
    INVALID_INPUT = "invalid_input"
    INVALID_DATA = "invalid_data"
    TOO_MANY_LINKS = "too_many_links"
    OTHER = "other"


class FloppyError(Exception):
    """Base class for all floppy exceptions.

    Every concrete subclass sets :attr:`kind`, allowing callers to branch on
    the category of a failure with a single handler::

        try:
            await fs.remove_dir("/cache")
        except FloppyError as e:
            if e.kind is ErrorKind.DIRECTORY_NOT_EMPTY:
                await fs.remove_dir_all("/cache")
            else:
                raise

    Note:
        Subclasses also inherit from standard exception types (e.g.,
        ``FileNotFoundError``, ``ValueError``) so code written against the
        built-in hierarchy keeps working.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.OTHER


class NotFoundError(FloppyError, FileNotFoundError):
    """A path component, or the target itself, does not exist."""

    kind: ClassVar[ErrorKind] = ErrorKind.NOT_FOUND


class AlreadyExistsError(FloppyError, FileExistsError):
    """The target already exists and the operation may not replace it."""

    kind: ClassVar[ErrorKind] = ErrorKind.ALREADY_EXISTS


class NotDirectoryError(FloppyError, NotADirectoryError):
    """A directory was required but a file or symlink was found."""

    kind: ClassVar[ErrorKind] = ErrorKind.NOT_A_DIRECTORY


class IsDirectoryError(FloppyError, IsADirectoryError):
    """File access was requested on a directory."""

    kind: ClassVar[ErrorKind] = ErrorKind.IS_A_DIRECTORY


class DirectoryNotEmptyError(FloppyError, OSError):
    """A directory still has children."""

    kind: ClassVar[ErrorKind] = ErrorKind.DIRECTORY_NOT_EMPTY


class PermissionDeniedError(FloppyError, PermissionError):
    """Access denied by the host, a read-only filesystem, or a root boundary."""

    kind: ClassVar[ErrorKind] = ErrorKind.PERMISSION_DENIED


class InvalidInputError(FloppyError, ValueError):
    """The arguments are invalid for this operation.

    Raised for cyclic renames, negative seeks, inconsistent open options,
    operations on closed handles and handle mode misuse.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_INPUT


class InvalidDataError(FloppyError, ValueError):
    """File content is not valid UTF-8 text."""

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_DATA


class TooManyLinksError(FloppyError, OSError):
    """Symlink resolution exceeded the maximum indirection depth."""

    kind: ClassVar[ErrorKind] = ErrorKind.TOO_MANY_LINKS


class BackendError(FloppyError, OSError):
    """Backend-specific failure with no more precise category."""

    kind: ClassVar[ErrorKind] = ErrorKind.OTHER


_ERRNO_CLASSES: Final[dict[int, type[FloppyError]]] = {
    errno.ENOENT: NotFoundError,
    errno.EEXIST: AlreadyExistsError,
    errno.ENOTDIR: NotDirectoryError,
    errno.EISDIR: IsDirectoryError,
    errno.ENOTEMPTY: DirectoryNotEmptyError,
    errno.EACCES: PermissionDeniedError,
    errno.EPERM: PermissionDeniedError,
    errno.EROFS: PermissionDeniedError,
    errno.EINVAL: InvalidInputError,
    errno.ELOOP: TooManyLinksError,
}

_KIND_CLASSES: Final[dict[ErrorKind, type[FloppyError]]] = {
    cls.kind: cls
    for cls in (
        NotFoundError,
        AlreadyExistsError,
        NotDirectoryError,
        IsDirectoryError,
        DirectoryNotEmptyError,
        PermissionDeniedError,
        InvalidInputError,
        InvalidDataError,
        TooManyLinksError,
        BackendError,
    )
}


def error_for(kind: ErrorKind, message: str) -> FloppyError:
    """Build the exception instance for ``kind``."""
    return _KIND_CLASSES[kind](message)


def from_os_error(err: OSError, path: str) -> FloppyError:
    """Translate a native ``OSError`` into the floppy taxonomy.

    Already translated errors are returned unchanged. The native error number
    decides the class; unknown numbers become :class:`BackendError`.

    Args:
        err: The error raised by the host operating system.
        path: Caller-facing path to mention in the message.

    Returns:
        The translated exception. Callers should ``raise ... from err``.
    """
    if isinstance(err, FloppyError):
        return err
    cls = _ERRNO_CLASSES.get(err.errno or 0, BackendError)
    reason = err.strerror or str(err)
    return cls(f"{reason}: {path}")


__all__ = [
    "AlreadyExistsError",
    "BackendError",
    "DirectoryNotEmptyError",
    "ErrorKind",
    "FloppyError",
    "InvalidDataError",
    "InvalidInputError",
    "IsDirectoryError",
    "NotDirectoryError",
    "NotFoundError",
    "PermissionDeniedError",
    "TooManyLinksError",
    "error_for",
    "from_os_error",
]
