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

"""Generic validation suite for Filesystem protocol implementations.

This module provides a reusable test suite that validates any implementation
of the Filesystem protocol. Tests are designed to be subclassed with a
concrete filesystem factory.

Example usage::

    from tests.helpers.filesystem_contract import FilesystemContractSuite

    class TestMyFilesystem(FilesystemContractSuite):
        @pytest.fixture
        def fs(self) -> MyFilesystem:
            return MyFilesystem()

All tests in the suite run against the filesystem returned by the ``fs``
fixture, which must be empty at the start of each test. Backend-specific
behaviour (host root confinement, in-memory accounting) is tested in the
backend's own module.
"""

from __future__ import annotations

import asyncio
import itertools
from abc import abstractmethod

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from floppy.errors import (
    AlreadyExistsError,
    DirectoryNotEmptyError,
    InvalidDataError,
    InvalidInputError,
    IsDirectoryError,
    NotDirectoryError,
    NotFoundError,
    TooManyLinksError,
)
from floppy.filesystem import FileType, Filesystem, OpenOptions, SeekFrom

from .aio import collect_entries, run

_names = st.text(alphabet="abcxyz019_-. ", min_size=1, max_size=16).filter(
    lambda name: name not in {".", ".."}
)
_round_trip_ids = itertools.count()


class FilesystemContractSuite:
    """Abstract test suite for Filesystem protocol compliance.

    Subclasses must implement the ``fs`` fixture.

    This suite validates:
    - Whole-file operations (read, read_to_string, write, copy, remove_file)
    - Directory operations (create_dir, create_dir_all, remove_dir,
      remove_dir_all, read_dir)
    - Handles (open options, cursor, append, clone, delete-while-open)
    - Rename replacement rules
    - Symlinks (symlink, read_link, canonicalize, loops)
    - The shared error taxonomy
    """

    @pytest.fixture
    @abstractmethod
    def fs(self) -> Filesystem:
        """Provide a fresh, empty, writable filesystem instance."""
        ...

    # -------------------------------------------------------------------------
    # Basic Properties
    # -------------------------------------------------------------------------

    def test_satisfies_protocol(self, fs: Filesystem) -> None:
        assert isinstance(fs, Filesystem)

    def test_read_only_property_default_false(self, fs: Filesystem) -> None:
        assert fs.read_only is False

    def test_root_exists(self, fs: Filesystem) -> None:
        assert run(fs.exists("/")) is True
        assert run(fs.metadata("/")).is_dir

    # -------------------------------------------------------------------------
    # Whole-file Operations
    # -------------------------------------------------------------------------

    def test_write_then_read_round_trip(self, fs: Filesystem) -> None:
        payload = bytes(range(256))

        async def scenario() -> bytes:
            await fs.write("/data.bin", payload)
            return await fs.read("/data.bin")

        assert run(scenario()) == payload

    @given(segments=st.lists(_names, min_size=1, max_size=3), payload=st.binary())
    @settings(
        max_examples=40,
        deadline=None,
        suppress_health_check=[
            HealthCheck.function_scoped_fixture,
            HealthCheck.differing_executors,
        ],
    )
    def test_write_then_read_round_trips_generated_paths(
        self, fs: Filesystem, segments: list[str], payload: bytes
    ) -> None:
        base = f"/round_trip_{next(_round_trip_ids)}"
        *directories, name = segments

        async def scenario() -> bytes:
            parent = "/".join([base, *directories])
            await fs.create_dir_all(parent)
            await fs.write(f"{parent}/{name}", payload)
            return await fs.read(f"{parent}/{name}")

        assert run(scenario()) == payload

    def test_write_str_is_utf8(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bytes, str]:
            await fs.write("/note.txt", "héllo")
            return await fs.read("/note.txt"), await fs.read_to_string("/note.txt")

        raw, text = run(scenario())
        assert raw == "héllo".encode()
        assert text == "héllo"

    def test_write_replaces_existing_content(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.write("/f.txt", b"a much longer first version")
            await fs.write("/f.txt", b"short")
            return await fs.read("/f.txt")

        assert run(scenario()) == b"short"

    def test_read_missing_raises_not_found(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.read("/missing.txt"))

    def test_not_found_is_builtin_file_not_found(self, fs: Filesystem) -> None:
        with pytest.raises(FileNotFoundError):
            run(fs.read("/missing.txt"))

    def test_read_directory_raises_is_a_directory(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            await fs.read("/d")

        with pytest.raises(IsDirectoryError):
            run(scenario())

    def test_write_missing_parent_raises_not_found(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.write("/no/such/file.txt", b"x"))

    def test_write_to_directory_raises_is_a_directory(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            await fs.write("/d", b"x")

        with pytest.raises(IsDirectoryError):
            run(scenario())

    def test_write_under_file_raises_not_a_directory(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            await fs.write("/f/child", b"y")

        with pytest.raises(NotDirectoryError):
            run(scenario())

    def test_read_to_string_rejects_invalid_utf8(self, fs: Filesystem) -> None:
        async def scenario() -> str:
            await fs.write("/bin", b"\xff\xfe\xfd")
            return await fs.read_to_string("/bin")

        with pytest.raises(InvalidDataError):
            run(scenario())

    def test_empty_path_is_not_found(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.read(""))

    def test_nul_in_path_is_invalid_input(self, fs: Filesystem) -> None:
        with pytest.raises(InvalidInputError):
            run(fs.write("/a\x00b", b"x"))

    def test_dot_and_dot_dot_are_lexical(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bytes, bytes]:
            await fs.create_dir_all("/a/b")
            await fs.write("/a/b/f.txt", b"x")
            first = await fs.read("/a/./b/../b/f.txt")
            second = await fs.read("/../../a/b/f.txt")
            return first, second

        assert run(scenario()) == (b"x", b"x")

    def test_relative_and_absolute_paths_agree(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.create_dir("/dir")
            await fs.write("dir/f.txt", b"rel")
            return await fs.read("/dir/f.txt")

        assert run(scenario()) == b"rel"

    # -------------------------------------------------------------------------
    # Copy
    # -------------------------------------------------------------------------

    def test_copy_returns_byte_count(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[int, bytes, bytes]:
            await fs.write("/src.txt", b"copy me")
            count = await fs.copy("/src.txt", "/dst.txt")
            return count, await fs.read("/dst.txt"), await fs.read("/src.txt")

        assert run(scenario()) == (7, b"copy me", b"copy me")

    def test_copy_overwrites_destination(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.write("/src.txt", b"new")
            await fs.write("/dst.txt", b"old and longer")
            _ = await fs.copy("/src.txt", "/dst.txt")
            return await fs.read("/dst.txt")

        assert run(scenario()) == b"new"

    def test_copy_directory_source_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            _ = await fs.copy("/d", "/e")

        with pytest.raises(IsDirectoryError):
            run(scenario())

    def test_copy_onto_directory_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            await fs.create_dir("/d")
            _ = await fs.copy("/f", "/d")

        with pytest.raises(IsDirectoryError):
            run(scenario())

    def test_copy_onto_itself_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            _ = await fs.copy("/f", "/./f")

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_copy_missing_source_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.copy("/missing", "/dst"))

    # -------------------------------------------------------------------------
    # Directories
    # -------------------------------------------------------------------------

    def test_create_dir(self, fs: Filesystem) -> None:
        async def scenario() -> bool:
            await fs.create_dir("/d")
            return (await fs.metadata("/d")).is_dir

        assert run(scenario()) is True

    def test_create_dir_existing_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            await fs.create_dir("/d")

        with pytest.raises(AlreadyExistsError):
            run(scenario())

    def test_create_dir_missing_parent_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.create_dir("/a/b"))

    def test_create_dir_all_is_idempotent(self, fs: Filesystem) -> None:
        async def scenario() -> list[bool]:
            await fs.create_dir_all("/a/b/c")
            await fs.create_dir_all("/a/b/c")
            await fs.create_dir_all("/a")
            return [
                (await fs.metadata(path)).is_dir for path in ("/a", "/a/b", "/a/b/c")
            ]

        assert run(scenario()) == [True, True, True]

    def test_create_dir_all_over_file_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            await fs.create_dir_all("/f")

        with pytest.raises(NotDirectoryError):
            run(scenario())

    def test_create_dir_all_through_file_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            await fs.create_dir_all("/f/g/h")

        with pytest.raises(NotDirectoryError):
            run(scenario())

    def test_create_dir_all_follows_directory_symlinks(self, fs: Filesystem) -> None:
        async def scenario() -> bool:
            await fs.create_dir("/real")
            await fs.symlink("/real", "/alias")
            await fs.create_dir_all("/alias/sub")
            return await fs.exists("/real/sub")

        assert run(scenario()) is True

    def test_remove_dir_empty(self, fs: Filesystem) -> None:
        async def scenario() -> bool:
            await fs.create_dir("/d")
            await fs.remove_dir("/d")
            return await fs.exists("/d")

        assert run(scenario()) is False

    def test_remove_dir_not_empty_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            await fs.write("/d/f", b"x")
            await fs.remove_dir("/d")

        with pytest.raises(DirectoryNotEmptyError):
            run(scenario())

    def test_remove_dir_on_file_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            await fs.remove_dir("/f")

        with pytest.raises(NotDirectoryError):
            run(scenario())

    def test_remove_dir_missing_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.remove_dir("/missing"))

    def test_remove_dir_root_raises(self, fs: Filesystem) -> None:
        with pytest.raises(InvalidInputError):
            run(fs.remove_dir("/"))

    def test_remove_dir_all_removes_tree(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, bool]:
            await fs.create_dir_all("/t/a/b")
            await fs.write("/t/a/b/f.txt", b"x")
            await fs.write("/t/g.txt", b"y")
            await fs.remove_dir_all("/t")
            return await fs.exists("/t"), await fs.exists("/t/a/b/f.txt")

        assert run(scenario()) == (False, False)

    def test_remove_dir_all_missing_raises_not_found(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.remove_dir_all("/missing"))

    def test_remove_dir_all_on_file_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            await fs.remove_dir_all("/f")

        with pytest.raises(NotDirectoryError):
            run(scenario())

    def test_remove_dir_all_root_raises(self, fs: Filesystem) -> None:
        with pytest.raises(InvalidInputError):
            run(fs.remove_dir_all("/"))

    def test_remove_dir_all_on_symlink_keeps_target(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, bool]:
            await fs.create_dir("/real")
            await fs.write("/real/f", b"keep")
            await fs.symlink("/real", "/alias")
            await fs.remove_dir_all("/alias")
            return await fs.exists("/alias"), await fs.exists("/real/f")

        assert run(scenario()) == (False, True)

    def test_read_dir_lists_entries(self, fs: Filesystem) -> None:
        async def scenario() -> dict[str, FileType]:
            await fs.create_dir("/d")
            await fs.write("/d/file.txt", b"x")
            await fs.create_dir("/d/sub")
            await fs.symlink("file.txt", "/d/link")
            entries = await collect_entries(fs, "/d")
            assert entries["file.txt"].path == "/d/file.txt"
            return {name: entry.file_type for name, entry in entries.items()}

        assert run(scenario()) == {
            "file.txt": FileType.FILE,
            "sub": FileType.DIRECTORY,
            "link": FileType.SYMLINK,
        }

    def test_read_dir_is_a_snapshot(self, fs: Filesystem) -> None:
        async def scenario() -> set[str]:
            await fs.create_dir("/d")
            await fs.write("/d/a", b"")
            listing = await fs.read_dir("/d")
            await fs.write("/d/b", b"")
            return {entry.name async for entry in listing}

        assert run(scenario()) == {"a"}

    def test_read_dir_stays_exhausted(self, fs: Filesystem) -> None:
        async def scenario() -> list[object]:
            await fs.create_dir("/d")
            await fs.write("/d/a", b"")
            listing = await fs.read_dir("/d")
            return [
                await listing.next_entry(),
                await listing.next_entry(),
                await listing.next_entry(),
            ]

        first, second, third = run(scenario())
        assert first is not None
        assert second is None
        assert third is None

    def test_read_dir_on_file_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            _ = await fs.read_dir("/f")

        with pytest.raises(NotDirectoryError):
            run(scenario())

    def test_read_dir_missing_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.read_dir("/missing"))

    # -------------------------------------------------------------------------
    # Remove File
    # -------------------------------------------------------------------------

    def test_remove_file(self, fs: Filesystem) -> None:
        async def scenario() -> bool:
            await fs.write("/f", b"x")
            await fs.remove_file("/f")
            return await fs.exists("/f")

        assert run(scenario()) is False

    def test_remove_file_missing_raises_not_found(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.remove_file("/missing"))

    def test_remove_file_on_directory_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            await fs.remove_file("/d")

        with pytest.raises(IsDirectoryError):
            run(scenario())

    def test_remove_file_on_symlink_keeps_target(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, bytes]:
            await fs.write("/target", b"data")
            await fs.symlink("/target", "/link")
            await fs.remove_file("/link")
            return await fs.exists("/link"), await fs.read("/target")

        assert run(scenario()) == (False, b"data")

    # -------------------------------------------------------------------------
    # Handles
    # -------------------------------------------------------------------------

    def test_open_defaults_to_read(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.write("/f", b"hello")
            async with await fs.open("/f") as handle:
                assert handle.options == OpenOptions.for_read()
                return await handle.read()

        assert run(scenario()) == b"hello"

    def test_open_missing_without_create_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.open("/missing", OpenOptions(read=True, write=True)))

    def test_open_with_create_makes_empty_file(self, fs: Filesystem) -> None:
        async def scenario() -> int:
            handle = await fs.open("/new", OpenOptions(write=True, create=True))
            await handle.close()
            return (await fs.metadata("/new")).size

        assert run(scenario()) == 0

    def test_open_exclusive_existing_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            _ = await fs.open("/f", OpenOptions(write=True, exclusive=True))

        with pytest.raises(AlreadyExistsError):
            run(scenario())

    def test_open_exclusive_on_dangling_symlink_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.symlink("/nowhere", "/link")
            _ = await fs.open("/link", OpenOptions(write=True, exclusive=True))

        with pytest.raises(AlreadyExistsError):
            run(scenario())

    def test_open_create_through_dangling_symlink(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.symlink("/target", "/link")
            async with await fs.open("/link", OpenOptions.for_write()) as handle:
                _ = await handle.write(b"via link")
            return await fs.read("/target")

        assert run(scenario()) == b"via link"

    def test_open_directory_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            _ = await fs.open("/d")

        with pytest.raises(IsDirectoryError):
            run(scenario())

    @pytest.mark.parametrize(
        "options",
        [
            OpenOptions(),
            OpenOptions(read=True, truncate=True),
            OpenOptions(append=True, truncate=True, write=True),
            OpenOptions(read=True, create=True),
        ],
    )
    def test_open_rejects_inconsistent_options(
        self, fs: Filesystem, options: OpenOptions
    ) -> None:
        with pytest.raises(InvalidInputError):
            run(fs.open("/f", options))

    def test_open_truncate_empties_file(self, fs: Filesystem) -> None:
        async def scenario() -> int:
            await fs.write("/f", b"content")
            handle = await fs.open("/f", OpenOptions(write=True, truncate=True))
            await handle.close()
            return (await fs.metadata("/f")).size

        assert run(scenario()) == 0

    def test_handle_read_write_seek(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bytes, bytes, int]:
            options = OpenOptions(read=True, write=True, create=True)
            async with await fs.open("/f", options) as handle:
                assert await handle.write(b"hello world") == 11
                assert handle.tell() == 11
                assert await handle.seek(6) == 6
                word = await handle.read(5)
                at_eof = await handle.read(10)
                end = await handle.seek(-5, SeekFrom.END)
                return word, at_eof, end

        assert run(scenario()) == (b"world", b"", 6)

    def test_seek_current(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.write("/f", b"abcdef")
            async with await fs.open("/f") as handle:
                _ = await handle.read(2)
                _ = await handle.seek(2, SeekFrom.CURRENT)
                return await handle.read()

        assert run(scenario()) == b"ef"

    def test_seek_negative_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"abc")
            async with await fs.open("/f") as handle:
                _ = await handle.seek(-1)

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_write_past_end_zero_fills(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            async with await fs.open("/f", OpenOptions.for_write()) as handle:
                _ = await handle.seek(4)
                _ = await handle.write(b"x")
            return await fs.read("/f")

        assert run(scenario()) == b"\x00\x00\x00\x00x"

    def test_append_writes_at_end(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.write("/log", b"one\n")
            async with await fs.open("/log", OpenOptions.for_append()) as handle:
                _ = await handle.write(b"two\n")
            async with await fs.open("/log", OpenOptions.for_append()) as handle:
                _ = await handle.write(b"three\n")
            return await fs.read("/log")

        assert run(scenario()) == b"one\ntwo\nthree\n"

    def test_write_on_read_only_handle_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            async with await fs.open("/f") as handle:
                _ = await handle.write(b"y")

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_read_on_write_only_handle_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            async with await fs.open("/f", OpenOptions.for_write()) as handle:
                _ = await handle.read()

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_closed_handle_raises_and_close_is_idempotent(
        self, fs: Filesystem
    ) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            handle = await fs.open("/f")
            await handle.close()
            await handle.close()
            assert handle.closed
            _ = await handle.read()

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_sync_data_persists_written_bytes(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            async with await fs.open("/f", OpenOptions.for_write()) as handle:
                _ = await handle.write(b"durable")
                await handle.sync_data()
                return await fs.read("/f")

        assert run(scenario()) == b"durable"

    def test_sync_data_on_closed_handle_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            handle = await fs.open("/f", OpenOptions.for_write())
            await handle.close()
            await handle.sync_data()

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_set_len_truncates_and_extends(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bytes, bytes]:
            await fs.write("/f", b"abcdef")
            options = OpenOptions(read=True, write=True)
            async with await fs.open("/f", options) as handle:
                await handle.set_len(3)
                shrunk = await fs.read("/f")
                await handle.set_len(5)
                await handle.sync_all()
            return shrunk, await fs.read("/f")

        assert run(scenario()) == (b"abc", b"abc\x00\x00")

    def test_handle_metadata(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, int]:
            async with await fs.open("/f", OpenOptions.for_write()) as handle:
                _ = await handle.write(b"12345")
                await handle.flush()
                meta = await handle.metadata()
            return meta.is_file, meta.size

        assert run(scenario()) == (True, 5)

    def test_try_clone_has_independent_cursor(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bytes, bytes, bytes]:
            await fs.write("/f", b"abcdef")
            async with await fs.open("/f") as handle:
                first = await handle.read(2)
                async with await handle.try_clone() as clone:
                    from_clone = await clone.read(2)
                    from_original = await handle.read(2)
            return first, from_clone, from_original

        assert run(scenario()) == (b"ab", b"cd", b"cd")

    def test_delete_while_open_keeps_content(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, bytes]:
            await fs.write("/f", b"still here")
            async with await fs.open("/f") as handle:
                await fs.remove_file("/f")
                gone = not await fs.exists("/f")
                content = await handle.read()
            with pytest.raises(NotFoundError):
                _ = await fs.open("/f")
            return gone, content

        assert run(scenario()) == (True, b"still here")

    def test_remove_dir_all_while_open_keeps_content(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.create_dir_all("/t/sub")
            await fs.write("/t/sub/f", b"survivor")
            options = OpenOptions(read=True, write=True)
            async with await fs.open("/t/sub/f", options) as handle:
                await fs.remove_dir_all("/t")
                _ = await handle.seek(0, SeekFrom.END)
                _ = await handle.write(b"!")
                _ = await handle.seek(0)
                return await handle.read()

        assert run(scenario()) == b"survivor!"

    # -------------------------------------------------------------------------
    # Rename
    # -------------------------------------------------------------------------

    def test_rename_moves_file(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, bytes]:
            await fs.create_dir("/d")
            await fs.write("/a", b"x")
            await fs.rename("/a", "/d/b")
            return await fs.exists("/a"), await fs.read("/d/b")

        assert run(scenario()) == (False, b"x")

    def test_rename_overwrites_file(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.write("/a", b"new")
            await fs.write("/b", b"old")
            await fs.rename("/a", "/b")
            return await fs.read("/b")

        assert run(scenario()) == b"new"

    def test_rename_file_onto_directory_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/a", b"x")
            await fs.create_dir("/d")
            await fs.rename("/a", "/d")

        with pytest.raises(AlreadyExistsError):
            run(scenario())

    def test_rename_directory_replaces_empty_directory(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, bool]:
            await fs.create_dir("/src")
            await fs.write("/src/f", b"x")
            await fs.create_dir("/dst")
            await fs.rename("/src", "/dst")
            return await fs.exists("/src"), await fs.exists("/dst/f")

        assert run(scenario()) == (False, True)

    def test_rename_directory_onto_non_empty_directory_raises(
        self, fs: Filesystem
    ) -> None:
        async def scenario() -> None:
            await fs.create_dir("/src")
            await fs.create_dir("/dst")
            await fs.write("/dst/f", b"x")
            await fs.rename("/src", "/dst")

        with pytest.raises(AlreadyExistsError):
            run(scenario())

    def test_rename_directory_onto_file_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/src")
            await fs.write("/f", b"x")
            await fs.rename("/src", "/f")

        with pytest.raises(AlreadyExistsError):
            run(scenario())

    def test_rename_into_own_descendant_raises(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[set[str], set[str]]:
            await fs.create_dir_all("/a/b")
            await fs.write("/a/b/f", b"x")
            before = set(await collect_entries(fs, "/a")) | set(
                await collect_entries(fs, "/a/b")
            )
            with pytest.raises(InvalidInputError):
                await fs.rename("/a", "/a/b/c")
            after = set(await collect_entries(fs, "/a")) | set(
                await collect_entries(fs, "/a/b")
            )
            return before, after

        before, after = run(scenario())
        assert before == after == {"b", "f"}

    def test_rename_under_missing_directory_inside_itself(
        self, fs: Filesystem
    ) -> None:
        async def scenario() -> tuple[bool, bool]:
            await fs.create_dir("/a")
            with pytest.raises(NotFoundError):
                await fs.rename("/a", "/a/missing/c")
            return await fs.exists("/a"), await fs.exists("/a/missing")

        assert run(scenario()) == (True, False)

    def test_rename_under_file_raises_not_a_directory(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/a")
            await fs.write("/a/f", b"")
            await fs.rename("/a", "/a/f/c")

        with pytest.raises(NotDirectoryError):
            run(scenario())

    def test_rename_root_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.create_dir("/d")
            await fs.rename("/", "/d/root")

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_rename_missing_source_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.rename("/missing", "/b"))

    def test_rename_onto_itself_is_noop(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.write("/a", b"x")
            await fs.rename("/a", "/./a")
            return await fs.read("/a")

        assert run(scenario()) == b"x"

    def test_rename_moves_symlink_not_target(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[str, bool]:
            await fs.write("/target", b"x")
            await fs.symlink("/target", "/link")
            await fs.rename("/link", "/moved")
            return await fs.read_link("/moved"), await fs.exists("/target")

        assert run(scenario()) == ("/target", True)

    # -------------------------------------------------------------------------
    # Symlinks
    # -------------------------------------------------------------------------

    def test_symlink_read_through(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bytes, bytes]:
            await fs.create_dir("/d")
            await fs.write("/d/f", b"abs")
            await fs.symlink("/d/f", "/abs_link")
            await fs.symlink("f", "/d/rel_link")
            return await fs.read("/abs_link"), await fs.read("/d/rel_link")

        assert run(scenario()) == (b"abs", b"abs")

    def test_parent_reference_after_followed_link_is_physical(
        self, fs: Filesystem
    ) -> None:
        async def scenario() -> tuple[bytes, str]:
            await fs.create_dir_all("/deep/dir")
            await fs.create_dir("/a")
            await fs.write("/deep/t", b"deep")
            await fs.write("/a/t", b"shallow")
            await fs.symlink("/deep/dir", "/a/m")
            await fs.symlink("m/../t", "/a/l")
            return await fs.read("/a/l"), await fs.canonicalize("/a/l")

        assert run(scenario()) == (b"deep", "/deep/t")

    def test_relative_symlink_with_parent_reference(self, fs: Filesystem) -> None:
        async def scenario() -> bytes:
            await fs.create_dir_all("/a/b")
            await fs.write("/a/f", b"up")
            await fs.symlink("../f", "/a/b/link")
            return await fs.read("/a/b/link")

        assert run(scenario()) == b"up"

    def test_read_link_returns_target_verbatim(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[str, str]:
            await fs.symlink("/somewhere/else", "/abs")
            await fs.symlink("../relative", "/rel")
            return await fs.read_link("/abs"), await fs.read_link("/rel")

        assert run(scenario()) == ("/somewhere/else", "../relative")

    def test_read_link_on_file_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            _ = await fs.read_link("/f")

        with pytest.raises(InvalidInputError):
            run(scenario())

    def test_symlink_existing_name_raises(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.write("/f", b"x")
            await fs.symlink("/elsewhere", "/f")

        with pytest.raises(AlreadyExistsError):
            run(scenario())

    def test_dangling_symlink(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[bool, bool, int]:
            await fs.symlink("/missing", "/dangling")
            meta = await fs.symlink_metadata("/dangling")
            return await fs.exists("/dangling"), meta.is_symlink, meta.size

        assert run(scenario()) == (False, True, len("/missing"))

    def test_metadata_follows_symlink(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[FileType, FileType]:
            await fs.write("/f", b"12345")
            await fs.symlink("/f", "/link")
            followed = await fs.metadata("/link")
            assert followed.size == 5
            own = await fs.symlink_metadata("/link")
            return followed.file_type, own.file_type

        assert run(scenario()) == (FileType.FILE, FileType.SYMLINK)

    def test_symlink_loop_raises_too_many_links(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.symlink("/b", "/a")
            await fs.symlink("/a", "/b")
            _ = await fs.metadata("/a")

        with pytest.raises(TooManyLinksError):
            run(scenario())

    def test_exists_propagates_symlink_loop(self, fs: Filesystem) -> None:
        async def scenario() -> None:
            await fs.symlink("loop", "/loop")
            _ = await fs.exists("/loop")

        with pytest.raises(TooManyLinksError):
            run(scenario())

    def test_canonicalize_resolves_symlinks(self, fs: Filesystem) -> None:
        async def scenario() -> str:
            await fs.create_dir_all("/real/inner")
            await fs.write("/real/inner/f", b"x")
            await fs.symlink("/real", "/alias")
            return await fs.canonicalize("/alias/./inner/../inner/f")

        assert run(scenario()) == "/real/inner/f"

    def test_canonicalize_missing_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.canonicalize("/missing"))

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def test_metadata_of_file_and_directory(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[int, bool, int, bool]:
            await fs.create_dir("/d")
            await fs.write("/d/f", b"abc")
            file_meta = await fs.metadata("/d/f")
            dir_meta = await fs.metadata("/d")
            return file_meta.size, file_meta.is_file, dir_meta.size, dir_meta.is_dir

        assert run(scenario()) == (3, True, 0, True)

    def test_metadata_missing_raises(self, fs: Filesystem) -> None:
        with pytest.raises(NotFoundError):
            run(fs.metadata("/missing"))

    def test_exists_through_file_is_false(self, fs: Filesystem) -> None:
        async def scenario() -> bool:
            await fs.write("/f", b"x")
            return await fs.exists("/f/child")

        assert run(scenario()) is False

    # -------------------------------------------------------------------------
    # Scenarios
    # -------------------------------------------------------------------------

    def test_end_to_end_scenario(self, fs: Filesystem) -> None:
        async def scenario() -> tuple[str, list[str]]:
            await fs.create_dir_all("/a/b/c")
            await fs.write("/a/b/c/d.txt", "hi")
            text = await fs.read_to_string("/a/b/c/d.txt")
            names = sorted(await collect_entries(fs, "/a/b/c"))
            return text, names

        assert run(scenario()) == ("hi", ["d.txt"])

    def test_concurrent_operations_are_independent(self, fs: Filesystem) -> None:
        async def scenario() -> list[bytes]:
            await fs.create_dir("/many")
            _ = await asyncio.gather(
                *(fs.write(f"/many/{index}.txt", str(index)) for index in range(20))
            )
            return list(
                await asyncio.gather(
                    *(fs.read(f"/many/{index}.txt") for index in range(20))
                )
            )

        assert run(scenario()) == [str(index).encode() for index in range(20)]


__all__ = ["FilesystemContractSuite"]
