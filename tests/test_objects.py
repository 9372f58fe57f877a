"""Tests for FileObject and DirectoryObject — construction, lifecycle, children."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from ferry.context import StorageContext
from ferry.events import EventType, StorageEvent
from ferry.exceptions import InvalidArgumentError, ObjectDisposedError, StorageNotFoundError
from ferry.objects import DirectoryObject, FileObject

# =========================================================================
# Construction
# =========================================================================


class TestConstruction:
    def test_file(self, write_file) -> None:
        path = write_file("docs/a.txt")
        f = FileObject(path)
        assert f.full_path == str(path)
        assert f.name == "a.txt"
        assert f.parent_directory == str(path.parent)
        assert f.extension == ".txt"
        assert f.size == 5
        assert f.exists

    def test_relative_path_is_made_absolute(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "a.txt").write_bytes(b"")
        monkeypatch.chdir(tmp_path)
        assert FileObject("a.txt").full_path == str(tmp_path / "a.txt")

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(StorageNotFoundError):
            FileObject(tmp_path / "missing.txt")

    def test_file_object_on_directory(self, tmp_path) -> None:
        with pytest.raises(InvalidArgumentError):
            FileObject(tmp_path)

    def test_directory_object_on_file(self, write_file) -> None:
        with pytest.raises(InvalidArgumentError):
            DirectoryObject(write_file("a.txt"))

    def test_missing_directory(self, tmp_path) -> None:
        with pytest.raises(StorageNotFoundError):
            DirectoryObject(tmp_path / "missing")

    @pytest.mark.parametrize("raw", ["", "  "])
    def test_empty_path(self, raw: str) -> None:
        with pytest.raises(InvalidArgumentError):
            FileObject(raw)

    def test_create_directory(self, tmp_path, context, bus) -> None:
        seen: list[StorageEvent] = []
        bus.register(EventType.CREATED, seen.append)
        d = DirectoryObject(tmp_path / "x" / "y", create=True, context=context)
        assert os.path.isdir(d.full_path)
        assert seen == [StorageEvent(EventType.CREATED, d.full_path)]

    def test_create_existing_directory_is_quiet(self, tmp_path, context, bus) -> None:
        seen: list[StorageEvent] = []
        bus.register_all(seen.append)
        DirectoryObject(tmp_path, create=True, context=context)
        assert seen == []

    def test_create_over_file(self, write_file) -> None:
        path = write_file("a.txt")
        with pytest.raises(InvalidArgumentError):
            DirectoryObject(path, create=True)

    def test_default_context(self, write_file) -> None:
        assert isinstance(FileObject(write_file("a.txt")).context, StorageContext)


# =========================================================================
# Lifecycle and identity
# =========================================================================


class TestLifecycle:
    def test_dispose_is_idempotent(self, write_file) -> None:
        f = FileObject(write_file("a.txt"))
        f.dispose()
        f.dispose()
        assert f.disposed

    @pytest.mark.parametrize("attribute", ["full_path", "name", "exists", "metadata"])
    def test_disposed_object_refuses_access(self, write_file, attribute: str) -> None:
        f = FileObject(write_file("a.txt"))
        f.dispose()
        with pytest.raises(ObjectDisposedError):
            getattr(f, attribute)

    def test_disposed_object_refuses_mutation(self, tmp_path, write_file) -> None:
        path = write_file("a.txt")
        f = FileObject(path)
        f.dispose()
        with pytest.raises(ObjectDisposedError):
            f.copy(tmp_path / "out")
        assert path.exists()

    def test_context_manager_disposes(self, write_file) -> None:
        with FileObject(write_file("a.txt")) as f:
            assert f.name == "a.txt"
        assert f.disposed

    def test_context_manager_refuses_disposed(self, write_file) -> None:
        f = FileObject(write_file("a.txt"))
        f.dispose()
        with pytest.raises(ObjectDisposedError), f:
            pass

    def test_repr_marks_disposed(self, write_file) -> None:
        f = FileObject(write_file("a.txt"))
        f.dispose()
        assert "disposed" in repr(f)

    def test_fspath(self, write_file) -> None:
        path = write_file("a.txt", b"abc")
        assert Path(FileObject(path)).read_bytes() == b"abc"

    def test_equal_by_kind_and_path(self, tmp_path, write_file) -> None:
        path = write_file("a.txt")
        assert FileObject(path) == FileObject(f"{tmp_path}/./a.txt")
        assert len({FileObject(path), FileObject(path)}) == 1
        assert DirectoryObject(tmp_path) != FileObject(path)

    def test_rebind_keeps_context(self, tmp_path, context, write_file) -> None:
        f = FileObject(write_file("a.txt"), context=context)
        other = f.rebind(str(write_file("b.txt")))
        assert isinstance(other, FileObject)
        assert other.context is context


# =========================================================================
# Mutations through the object
# =========================================================================


class TestObjectMutations:
    def test_results_inherit_context(self, tmp_path, context, write_file) -> None:
        f = FileObject(write_file("a.txt"), context=context)
        copied = f.copy(tmp_path / "out")
        assert copied.context is context
        renamed = copied.rename("b.txt")
        assert renamed.context is context
        assert copied.disposed

    def test_move_disposes_original(self, tmp_path, write_file) -> None:
        f = FileObject(write_file("a.txt", b"data"))
        moved = f.move(tmp_path / "out")
        assert f.disposed
        assert Path(moved.full_path).read_bytes() == b"data"

    def test_delete(self, write_file) -> None:
        path = write_file("a.txt")
        f = FileObject(path)
        f.delete()
        assert not path.exists()
        assert f.disposed

    async def test_async_mutations(self, tmp_path, context, write_file) -> None:
        f = FileObject(write_file("a.txt", b"data"), context=context)
        copied = await f.copy_async(tmp_path / "out")
        moved = await copied.move_async(tmp_path / "moved")
        renamed = await moved.rename_async("b.txt")
        assert renamed.full_path == str(tmp_path / "moved" / "b.txt")
        await renamed.delete_async()
        assert not (tmp_path / "moved" / "b.txt").exists()
        assert (tmp_path / "a.txt").read_bytes() == b"data"


# =========================================================================
# Directory children
# =========================================================================


class TestDirectoryChildren:
    @pytest.fixture
    def tree(self, tmp_path, write_file) -> DirectoryObject:
        write_file("root/b.txt")
        write_file("root/a.log")
        write_file("root/sub/c.txt")
        write_file("root/sub/deeper/d.txt")
        return DirectoryObject(tmp_path / "root")

    def test_get_files(self, tree: DirectoryObject) -> None:
        assert [f.name for f in tree.get_files()] == ["a.log", "b.txt"]

    def test_get_files_pattern(self, tree: DirectoryObject) -> None:
        assert [f.name for f in tree.get_files("*.txt")] == ["b.txt"]

    def test_get_files_recursive(self, tree: DirectoryObject) -> None:
        names = [f.name for f in tree.get_files("*.txt", recursive=True)]
        assert sorted(names) == ["b.txt", "c.txt", "d.txt"]

    def test_get_directories(self, tree: DirectoryObject) -> None:
        assert [d.name for d in tree.get_directories()] == ["sub"]
        assert [d.name for d in tree.get_directories(recursive=True)] == ["sub", "deeper"]

    def test_children_share_context(self, tree: DirectoryObject) -> None:
        assert all(f.context is tree.context for f in tree.get_files())

    def test_get_file_and_directory(self, tree: DirectoryObject) -> None:
        assert tree.get_file("sub/c.txt").name == "c.txt"
        assert tree.get_directory("sub/deeper").name == "deeper"

    def test_get_file_missing(self, tree: DirectoryObject) -> None:
        with pytest.raises(StorageNotFoundError):
            tree.get_file("nope.txt")

    @pytest.mark.parametrize("relative", ["", "..", "../x.txt", "sub/../../x.txt", "."])
    def test_escape_rejected(self, tree: DirectoryObject, relative: str) -> None:
        with pytest.raises(InvalidArgumentError):
            tree.get_file(relative)

    def test_absolute_rejected(self, tree: DirectoryObject, tmp_path) -> None:
        with pytest.raises(InvalidArgumentError):
            tree.get_directory(str(tmp_path))

    def test_create_subdirectory(self, tree: DirectoryObject) -> None:
        created = tree.create_subdirectory("new/inner")
        assert os.path.isdir(created.full_path)
        assert created.parent_directory == os.path.join(tree.full_path, "new")

    @pytest.mark.parametrize("relative", ["bad\\name", "a/../../b"])
    def test_create_subdirectory_invalid(self, tree: DirectoryObject, relative: str) -> None:
        with pytest.raises(InvalidArgumentError):
            tree.create_subdirectory(relative)
