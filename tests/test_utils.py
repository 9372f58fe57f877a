"""Tests for utils.py — names, destinations, buffer policy, volumes."""

from __future__ import annotations

import os

import pytest

from ferry.exceptions import InvalidArgumentError
from ferry.utils import (
    KiB,
    MiB,
    buffer_size_for,
    is_same_volume,
    is_within,
    normalize_path,
    prepare_directory,
    require_valid_name,
    same_path,
    split_name,
    target_path,
    unique_name,
    validate_name,
)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


class TestNormalizePath:
    def test_absolute(self) -> None:
        assert normalize_path("x.txt") == os.path.join(os.getcwd(), "x.txt")

    def test_collapses_dots(self, tmp_path) -> None:
        assert normalize_path(tmp_path / "a" / ".." / "b") == str(tmp_path / "b")

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_empty_rejected(self, raw: str) -> None:
        with pytest.raises(InvalidArgumentError):
            normalize_path(raw)


class TestPathRelations:
    def test_same_path(self, tmp_path) -> None:
        assert same_path(tmp_path / "a", f"{tmp_path}/b/../a")

    def test_is_within(self, tmp_path) -> None:
        assert is_within(str(tmp_path / "a" / "b"), str(tmp_path / "a"))
        assert is_within(str(tmp_path / "a"), str(tmp_path / "a"))

    def test_sibling_prefix_is_not_within(self, tmp_path) -> None:
        assert not is_within(str(tmp_path / "ab"), str(tmp_path / "a"))


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------


class TestValidateName:
    @pytest.mark.parametrize(
        "name",
        [
            pytest.param("", id="empty"),
            pytest.param("   ", id="whitespace"),
            pytest.param("a/b", id="slash"),
            pytest.param("a\\b", id="backslash"),
            pytest.param(".", id="dot"),
            pytest.param("..", id="dotdot"),
            pytest.param("a\x00b", id="nul"),
            pytest.param("x" * 256, id="too-long"),
        ],
    )
    def test_invalid(self, name: str) -> None:
        valid, error = validate_name(name)
        assert not valid
        assert error

    @pytest.mark.parametrize("name", ["report.pdf", ".bashrc", "a b c", "x" * 255])
    def test_valid(self, name: str) -> None:
        assert validate_name(name) == (True, "")


class TestSplitName:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            pytest.param("report.pdf", ("report", ".pdf"), id="simple"),
            pytest.param("archive.tar.gz", ("archive.tar", ".gz"), id="double"),
            pytest.param(".bashrc", (".bashrc", ""), id="dotfile"),
            pytest.param("README", ("README", ""), id="no-ext"),
        ],
    )
    def test_split(self, name: str, expected: tuple[str, str]) -> None:
        assert split_name(name) == expected


class TestUniqueName:
    def test_free_name_unchanged(self, tmp_path) -> None:
        assert unique_name(str(tmp_path), "a.txt") == "a.txt"

    def test_first_free_number(self, tmp_path) -> None:
        (tmp_path / "a.txt").write_bytes(b"")
        (tmp_path / "a (1).txt").write_bytes(b"")
        assert unique_name(str(tmp_path), "a.txt") == "a (2).txt"

    def test_directory_without_extension(self, tmp_path) -> None:
        (tmp_path / "docs").mkdir()
        assert unique_name(str(tmp_path), "docs") == "docs (1)"


class TestPrepareDirectory:
    def test_creates_missing_directory(self, tmp_path) -> None:
        target = tmp_path / "new" / "dir"
        assert prepare_directory(target) == str(target)
        assert target.is_dir()

    def test_existing_directory_kept(self, tmp_path) -> None:
        (tmp_path / "keep.txt").write_bytes(b"x")
        assert prepare_directory(tmp_path) == str(tmp_path)
        assert (tmp_path / "keep.txt").read_bytes() == b"x"

    def test_file_destination_rejected(self, tmp_path) -> None:
        (tmp_path / "f").write_bytes(b"")
        with pytest.raises(InvalidArgumentError, match="existing file"):
            prepare_directory(tmp_path / "f")


class TestTargetPath:
    def test_free_name(self, tmp_path) -> None:
        assert target_path(str(tmp_path), "a.txt", False) == str(tmp_path / "a.txt")

    def test_collision_renamed(self, tmp_path) -> None:
        (tmp_path / "a.txt").write_bytes(b"")
        assert target_path(str(tmp_path), "a.txt", False) == str(tmp_path / "a (1).txt")

    def test_collision_kept_with_overwrite(self, tmp_path) -> None:
        (tmp_path / "a.txt").write_bytes(b"")
        assert target_path(str(tmp_path), "a.txt", True) == str(tmp_path / "a.txt")


class TestRequireValidName:
    def test_returns_name(self) -> None:
        assert require_valid_name("b.txt") == "b.txt"

    def test_invalid_name(self) -> None:
        with pytest.raises(InvalidArgumentError):
            require_valid_name("x/y")


# ---------------------------------------------------------------------------
# Buffers and volumes
# ---------------------------------------------------------------------------


class TestBufferSize:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            pytest.param(0, 4 * KiB, id="empty"),
            pytest.param(64 * KiB, 4 * KiB, id="small-edge"),
            pytest.param(64 * KiB + 1, 64 * KiB, id="medium"),
            pytest.param(16 * MiB + 1, 1 * MiB, id="large"),
            pytest.param(2 * 1024 * MiB, 4 * MiB, id="huge"),
        ],
    )
    def test_tiers(self, size: int, expected: int) -> None:
        assert buffer_size_for(size) == expected


class TestSameVolume:
    def test_same_directory_tree(self, tmp_path) -> None:
        (tmp_path / "a").write_bytes(b"")
        assert is_same_volume(str(tmp_path / "a"), str(tmp_path / "missing" / "a"))
