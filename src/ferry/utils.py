"""Path utilities: normalization, name validation, target names, volumes."""

from __future__ import annotations

import os
from pathlib import Path

from .exceptions import InvalidArgumentError, OperationFailedError

# =============================================================================
# Name rules
# =============================================================================

IS_WINDOWS = os.name == "nt"

# Reserved device names (Windows)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}

POSIX_INVALID_CHARS = frozenset("/\x00")
WINDOWS_INVALID_CHARS = frozenset('/\\:*?"<>|\x00') | frozenset(chr(c) for c in range(1, 32))

MAX_NAME_LENGTH = 255

# =============================================================================
# Buffer policy
# =============================================================================

KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB

_BUFFER_TIERS = (
    (64 * KiB, 4 * KiB),
    (16 * MiB, 64 * KiB),
    (1 * GiB, 1 * MiB),
)
_LARGEST_BUFFER = 4 * MiB


def buffer_size_for(size: int) -> int:
    """Chunk size for transferring *size* bytes; larger files get larger chunks."""
    for limit, buffer_size in _BUFFER_TIERS:
        if size <= limit:
            return buffer_size
    return _LARGEST_BUFFER


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Return *path* as an absolute, normalized string.

    Examples:
        normalize_path("a/../b.txt") -> "<cwd>/b.txt"
        normalize_path("/tmp//x/") -> "/tmp/x"
    """
    raw = os.fspath(path)
    if not raw or not raw.strip():
        raise InvalidArgumentError("Path must not be empty")
    return os.path.abspath(raw)


def same_path(a: str | os.PathLike[str], b: str | os.PathLike[str]) -> bool:
    """Compare two paths using the host's case rules."""
    return os.path.normcase(normalize_path(a)) == os.path.normcase(normalize_path(b))


def is_within(path: str, directory: str) -> bool:
    """True when *path* equals *directory* or lies beneath it."""
    path = os.path.normcase(normalize_path(path))
    directory = os.path.normcase(normalize_path(directory))
    return path == directory or path.startswith(directory.rstrip(os.sep) + os.sep)


def validate_name(name: str) -> tuple[bool, str]:
    """Validate a single file or directory name for the host OS.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if not name or not name.strip():
        return False, "Name must not be empty or whitespace"

    if name in (".", ".."):
        return False, f"Name is not allowed: {name}"

    if len(name) > MAX_NAME_LENGTH:
        return False, f"Name too long (max {MAX_NAME_LENGTH} characters)"

    invalid = WINDOWS_INVALID_CHARS if IS_WINDOWS else POSIX_INVALID_CHARS
    bad = sorted({ch for ch in name if ch in invalid})
    if bad:
        shown = ", ".join(repr(ch) for ch in bad)
        return False, f"Name contains invalid characters: {shown}"

    # Backslash is rejected on every host.
    if "\\" in name:
        return False, "Name contains a path separator"

    if IS_WINDOWS:
        base_name = name.upper().split(".")[0]
        if base_name in RESERVED_NAMES:
            return False, f"Reserved filename: {name}"
        if name.endswith((" ", ".")):
            return False, "Name must not end with a space or a dot"

    return True, ""


def require_valid_name(name: str) -> str:
    """Return *name* unchanged or raise ``InvalidArgumentError``."""
    valid, error = validate_name(name)
    if not valid:
        raise InvalidArgumentError(error)
    return name


def split_name(name: str) -> tuple[str, str]:
    """Split *name* into (stem, extension), keeping dotfiles whole.

    Examples:
        split_name("report.pdf") -> ("report", ".pdf")
        split_name("archive.tar.gz") -> ("archive.tar", ".gz")
        split_name(".bashrc") -> (".bashrc", "")
    """
    stem, ext = os.path.splitext(name)
    return stem, ext


def unique_name(directory: str, name: str) -> str:
    """Return *name*, or ``"stem (n).ext"`` with the smallest free ``n``."""
    if not os.path.lexists(os.path.join(directory, name)):
        return name
    stem, ext = split_name(name)
    count = 1
    while True:
        candidate = f"{stem} ({count}){ext}"
        if not os.path.lexists(os.path.join(directory, candidate)):
            return candidate
        count += 1


def prepare_directory(destination_dir: str | os.PathLike[str]) -> str:
    """Check that *destination_dir* is usable as a target directory and create it."""
    destination = normalize_path(destination_dir)
    if os.path.isfile(destination):
        raise InvalidArgumentError(
            f"The '{destination}' points to an existing file. "
            "Please provide a valid directory path."
        )

    try:
        os.makedirs(destination, exist_ok=True)
    except OSError as e:
        raise OperationFailedError(
            f"Failed to process destination path '{destination}'.",
            path=destination,
            cause=e,
        ) from e
    return destination


def target_path(directory: str, name: str, overwrite: bool) -> str:
    """Path for *name* in *directory*; numbered when taken and not overwriting."""
    if overwrite:
        return os.path.join(directory, name)
    return os.path.join(directory, unique_name(directory, name))


# =============================================================================
# Volumes
# =============================================================================


def volume_id(path: str) -> int:
    """Device id of *path*, or of its closest existing ancestor."""
    current = Path(path)
    while not current.exists():
        if current.parent == current:
            break
        current = current.parent
    return current.stat().st_dev


def is_same_volume(source: str, destination: str) -> bool:
    """True when a rename from *source* to *destination* stays on one device.

    Returns False when either side cannot be inspected, which routes the
    caller to the copy-then-delete path.
    """
    try:
        return volume_id(source) == volume_id(os.path.dirname(destination))
    except OSError:
        return False
