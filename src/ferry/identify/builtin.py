"""Built-in signature definitions for common file formats."""

from __future__ import annotations

from .types import Definition, Pattern, Signature

BUILTIN_VERSION = "2026.10"


def _priority(patterns: tuple[Pattern, ...]) -> int:
    priority = 100 if any(p.position == 0 for p in patterns) else 0
    return priority + len(patterns) * 10


def _define(
    file_type: str,
    extension: str,
    mime_type: str,
    patterns: list[tuple[int, bytes]],
    strings: tuple[bytes, ...] = (),
    remarks: str = "",
) -> Definition:
    pats = tuple(Pattern(position, data) for position, data in patterns)
    return Definition(
        file_type=file_type,
        extension=extension,
        mime_type=mime_type,
        signature=Signature(patterns=pats, strings=strings),
        priority=_priority(pats),
        remarks=remarks,
    )


_ZIP = (0, b"PK\x03\x04")
_RIFF = (0, b"RIFF")


def builtin_definitions() -> list[Definition]:
    """Return the shipped definitions, highest priority first."""
    definitions = [
        # Images
        _define("Portable Network Graphics", "png", "image/png", [(0, b"\x89PNG\r\n\x1a\n")]),
        _define("JPEG Bitmap", "jpg", "image/jpeg", [(0, b"\xff\xd8\xff")]),
        _define(
            "JPEG Bitmap (JFIF)", "jpg", "image/jpeg", [(0, b"\xff\xd8\xff\xe0"), (6, b"JFIF\x00")]
        ),
        _define(
            "JPEG Bitmap (EXIF)", "jpg", "image/jpeg", [(0, b"\xff\xd8\xff\xe1"), (6, b"Exif\x00")]
        ),
        _define("Graphics Interchange Format (87a)", "gif", "image/gif", [(0, b"GIF87a")]),
        _define("Graphics Interchange Format (89a)", "gif", "image/gif", [(0, b"GIF89a")]),
        _define("Windows Bitmap", "bmp", "image/bmp", [(0, b"BM")]),
        _define("Tagged Image File Format (little endian)", "tif", "image/tiff", [(0, b"II*\x00")]),
        _define("Tagged Image File Format (big endian)", "tif", "image/tiff", [(0, b"MM\x00*")]),
        _define("WebP Image", "webp", "image/webp", [_RIFF, (8, b"WEBPVP8")]),
        _define("Windows Icon", "ico", "image/vnd.microsoft.icon", [(0, b"\x00\x00\x01\x00")]),
        _define("Adobe Photoshop Image", "psd", "image/vnd.adobe.photoshop", [(0, b"8BPS")]),
        # Audio / video
        _define("Waveform Audio", "wav", "audio/wav", [_RIFF, (8, b"WAVEfmt ")]),
        _define("Audio Video Interleave", "avi", "video/x-msvideo", [_RIFF, (8, b"AVI LIST")]),
        _define("MP3 Audio (ID3v2)", "mp3", "audio/mpeg", [(0, b"ID3")]),
        _define("Free Lossless Audio Codec", "flac", "audio/flac", [(0, b"fLaC")]),
        _define("Ogg Container", "ogg", "audio/ogg", [(0, b"OggS\x00")]),
        _define("MPEG-4 Video (ISO)", "mp4", "video/mp4", [(4, b"ftypisom")]),
        _define("MPEG-4 Video (v2)", "mp4", "video/mp4", [(4, b"ftypmp42")]),
        _define("QuickTime Movie", "mov", "video/quicktime", [(4, b"ftypqt  ")]),
        _define("Matroska Video", "mkv", "video/x-matroska", [(0, b"\x1aE\xdf\xa3")]),
        # Documents
        _define(
            "Adobe Portable Document Format",
            "pdf",
            "application/pdf",
            [(0, b"%PDF-")],
            strings=(b"%%EOF",),
        ),
        _define("PostScript Document", "ps", "application/postscript", [(0, b"%!PS")]),
        _define("Rich Text Format", "rtf", "application/rtf", [(0, b"{\\rtf1")]),
        _define("Extensible Markup Language", "xml", "application/xml", [(0, b"<?xml ")]),
        # Archives
        _define("ZIP Compressed Archive", "zip", "application/zip", [_ZIP]),
        _define("ZIP Compressed Archive (empty)", "zip", "application/zip", [(0, b"PK\x05\x06")]),
        _define(
            "Office Open XML Document",
            "docx",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            [_ZIP],
            strings=(b"word/",),
        ),
        _define(
            "Office Open XML Workbook",
            "xlsx",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            [_ZIP],
            strings=(b"xl/",),
        ),
        _define(
            "Office Open XML Presentation",
            "pptx",
            "application/vnd.openxmlformats-officedocument.presentationml.presentation",
            [_ZIP],
            strings=(b"ppt/",),
        ),
        _define(
            "EPUB Electronic Publication",
            "epub",
            "application/epub+zip",
            [_ZIP, (30, b"mimetypeapplication/epub+zip")],
        ),
        _define(
            "Java Archive",
            "jar",
            "application/java-archive",
            [_ZIP],
            strings=(b"META-INF/MANIFEST.MF",),
        ),
        _define("GZIP Compressed Archive", "gz", "application/gzip", [(0, b"\x1f\x8b\x08")]),
        _define("BZIP2 Compressed Archive", "bz2", "application/x-bzip2", [(0, b"BZh")]),
        _define("XZ Compressed Archive", "xz", "application/x-xz", [(0, b"\xfd7zXZ\x00")]),
        _define(
            "7-Zip Compressed Archive",
            "7z",
            "application/x-7z-compressed",
            [(0, b"7z\xbc\xaf\x27\x1c")],
        ),
        _define("RAR Archive", "rar", "application/vnd.rar", [(0, b"Rar!\x1a\x07")]),
        _define("Tape Archive (POSIX)", "tar", "application/x-tar", [(257, b"ustar\x00")]),
        _define("Tape Archive (GNU)", "tar", "application/x-tar", [(257, b"ustar  \x00")]),
        # Executables / data
        _define("ELF Executable", "elf", "application/x-elf", [(0, b"\x7fELF")]),
        _define(
            "Windows Executable",
            "exe",
            "application/vnd.microsoft.portable-executable",
            [(0, b"MZ")],
        ),
        _define("Java Class", "class", "application/java-vm", [(0, b"\xca\xfe\xba\xbe")]),
        _define("WebAssembly Binary", "wasm", "application/wasm", [(0, b"\x00asm")]),
        _define(
            "SQLite Database", "sqlite", "application/vnd.sqlite3", [(0, b"SQLite format 3\x00")]
        ),
    ]
    definitions.sort(key=lambda d: d.priority, reverse=True)
    return definitions
