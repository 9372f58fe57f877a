"""SignatureCatalog — immutable, byte-indexed set of definitions."""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .types import Definition

logger = logging.getLogger(__name__)


class SignatureCatalog:
    """Definitions indexed by the leading byte of their first pattern.

    ``lookup(position, byte)`` returns the definitions whose first pattern
    starts at *position* with *byte*, so candidate discovery costs one dict
    lookup per header byte instead of a pass over every definition.
    Definitions without patterns are kept aside in :attr:`catch_all`.
    """

    def __init__(self, definitions: Iterable[Definition], *, version: str = "") -> None:
        self.version = version
        self._definitions: tuple[Definition, ...] = tuple(definitions)
        self._by_byte: dict[int, dict[int, list[Definition]]] = {}
        catch_all: list[Definition] = []

        for definition in self._definitions:
            patterns = definition.signature.patterns
            if not patterns:
                catch_all.append(definition)
                continue
            first = patterns[0]
            by_position = self._by_byte.setdefault(first.data[0], {})
            by_position.setdefault(first.position, []).append(definition)

        self.catch_all: tuple[Definition, ...] = tuple(catch_all)
        logger.debug(
            "Indexed %d definitions (%d catch-all), version %r",
            len(self._definitions),
            len(self.catch_all),
            version,
        )

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[Definition]:
        return iter(self._definitions)

    def __repr__(self) -> str:
        return f"<SignatureCatalog version={self.version!r} definitions={len(self)}>"

    def lookup(self, position: int, byte: int) -> list[Definition]:
        """Definitions whose first pattern begins with *byte* at *position*."""
        by_position = self._by_byte.get(byte)
        if not by_position:
            return []
        return by_position.get(position, [])

    def find_by_extension(self, extension: str) -> list[Definition]:
        ext = extension.lower().lstrip(".")
        return [d for d in self._definitions if d.extension.lower().lstrip(".") == ext]

    def find_by_mime_type(self, mime_type: str) -> list[Definition]:
        mime = mime_type.lower()
        return [d for d in self._definitions if d.mime_type.lower() == mime]

    @classmethod
    def builtin(cls) -> SignatureCatalog:
        """The catalog shipped with ferry (built once per process)."""
        return _builtin_catalog()


@functools.cache
def _builtin_catalog() -> SignatureCatalog:
    from .builtin import BUILTIN_VERSION, builtin_definitions

    return SignatureCatalog(builtin_definitions(), version=BUILTIN_VERSION)
