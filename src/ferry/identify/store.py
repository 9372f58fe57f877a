"""Catalog store — persist and load signature definitions with SQLModel.

A catalog database holds a pre-built, versioned set of definitions.  It
is read once at startup; nothing here mutates a catalog after loading.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, LargeBinary
from sqlalchemy import delete as sa_delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import Field, Session, SQLModel, select

from ferry.exceptions import CatalogError

from .catalog import SignatureCatalog
from .types import Definition, Pattern, Signature

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class SignatureDefinitionRecord(SQLModel, table=True):
    """One definition row; patterns and strings live in child tables."""

    __tablename__ = "signature_definitions"

    id: int | None = Field(default=None, primary_key=True)
    ordinal: int = Field(default=0, index=True)
    file_type: str
    extension: str = Field(default="")
    mime_type: str = Field(default="")
    remarks: str = Field(default="")
    priority: int = Field(default=0)


class SignaturePatternRecord(SQLModel, table=True):
    __tablename__ = "signature_patterns"

    id: int | None = Field(default=None, primary_key=True)
    definition_id: int = Field(foreign_key="signature_definitions.id", index=True)
    ordinal: int = Field(default=0)
    position: int = Field(default=0)
    data: bytes = Field(sa_type=LargeBinary)


class SignatureStringRecord(SQLModel, table=True):
    __tablename__ = "signature_strings"

    id: int | None = Field(default=None, primary_key=True)
    definition_id: int = Field(foreign_key="signature_definitions.id", index=True)
    ordinal: int = Field(default=0)
    data: bytes = Field(sa_type=LargeBinary)


class CatalogInfo(SQLModel, table=True):
    """Version stamp written alongside every saved catalog."""

    __tablename__ = "signature_catalog_info"

    id: int | None = Field(default=None, primary_key=True)
    version: str
    total_definitions: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


CATALOG_TABLES = [
    SignatureDefinitionRecord.__table__,  # type: ignore[attr-defined]
    SignaturePatternRecord.__table__,  # type: ignore[attr-defined]
    SignatureStringRecord.__table__,  # type: ignore[attr-defined]
    CatalogInfo.__table__,  # type: ignore[attr-defined]
]

# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------


def save_catalog(engine: Engine, definitions: Iterable[Definition], version: str) -> int:
    """Replace the catalog stored behind *engine*. Return the definition count."""
    SQLModel.metadata.create_all(engine, tables=CATALOG_TABLES)
    count = 0
    with Session(engine) as session:
        for model in (
            SignaturePatternRecord,
            SignatureStringRecord,
            SignatureDefinitionRecord,
            CatalogInfo,
        ):
            session.execute(sa_delete(model))

        for ordinal, definition in enumerate(definitions):
            record = SignatureDefinitionRecord(
                ordinal=ordinal,
                file_type=definition.file_type,
                extension=definition.extension,
                mime_type=definition.mime_type,
                remarks=definition.remarks,
                priority=definition.priority,
            )
            session.add(record)
            session.flush()
            assert record.id is not None

            for i, pattern in enumerate(definition.signature.patterns):
                session.add(
                    SignaturePatternRecord(
                        definition_id=record.id,
                        ordinal=i,
                        position=pattern.position,
                        data=pattern.data,
                    )
                )
            for i, needle in enumerate(definition.signature.strings):
                session.add(SignatureStringRecord(definition_id=record.id, ordinal=i, data=needle))
            count += 1

        session.add(CatalogInfo(version=version, total_definitions=count))
        session.commit()

    logger.debug("Saved %d definitions as catalog version %r", count, version)
    return count


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def _assemble(
    info: CatalogInfo | None,
    records: Sequence[SignatureDefinitionRecord],
    patterns: Sequence[SignaturePatternRecord],
    strings: Sequence[SignatureStringRecord],
) -> SignatureCatalog:
    if info is None or not records:
        raise CatalogError("Signature catalog store is empty")

    patterns_by_def: dict[int, list[Pattern]] = {}
    for p in patterns:
        patterns_by_def.setdefault(p.definition_id, []).append(Pattern(p.position, bytes(p.data)))

    strings_by_def: dict[int, list[bytes]] = {}
    for s in strings:
        strings_by_def.setdefault(s.definition_id, []).append(bytes(s.data))

    definitions = [
        Definition(
            file_type=r.file_type,
            extension=r.extension,
            mime_type=r.mime_type,
            signature=Signature(
                patterns=tuple(patterns_by_def.get(r.id or 0, [])),
                strings=tuple(strings_by_def.get(r.id or 0, [])),
            ),
            priority=r.priority,
            remarks=r.remarks,
        )
        for r in records
    ]
    logger.debug("Loaded %d definitions, catalog version %r", len(definitions), info.version)
    return SignatureCatalog(definitions, version=info.version)


def _queries() -> tuple[Any, Any, Any, Any]:
    return (
        select(CatalogInfo).order_by(CatalogInfo.id.desc()),  # type: ignore[union-attr]
        select(SignatureDefinitionRecord).order_by(SignatureDefinitionRecord.ordinal),
        select(SignaturePatternRecord).order_by(
            SignaturePatternRecord.definition_id, SignaturePatternRecord.ordinal
        ),
        select(SignatureStringRecord).order_by(
            SignatureStringRecord.definition_id, SignatureStringRecord.ordinal
        ),
    )


def load_catalog(engine: Engine) -> SignatureCatalog:
    """Load the catalog stored behind a sync *engine*."""
    info_q, defs_q, pats_q, strs_q = _queries()
    try:
        with Session(engine) as session:
            info = session.exec(info_q).first()
            records = session.exec(defs_q).all()
            patterns = session.exec(pats_q).all()
            strings = session.exec(strs_q).all()
    except SQLAlchemyError as e:
        raise CatalogError(f"Cannot read signature catalog: {e}") from e
    return _assemble(info, records, patterns, strings)


async def load_catalog_async(engine: AsyncEngine) -> SignatureCatalog:
    """Load the catalog stored behind an async *engine*."""
    info_q, defs_q, pats_q, strs_q = _queries()
    try:
        async with AsyncSession(engine) as session:
            info = (await session.execute(info_q)).scalars().first()
            records = (await session.execute(defs_q)).scalars().all()
            patterns = (await session.execute(pats_q)).scalars().all()
            strings = (await session.execute(strs_q)).scalars().all()
    except SQLAlchemyError as e:
        raise CatalogError(f"Cannot read signature catalog: {e}") from e
    return _assemble(info, records, patterns, strings)
