from __future__ import annotations

# Seeder for a ledger's two-level subject catalog.
#
# Usage (example):
#   python -m bookkeeping_assistant.ingest.seed_catalog \
#     --database-url sqlite+aiosqlite:///catalog.db \
#     --ledger-id user_U123 \
#     --file packages/bookkeeping_assistant/ingest/seeds/subjects.v1.json
#
# This script:
#   1) Validates the seed JSON (a list of major groups, each with children).
#   2) Replaces the ledger's subjects, preserving input order via sort_order.
#   3) Leaves classified entry history (ba_entries) untouched.
import argparse
import asyncio
import json
from pathlib import Path
from typing import Any

from db.client import Database
from db.models.ledger import BaSubject
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Subject
from ..normalization import join_synonyms, split_synonyms


class SeedSubject(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    synonyms: tuple[str, ...] = ()
    is_active: bool = True

    @field_validator("synonyms", mode="before")
    @classmethod
    def _split(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str | list | tuple):
            return split_synonyms(v)
        raise ValueError("synonyms must be a comma-joined string or a list of strings")


class SeedMajor(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    children: list[SeedSubject] = Field(default_factory=list)


def load_seed(path: Path) -> list[SeedMajor]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return parse_seed(data)


def parse_seed(data: Any) -> list[SeedMajor]:
    if not isinstance(data, list):
        raise ValueError("Seed JSON must be a list of major subject groups")
    return [SeedMajor.model_validate(item) for item in data]


def subjects_from_seed(majors: list[SeedMajor], *, include_inactive: bool = False) -> list[Subject]:
    """Flatten validated seed groups into catalog-ordered :class:`Subject` records."""

    out: list[Subject] = []
    for major in majors:
        for child in major.children:
            if not child.is_active and not include_inactive:
                continue
            out.append(
                Subject(
                    major_code=major.code,
                    major_name=major.name,
                    sub_code=child.code,
                    sub_name=child.name,
                    synonyms=child.synonyms,
                )
            )
    return out


async def seed_catalog(session: AsyncSession, *, ledger_id: str, majors: list[SeedMajor]) -> int:
    """Replace ``ledger_id``'s subjects with ``majors``; return the row count."""

    await session.execute(delete(BaSubject).where(BaSubject.ledger_id == ledger_id))
    count = 0
    for major_index, major in enumerate(majors):
        for child_index, child in enumerate(major.children):
            session.add(
                BaSubject(
                    ledger_id=ledger_id,
                    major_code=major.code,
                    major_name=major.name,
                    sub_code=child.code,
                    sub_name=child.name,
                    synonyms=join_synonyms(child.synonyms),
                    is_active=child.is_active,
                    sort_order=major_index * 100 + child_index,
                    version=1,
                )
            )
            count += 1
    await session.flush()
    return count


async def reseed(*, database_url: str | None, ledger_id: str, file: Path) -> int:
    majors = load_seed(file)
    database = Database.from_url(database_url)
    try:
        await database.create_all()
        async with database.session_scope() as session:
            return await seed_catalog(session, ledger_id=ledger_id, majors=majors)
    finally:
        await database.dispose()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Reseed a ledger's subject catalog")
    ap.add_argument(
        "--database-url",
        required=False,
        default=None,
        help="SQLAlchemy async database URL; falls back to $DATABASE_URL when not set",
    )
    ap.add_argument("--ledger-id", required=True)
    ap.add_argument(
        "--file",
        type=Path,
        required=False,
        default=Path(__file__).resolve().parent / "seeds" / "subjects.v1.json",
    )
    args = ap.parse_args(argv)

    count = asyncio.run(
        reseed(database_url=args.database_url or None, ledger_id=args.ledger_id, file=args.file)
    )
    print(f"Seeded {count} subjects into ledger {args.ledger_id}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual utility
    raise SystemExit(main())
