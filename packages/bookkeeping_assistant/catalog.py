"""Per-ledger subject catalog stores.

The classifier only talks to the :class:`SubjectCatalog` protocol. Two
implementations ship here:

- :class:`SqlAlchemyCatalog`: ``ba_subjects``/``ba_entries`` through an async
  SQLAlchemy engine (see ``db.client.Database``).
- :class:`InMemoryCatalog`: process-local dictionaries, used by tests and by
  the CLI when pointed at a seed file.

Synonym writes are full replacements guarded by an optimistic ``version``
token: a write whose ``expected_version`` is stale raises
:class:`SynonymWriteConflict` and changes nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from pathlib import Path
from typing import Protocol, TypeVar

from db.client import Database
from db.models.ledger import BaEntry, BaSubject
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from .logging_setup import get_logger
from .models import Subject
from .normalization import join_synonyms, split_synonyms

_logger = get_logger("bookkeeping_assistant.catalog")

T = TypeVar("T")


# ---------------------------
# Errors
# ---------------------------


class CatalogError(RuntimeError):
    """Base class for catalog store failures."""

    retryable: bool = False


class CatalogUnavailable(CatalogError):
    """The store could not be reached or did not answer in time."""

    retryable = True


class SynonymPersistFailure(CatalogError):
    """A synonym write-back failed; stored state is unchanged."""

    retryable = True


class SynonymWriteConflict(CatalogError):
    """The subject changed since it was read (stale ``expected_version``)."""

    retryable = True


# ---------------------------
# Records and protocol
# ---------------------------


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """A booked entry, kept so later learning can mine its ``synonym_hint``."""

    major_code: str
    sub_code: str
    subject_name: str
    synonym_hint: str | None = None
    amount: int | None = None
    raw_amount: str | None = None
    payment_method: str | None = None
    remark: str | None = None
    user_type: str = "J"


class SubjectCatalog(Protocol):
    async def list_subjects(self, ledger_id: str) -> list[Subject]: ...

    async def get_subject(
        self, ledger_id: str, major_code: str, sub_code: str
    ) -> Subject | None: ...

    async def replace_synonyms(
        self,
        ledger_id: str,
        major_code: str,
        sub_code: str,
        synonyms: Sequence[str],
        *,
        expected_version: int,
    ) -> Subject: ...

    async def list_entry_synonyms(
        self, ledger_id: str, major_code: str, sub_code: str
    ) -> list[str]: ...

    async def record_entry(self, ledger_id: str, entry: LedgerEntry) -> None: ...


async def with_timeout(awaitable: Awaitable[T], seconds: float | None, *, what: str) -> T:
    """Await ``awaitable``; translate expiry into :class:`CatalogUnavailable`."""

    if seconds is None:
        return await awaitable
    try:
        async with asyncio.timeout(seconds):
            return await awaitable
    except TimeoutError as e:
        _logger.warning("catalog %s timed out after %.2fs", what, seconds)
        raise CatalogUnavailable(f"catalog {what} timed out after {seconds:.2f}s") from e


# ---------------------------
# In-memory store
# ---------------------------


class InMemoryCatalog:
    """Dictionary-backed catalog honoring the same versioning contract."""

    def __init__(self, subjects: Mapping[str, Iterable[Subject]] | None = None) -> None:
        self._subjects: dict[str, list[Subject]] = {
            ledger: list(items) for ledger, items in (subjects or {}).items()
        }
        self._entries: dict[str, list[LedgerEntry]] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_seed_file(cls, path: Path, *, ledger_id: str) -> InMemoryCatalog:
        from .ingest.seed_catalog import load_seed, subjects_from_seed

        return cls({ledger_id: subjects_from_seed(load_seed(path))})

    def add_subject(self, ledger_id: str, subject: Subject) -> None:
        self._subjects.setdefault(ledger_id, []).append(subject)

    def entries(self, ledger_id: str) -> list[LedgerEntry]:
        return list(self._entries.get(ledger_id, []))

    async def list_subjects(self, ledger_id: str) -> list[Subject]:
        return list(self._subjects.get(ledger_id, []))

    async def get_subject(self, ledger_id: str, major_code: str, sub_code: str) -> Subject | None:
        for subject in self._subjects.get(ledger_id, []):
            if subject.major_code == major_code and subject.sub_code == sub_code:
                return subject
        return None

    async def replace_synonyms(
        self,
        ledger_id: str,
        major_code: str,
        sub_code: str,
        synonyms: Sequence[str],
        *,
        expected_version: int,
    ) -> Subject:
        async with self._lock:
            items = self._subjects.get(ledger_id, [])
            for idx, subject in enumerate(items):
                if subject.major_code != major_code or subject.sub_code != sub_code:
                    continue
                if subject.version != expected_version:
                    raise SynonymWriteConflict(
                        f"{subject.code}: expected version {expected_version}, "
                        f"found {subject.version}"
                    )
                updated = replace(
                    subject, synonyms=split_synonyms(synonyms), version=subject.version + 1
                )
                items[idx] = updated
                return updated
        raise SynonymPersistFailure(f"subject {major_code}-{sub_code} not found in {ledger_id}")

    async def list_entry_synonyms(self, ledger_id: str, major_code: str, sub_code: str) -> list[str]:
        return [
            e.synonym_hint
            for e in self._entries.get(ledger_id, [])
            if e.major_code == major_code and e.sub_code == sub_code and e.synonym_hint
        ]

    async def record_entry(self, ledger_id: str, entry: LedgerEntry) -> None:
        self._entries.setdefault(ledger_id, []).append(entry)


# ---------------------------
# SQLAlchemy store
# ---------------------------


def _row_to_subject(row: BaSubject) -> Subject:
    return Subject(
        major_code=row.major_code,
        major_name=row.major_name,
        sub_code=row.sub_code,
        sub_name=row.sub_name,
        synonyms=split_synonyms(row.synonyms),
        version=row.version,
    )


def _subject_key(ledger_id: str, major_code: str, sub_code: str):
    return (
        BaSubject.ledger_id == ledger_id,
        BaSubject.major_code == major_code,
        BaSubject.sub_code == sub_code,
    )


class SqlAlchemyCatalog:
    """Catalog stored in ``ba_subjects`` with history in ``ba_entries``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_subjects(self, ledger_id: str) -> list[Subject]:
        stmt = (
            select(BaSubject)
            .where(BaSubject.ledger_id == ledger_id, BaSubject.is_active.is_(True))
            .order_by(
                BaSubject.sort_order.is_(None),
                BaSubject.sort_order,
                BaSubject.major_code,
                BaSubject.sub_code,
            )
        )
        try:
            async with self._db.session_scope() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [_row_to_subject(r) for r in rows]
        except SQLAlchemyError as e:
            _logger.warning("list_subjects(%s) failed", ledger_id, exc_info=True)
            raise CatalogUnavailable(f"failed to read subjects for {ledger_id}: {e}") from e

    async def get_subject(self, ledger_id: str, major_code: str, sub_code: str) -> Subject | None:
        stmt = select(BaSubject).where(*_subject_key(ledger_id, major_code, sub_code))
        try:
            async with self._db.session_scope() as session:
                row = (await session.execute(stmt)).scalars().first()
                return _row_to_subject(row) if row is not None else None
        except SQLAlchemyError as e:
            raise CatalogUnavailable(
                f"failed to read subject {major_code}-{sub_code} for {ledger_id}: {e}"
            ) from e

    async def replace_synonyms(
        self,
        ledger_id: str,
        major_code: str,
        sub_code: str,
        synonyms: Sequence[str],
        *,
        expected_version: int,
    ) -> Subject:
        # Conditional write: only succeeds against the version that was read.
        stmt = (
            update(BaSubject)
            .where(
                *_subject_key(ledger_id, major_code, sub_code),
                BaSubject.version == expected_version,
            )
            .values(
                synonyms=join_synonyms(synonyms),
                version=BaSubject.version + 1,
                updated_at=func.current_timestamp(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._db.session_scope() as session:
                result = await session.execute(stmt)
                if (result.rowcount or 0) == 0:
                    raise SynonymWriteConflict(
                        f"{major_code}-{sub_code}: version {expected_version} is stale"
                    )
                row = (
                    (
                        await session.execute(
                            select(BaSubject).where(*_subject_key(ledger_id, major_code, sub_code))
                        )
                    )
                    .scalars()
                    .one()
                )
                return _row_to_subject(row)
        except SQLAlchemyError as e:
            _logger.warning("replace_synonyms(%s-%s) failed", major_code, sub_code, exc_info=True)
            raise SynonymPersistFailure(
                f"failed to write synonyms for {major_code}-{sub_code}: {e}"
            ) from e

    async def list_entry_synonyms(self, ledger_id: str, major_code: str, sub_code: str) -> list[str]:
        stmt = (
            select(BaEntry.synonym_hint)
            .where(
                BaEntry.ledger_id == ledger_id,
                BaEntry.major_code == major_code,
                BaEntry.sub_code == sub_code,
                BaEntry.synonym_hint.is_not(None),
            )
            .order_by(BaEntry.id)
        )
        try:
            async with self._db.session_scope() as session:
                return [s for s in (await session.execute(stmt)).scalars().all() if s]
        except SQLAlchemyError as e:
            raise CatalogUnavailable(f"failed to read entries for {ledger_id}: {e}") from e

    async def record_entry(self, ledger_id: str, entry: LedgerEntry) -> None:
        try:
            async with self._db.session_scope() as session:
                session.add(
                    BaEntry(
                        ledger_id=ledger_id,
                        major_code=entry.major_code,
                        sub_code=entry.sub_code,
                        subject_name=entry.subject_name,
                        synonym_hint=entry.synonym_hint,
                        amount=Decimal(entry.amount) if entry.amount is not None else None,
                        raw_amount=entry.raw_amount,
                        payment_method=entry.payment_method,
                        remark=entry.remark,
                        user_type=entry.user_type,
                    )
                )
        except SQLAlchemyError as e:
            raise CatalogUnavailable(f"failed to record entry for {ledger_id}: {e}") from e


__all__ = [
    "CatalogError",
    "CatalogUnavailable",
    "InMemoryCatalog",
    "LedgerEntry",
    "SqlAlchemyCatalog",
    "SubjectCatalog",
    "SynonymPersistFailure",
    "SynonymWriteConflict",
    "with_timeout",
]
