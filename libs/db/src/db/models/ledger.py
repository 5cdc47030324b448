from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: ba_subjects
# ---------------------------


class BaSubject(Base):
    __tablename__ = "ba_subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ledger_id: Mapped[str] = mapped_column(String, nullable=False)
    major_code: Mapped[str] = mapped_column(String, nullable=False)
    major_name: Mapped[str] = mapped_column(String, nullable=False)
    sub_code: Mapped[str] = mapped_column(String, nullable=False)
    sub_name: Mapped[str] = mapped_column(String, nullable=False)
    # Comma-joined synonym set. Only the synonym learner rewrites this column,
    # always as a full replacement guarded by ``version``.
    synonyms: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Optimistic concurrency token; bumped on every synonym write.
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        UniqueConstraint("ledger_id", "major_code", "sub_code", name="uq_ba_subject_code"),
        Index("ix_ba_subjects_ledger", "ledger_id", "is_active"),
    )


# ---------------------------
# History: ba_entries
# ---------------------------


class BaEntry(Base):
    __tablename__ = "ba_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ledger_id: Mapped[str] = mapped_column(String, nullable=False)
    major_code: Mapped[str] = mapped_column(String, nullable=False)
    sub_code: Mapped[str] = mapped_column(String, nullable=False)
    subject_name: Mapped[str] = mapped_column(String, nullable=False)
    # Term the user typed when this entry was booked; learned back into the
    # subject's synonym set on later confirmations.
    synonym_hint: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    raw_amount: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_type: Mapped[str] = mapped_column(String(1), nullable=False, server_default=text("'J'"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (Index("ix_ba_entries_subject", "ledger_id", "major_code", "sub_code"),)


__all__ = [
    "Base",
    "BaEntry",
    "BaSubject",
]
