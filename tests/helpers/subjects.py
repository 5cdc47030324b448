"""Builders for catalog fixtures."""

from __future__ import annotations

from datetime import UTC, datetime

from bookkeeping_assistant.models import Subject
from bookkeeping_assistant.normalization import split_synonyms

LEDGER = "user_U123"

# 2025-01-01 12:00 in Asia/Taipei
FIXED_NOW = datetime(2025, 1, 1, 4, 0, tzinfo=UTC)


def mk_subject(
    major_code: str,
    sub_code: str,
    sub_name: str,
    synonyms: str = "",
    *,
    major_name: str = "食物飲料",
) -> Subject:
    return Subject(
        major_code=major_code,
        major_name=major_name,
        sub_code=sub_code,
        sub_name=sub_name,
        synonyms=split_synonyms(synonyms),
    )
