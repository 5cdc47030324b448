"""Scoring and time-of-day policy table.

Every tunable number used by matching, disambiguation and acceptance lives
here so tie-break behaviour can be audited and tested in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .models import TimeSlot

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import AssistantConfig


@dataclass(frozen=True, slots=True)
class MatchPolicy:
    """Named constants for the tiered matcher and the pipeline gates.

    Attributes
    ----------
    min_containment_len:
        Catalog strings shorter than this never take part in compound
        containment (the term embedding a catalog string).
    input_contains_synonym_cap / input_contains_name_cap:
        Upper bounds for the compound-containment tier.
    contains_match_weight / contains_match_cap:
        Weight and bound when a subject name embeds the term.
    synonym_contains_weight / synonym_contains_cap:
        Weight and bound when a synonym embeds the term.
    levenshtein_threshold:
        Minimum normalized similarity kept by the edit-distance tier.
    levenshtein_name_weight / levenshtein_synonym_weight:
        Multipliers applied to edit-distance similarity.
    exact_score:
        Score of an exact name/synonym lookup.
    accept_threshold:
        Minimum score the pipeline accepts from the direct-containment and
        edit-distance tiers.
    time_default_confidence:
        Confidence assigned when time-of-day reasoning cannot decide.
    """

    min_containment_len: int = 2
    input_contains_synonym_cap: float = 0.95
    input_contains_name_cap: float = 0.90
    contains_match_weight: float = 0.95
    contains_match_cap: float = 0.95
    synonym_contains_weight: float = 0.98
    synonym_contains_cap: float = 0.98
    levenshtein_threshold: float = 0.6
    levenshtein_name_weight: float = 0.90
    levenshtein_synonym_weight: float = 0.95
    exact_score: float = 1.0
    accept_threshold: float = 0.7
    time_default_confidence: float = 0.7

    @classmethod
    def from_config(cls, config: AssistantConfig) -> MatchPolicy:
        return replace(
            DEFAULT_POLICY,
            levenshtein_threshold=config.fuzzy_threshold,
            accept_threshold=config.accept_threshold,
        )


DEFAULT_POLICY = MatchPolicy()

# Hour ranges are inclusive; ``midnight`` wraps past 00:00.
TIME_SLOTS: tuple[TimeSlot, ...] = (
    TimeSlot("breakfast", 5, 10, ("早餐", "早點", "早午餐"), 0.9),
    TimeSlot("lunch", 11, 14, ("午餐", "中餐", "便當", "午飯"), 0.9),
    TimeSlot("dinner", 17, 21, ("晚餐", "晚飯", "宵夜"), 0.9),
    TimeSlot("midnight", 22, 4, ("宵夜", "消夜", "夜宵"), 0.8),
)

# Parser vocabulary, checked in this order against the text after the amount.
PAYMENT_METHODS: tuple[str, ...] = ("現金", "刷卡", "行動支付", "轉帳", "信用卡")
# Sentinel used when the input names no payment method at all.
PAYMENT_METHOD_UNSPECIFIED = "預設"
# Extra tokens stripped from remarks besides the parser vocabulary.
REMARK_EXTRA_TOKENS: tuple[str, ...] = ("其他",)

UNKNOWN_SUBJECT = "未知科目"
INCOME_MAJOR_PREFIX = "8"
ACTION_INCOME = "收入"
ACTION_EXPENSE = "支出"


__all__ = [
    "ACTION_EXPENSE",
    "ACTION_INCOME",
    "DEFAULT_POLICY",
    "INCOME_MAJOR_PREFIX",
    "MatchPolicy",
    "PAYMENT_METHODS",
    "PAYMENT_METHOD_UNSPECIFIED",
    "REMARK_EXTRA_TOKENS",
    "TIME_SLOTS",
    "UNKNOWN_SUBJECT",
]
