"""Data models and result shapes for ``bookkeeping_assistant``.

Records are frozen dataclasses and JSON-friendly (``to_dict`` where a caller
needs a plain mapping). Failures produced by parsing and classification are
values tagged by ``ok`` / ``kind`` rather than exceptions, so callers branch
on a field instead of inspecting message text.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal, TypeAlias

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Subject:
    """A ledger category: a ``major``/``sub`` code pair plus its synonym set.

    ``synonyms`` keeps a de-duplicated, trimmed tuple; membership is what
    matters, but the stored order drives first-seen tie-breaks in matching.
    ``version`` is the catalog's concurrency token for synonym writes.
    """

    major_code: str
    major_name: str
    sub_code: str
    sub_name: str
    synonyms: tuple[str, ...] = ()
    version: int = 1

    @property
    def code(self) -> str:
        return f"{self.major_code}-{self.sub_code}"


@dataclass(frozen=True, slots=True)
class TimeSlot:
    name: str
    start_hour: int
    end_hour: int
    keywords: tuple[str, ...]
    priority: float

    def contains(self, hour: int) -> bool:
        if self.start_hour <= self.end_hour:
            return self.start_hour <= hour <= self.end_hour
        # Wraps past midnight (e.g. 22..4)
        return hour >= self.start_hour or hour <= self.end_hour


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

ParseErrorKind: TypeAlias = Literal[
    "EMPTY_TEXT",
    "NEGATIVE_AMOUNT",
    "ZERO_AMOUNT",
    "MISSING_SUBJECT",
    "UNRECOGNIZED_FORMAT",
]


@dataclass(frozen=True, slots=True)
class PartialData:
    """Best-effort echo of what could be recovered from the user's input."""

    subject: str = ""
    amount: int = 0
    raw_amount: str = "0"
    payment_method: str = ""
    remark: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ParseResult:
    subject: str
    amount: int
    raw_amount: str
    payment_method: str
    ok: Literal[True] = True


@dataclass(frozen=True, slots=True)
class ParseError:
    kind: ParseErrorKind
    message: str
    partial_data: PartialData
    ok: Literal[False] = False


ParseOutcome: TypeAlias = ParseResult | ParseError


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

MatchType: TypeAlias = Literal[
    "input_contains_synonym",
    "input_contains_subject_name",
    "synonym_contains",
    "contains_match",
    "levenshtein_name",
    "levenshtein_synonym",
    "exact_name",
    "exact_synonym",
]

# Tiers whose results are subject to the pipeline's acceptance threshold.
FUZZY_MATCH_TYPES: frozenset[str] = frozenset(
    {"synonym_contains", "contains_match", "levenshtein_name", "levenshtein_synonym"}
)


@dataclass(frozen=True, slots=True)
class MatchResult:
    """The winning catalog entry for a term, with how and how well it matched.

    ``confidence``/``time_matched`` are only set by time-of-day
    disambiguation; ``matched_text`` is the catalog string that produced the
    score (subject name or synonym).
    """

    major_code: str
    major_name: str
    sub_code: str
    sub_name: str
    score: float
    match_type: MatchType
    matched_text: str = ""
    confidence: float | None = None
    time_matched: bool = False

    @classmethod
    def from_subject(
        cls, subject: Subject, *, score: float, match_type: MatchType, matched_text: str
    ) -> MatchResult:
        return cls(
            major_code=subject.major_code,
            major_name=subject.major_name,
            sub_code=subject.sub_code,
            sub_name=subject.sub_name,
            score=score,
            match_type=match_type,
            matched_text=matched_text,
        )

    @property
    def code(self) -> str:
        return f"{self.major_code}-{self.sub_code}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Synonym learning
# ---------------------------------------------------------------------------

LearnAction: TypeAlias = Literal["updated", "skipped"]
LearnSkipReason: TypeAlias = Literal[
    "same_as_subject",
    "already_synonym",
    "invalid_input",
    "subject_not_found",
    "persist_failed",
]


@dataclass(frozen=True, slots=True)
class LearnOutcome:
    success: bool
    action: LearnAction
    reason: LearnSkipReason | None = None
    synonyms: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Classification outcome (one canonical shape per pipeline call)
# ---------------------------------------------------------------------------

MatchMethod: TypeAlias = Literal["exact_match", "fuzzy_match", "time_context"]
FailureKind: TypeAlias = Literal[
    "EMPTY_TEXT",
    "NEGATIVE_AMOUNT",
    "ZERO_AMOUNT",
    "MISSING_SUBJECT",
    "UNRECOGNIZED_FORMAT",
    "UNKNOWN_SUBJECT",
    "CATALOG_UNAVAILABLE",
]
UserType: TypeAlias = Literal["M", "S", "J"]


@dataclass(frozen=True, slots=True)
class Classified:
    subject_name: str
    major_code: str
    major_name: str
    sub_code: str
    amount: int
    raw_amount: str
    payment_method: str
    action: str
    confidence: float
    match_method: MatchMethod
    match_type: MatchType
    remark: str
    original_subject: str
    timestamp: datetime
    user_type: UserType = "J"
    learning: LearnOutcome | None = None
    ok: Literal[True] = True

    @property
    def subject_code(self) -> str:
        return f"{self.major_code}-{self.sub_code}"


@dataclass(frozen=True, slots=True)
class ClassificationFailure:
    kind: FailureKind
    error: str
    partial_data: PartialData = field(default_factory=PartialData)
    timestamp: datetime | None = None
    retryable: bool = False
    ok: Literal[False] = False


ClassificationOutcome: TypeAlias = Classified | ClassificationFailure


__all__ = [
    "Classified",
    "ClassificationFailure",
    "ClassificationOutcome",
    "FUZZY_MATCH_TYPES",
    "FailureKind",
    "LearnAction",
    "LearnOutcome",
    "LearnSkipReason",
    "MatchMethod",
    "MatchResult",
    "MatchType",
    "ParseError",
    "ParseErrorKind",
    "ParseOutcome",
    "ParseResult",
    "PartialData",
    "Subject",
    "TimeSlot",
    "UserType",
]
