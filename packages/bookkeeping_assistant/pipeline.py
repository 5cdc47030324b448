"""Classification pipeline: raw chat text → canonical outcome → reply.

Public API:
    - :class:`AssistantContext`
    - :func:`classify_message`
    - :func:`classify_and_render`

Each call is independent. The only I/O is the catalog store, and every store
call runs under the configured timeout. User input never raises here: parse
problems, unknown subjects and an unreachable catalog all come back as a
:class:`~bookkeeping_assistant.models.ClassificationFailure`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from db.client import Database

from .ambiguity import find_ambiguous
from .catalog import (
    CatalogError,
    InMemoryCatalog,
    LedgerEntry,
    SqlAlchemyCatalog,
    SubjectCatalog,
    with_timeout,
)
from .config import AssistantConfig
from .logging_setup import bind_logger, get_logger
from .matching import match_subject
from .models import (
    FUZZY_MATCH_TYPES,
    Classified,
    ClassificationFailure,
    ClassificationOutcome,
    LearnOutcome,
    MatchMethod,
    MatchResult,
    ParseError,
    PartialData,
    UserType,
)
from .normalization import normalize_input, normalize_term
from .parsing import parse_input
from .policy import (
    ACTION_EXPENSE,
    ACTION_INCOME,
    DEFAULT_POLICY,
    INCOME_MAJOR_PREFIX,
    MatchPolicy,
)
from .remarks import format_remark
from .responses import ReplyDict, render_outcome
from .synonyms import learn_synonym
from .time_context import resolve_by_time

_logger = get_logger("bookkeeping_assistant.pipeline")

_USER_TYPES: frozenset[str] = frozenset({"M", "S", "J"})


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class AssistantContext:
    """Everything one process needs to classify messages.

    Built once at startup and passed to each call. ``database`` is set when
    the context owns an engine that :meth:`aclose` must dispose.
    """

    catalog: SubjectCatalog
    config: AssistantConfig = field(default_factory=AssistantConfig)
    policy: MatchPolicy = DEFAULT_POLICY
    clock: Callable[[], datetime] = _utc_now
    database: Database | None = None

    @classmethod
    def from_config(
        cls,
        config: AssistantConfig,
        *,
        catalog_file: Path | None = None,
        ledger_id: str | None = None,
    ) -> AssistantContext:
        """Build a context backed by a seed file or by ``config.database_url``."""

        policy = MatchPolicy.from_config(config)
        if catalog_file is not None:
            if not ledger_id:
                raise ValueError("ledger_id is required when loading a catalog file")
            catalog = InMemoryCatalog.from_seed_file(catalog_file, ledger_id=ledger_id)
            return cls(catalog=catalog, config=config, policy=policy)
        database = Database.from_url(config.database_url)
        return cls(
            catalog=SqlAlchemyCatalog(database), config=config, policy=policy, database=database
        )

    async def aclose(self) -> None:
        if self.database is not None:
            await self.database.dispose()


def action_for(major_code: str) -> str:
    """Income for major codes starting with ``8``; expense otherwise."""

    return ACTION_INCOME if major_code.startswith(INCOME_MAJOR_PREFIX) else ACTION_EXPENSE


def _moment(ctx: AssistantContext, timestamp_ms: float | int | None) -> datetime:
    if timestamp_ms is not None and not isinstance(timestamp_ms, bool):
        try:
            return datetime.fromtimestamp(float(timestamp_ms) / 1000.0, tz=UTC)
        except (OverflowError, OSError, ValueError, TypeError):
            _logger.debug("ignoring unusable timestamp %r", timestamp_ms)
    return ctx.clock()


def _resolve(
    ctx: AssistantContext,
    term: str,
    subjects,
    timestamp_ms: float | int | None,
) -> tuple[MatchResult, MatchMethod, float] | None:
    exact = find_ambiguous(term, subjects, policy=ctx.policy)
    if exact:
        if len(exact) > 1 and timestamp_ms is not None:
            chosen = resolve_by_time(
                exact, timestamp_ms, tz=ctx.config.tzinfo(), policy=ctx.policy
            )
            confidence = chosen.confidence if chosen.confidence is not None else chosen.score
            return chosen, "time_context", confidence
        return exact[0], "exact_match", exact[0].score

    match = match_subject(term, subjects, policy=ctx.policy)
    if match is None:
        return None
    if match.match_type in FUZZY_MATCH_TYPES and match.score < ctx.policy.accept_threshold:
        _logger.debug(
            "rejecting %s for %r: score %.3f below %.2f",
            match.sub_name,
            term,
            match.score,
            ctx.policy.accept_threshold,
        )
        return None
    return match, "fuzzy_match", match.score


async def _learn(
    ctx: AssistantContext, *, ledger_id: str, term: str, match: MatchResult
) -> LearnOutcome:
    try:
        return await learn_synonym(
            ctx.catalog,
            ledger_id=ledger_id,
            term=term,
            matched_subject_name=match.sub_name,
            subject_code=match.code,
            timeout=ctx.config.catalog_timeout,
        )
    except CatalogError as e:
        _logger.warning("synonym learning skipped for %r → %s: %s", term, match.code, e)
        return LearnOutcome(success=False, action="skipped", reason="persist_failed")


async def classify_message(
    ctx: AssistantContext,
    text: str | None,
    *,
    ledger_id: str,
    timestamp_ms: float | int | None = None,
    user_type: UserType = "J",
    learn: bool = True,
    record: bool = False,
) -> ClassificationOutcome:
    """Classify one bookkeeping message for ``ledger_id``.

    Parameters
    ----------
    ctx:
        Process context (catalog, config, policy, clock).
    text:
        Raw chat text, e.g. ``"午餐 120 刷卡"``.
    timestamp_ms:
        Message time in epoch milliseconds. Enables time-of-day
        disambiguation when the term exactly names several subjects.
    user_type:
        ``M``, ``S`` or ``J`` (unknown values fall back to ``J``).
    learn:
        Fold the user's wording into the matched subject's synonyms after a
        fuzzy classification.
    record:
        Append the booked entry to the ledger history.
    """

    log = bind_logger(_logger, ledger_id=ledger_id)
    moment = _moment(ctx, timestamp_ms)
    normalized = normalize_input(text or "")
    parsed = parse_input(normalized)
    if isinstance(parsed, ParseError):
        log.debug("parse failed kind=%s text=%r", parsed.kind, normalized)
        return ClassificationFailure(
            kind=parsed.kind,
            error=parsed.message,
            partial_data=parsed.partial_data,
            timestamp=moment,
        )

    remark = format_remark(parsed, normalized)
    partial = PartialData(
        subject=parsed.subject,
        amount=parsed.amount,
        raw_amount=parsed.raw_amount,
        payment_method=parsed.payment_method,
        remark=remark,
    )

    try:
        subjects = await with_timeout(
            ctx.catalog.list_subjects(ledger_id), ctx.config.catalog_timeout, what="read"
        )
    except CatalogError as e:
        log.warning("catalog unavailable: %s", e)
        return ClassificationFailure(
            kind="CATALOG_UNAVAILABLE",
            error="科目資料暫時無法取得，請稍後再試",
            partial_data=partial,
            timestamp=moment,
            retryable=True,
        )

    resolved = _resolve(ctx, parsed.subject, subjects, timestamp_ms)
    if resolved is None:
        log.info("no subject for %r", parsed.subject)
        return ClassificationFailure(
            kind="UNKNOWN_SUBJECT",
            error=f'無法識別科目: "{parsed.subject}"',
            partial_data=partial,
            timestamp=moment,
        )
    match, method, confidence = resolved

    learning: LearnOutcome | None = None
    if learn and method == "fuzzy_match":
        learning = await _learn(ctx, ledger_id=ledger_id, term=parsed.subject, match=match)

    if record:
        hint = (
            parsed.subject
            if normalize_term(parsed.subject) != normalize_term(match.sub_name)
            else None
        )
        entry = LedgerEntry(
            major_code=match.major_code,
            sub_code=match.sub_code,
            subject_name=match.sub_name,
            synonym_hint=hint,
            amount=parsed.amount,
            raw_amount=parsed.raw_amount,
            payment_method=parsed.payment_method,
            remark=remark,
            user_type=user_type if user_type in _USER_TYPES else "J",
        )
        try:
            await with_timeout(
                ctx.catalog.record_entry(ledger_id, entry),
                ctx.config.catalog_timeout,
                what="write",
            )
        except CatalogError as e:
            log.warning("failed to record entry: %s", e)

    log.debug(
        "classified %r → %s (%s, %s, %.3f)",
        parsed.subject,
        match.code,
        method,
        match.match_type,
        confidence,
    )
    return Classified(
        subject_name=match.sub_name,
        major_code=match.major_code,
        major_name=match.major_name,
        sub_code=match.sub_code,
        amount=parsed.amount,
        raw_amount=parsed.raw_amount,
        payment_method=parsed.payment_method,
        action=action_for(match.major_code),
        confidence=confidence,
        match_method=method,
        match_type=match.match_type,
        remark=remark,
        original_subject=parsed.subject,
        timestamp=moment,
        user_type=user_type if user_type in _USER_TYPES else "J",
        learning=learning,
    )


async def classify_and_render(
    ctx: AssistantContext,
    text: str | None,
    *,
    ledger_id: str,
    module_code: str = "BK",
    **kwargs,
) -> tuple[ClassificationOutcome, ReplyDict]:
    """Classify ``text`` and render the reply in the context's timezone."""

    outcome = await classify_message(ctx, text, ledger_id=ledger_id, **kwargs)
    reply = render_outcome(
        outcome,
        module_code=module_code,
        tz=ctx.config.tzinfo(),
        now=ctx.clock(),
        default_payment_method=ctx.config.default_payment_method,
    )
    return outcome, reply


__all__ = [
    "AssistantContext",
    "action_for",
    "classify_and_render",
    "classify_message",
]
