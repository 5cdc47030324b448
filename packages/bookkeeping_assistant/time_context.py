"""Pick among equally plausible subjects using the hour of day."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo

from .config import DEFAULT_TIMEZONE
from .logging_setup import get_logger
from .models import MatchResult, TimeSlot
from .normalization import normalize_term
from .policy import DEFAULT_POLICY, TIME_SLOTS, MatchPolicy

_logger = get_logger("bookkeeping_assistant.time_context")


def hour_of(timestamp_ms: float | int | None, tz: tzinfo | None = None) -> int | None:
    """Return the local hour for an epoch-milliseconds timestamp, or ``None``."""

    if timestamp_ms is None or isinstance(timestamp_ms, bool):
        return None
    try:
        moment = datetime.fromtimestamp(float(timestamp_ms) / 1000.0, tz=UTC)
    except (OverflowError, OSError, ValueError, TypeError):
        return None
    return moment.astimezone(tz or ZoneInfo(DEFAULT_TIMEZONE)).hour


def slot_for_hour(hour: int, slots: Sequence[TimeSlot] = TIME_SLOTS) -> TimeSlot | None:
    for slot in slots:
        if slot.contains(hour):
            return slot
    return None


def resolve_by_hour(
    candidates: Sequence[MatchResult],
    hour: int | None,
    *,
    slots: Sequence[TimeSlot] = TIME_SLOTS,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> MatchResult:
    """Hour-based core of :func:`resolve_by_time`."""

    if not candidates:
        raise ValueError("resolve_by_hour requires at least one candidate")
    if len(candidates) == 1 or hour is None:
        return candidates[0]

    slot = slot_for_hour(hour, slots)
    if slot is not None:
        keywords = [normalize_term(k) for k in slot.keywords]
        for candidate in candidates:
            name = normalize_term(candidate.sub_name)
            if any(k in name for k in keywords):
                _logger.debug("hour=%d slot=%s picked %s", hour, slot.name, candidate.sub_name)
                return replace(candidate, confidence=slot.priority, time_matched=True)

    _logger.debug("hour=%d undecided; defaulting to %s", hour, candidates[0].sub_name)
    return replace(candidates[0], confidence=policy.time_default_confidence, time_matched=False)


def resolve_by_time(
    candidates: Sequence[MatchResult],
    timestamp_ms: float | int | None,
    *,
    tz: tzinfo | None = None,
    slots: Sequence[TimeSlot] = TIME_SLOTS,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> MatchResult:
    """Choose one of ``candidates`` using the time slot of ``timestamp_ms``.

    - A single candidate is returned unchanged.
    - An unusable timestamp returns the first candidate unchanged.
    - The first candidate whose name contains a keyword of the matching slot
      wins, with ``confidence`` set to the slot priority and
      ``time_matched=True``.
    - Otherwise the first candidate is returned with the default confidence
      (0.7) to mark an undecided pick.

    Raises
    ------
    ValueError
        ``candidates`` is empty; callers only disambiguate actual matches.
    """

    if len(candidates) == 1:
        return candidates[0]
    return resolve_by_hour(candidates, hour_of(timestamp_ms, tz), slots=slots, policy=policy)


__all__ = ["hour_of", "resolve_by_hour", "resolve_by_time", "slot_for_hour"]
