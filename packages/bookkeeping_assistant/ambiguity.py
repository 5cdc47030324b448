"""Detect terms that exactly name more than one catalog subject."""

from __future__ import annotations

from collections.abc import Sequence

from .logging_setup import get_logger
from .matching import _keys as _subject_keys
from .models import MatchResult, Subject
from .normalization import normalize_term
from .policy import DEFAULT_POLICY, MatchPolicy

_logger = get_logger("bookkeeping_assistant.ambiguity")


def find_ambiguous(
    term: str, catalog: Sequence[Subject], *, policy: MatchPolicy = DEFAULT_POLICY
) -> list[MatchResult]:
    """Return every subject whose name or a synonym equals ``term`` exactly.

    Comparison uses the normalized key only (no fuzzy scoring). Each subject
    appears at most once, in catalog order; a name hit is reported in
    preference to a synonym hit on the same subject. More than one result
    means the term is genuinely ambiguous for this ledger.
    """

    key = normalize_term(term or "")
    if not key:
        return []
    out: list[MatchResult] = []
    for subject in catalog:
        name, synonyms = _subject_keys(subject)
        if name == key:
            out.append(
                MatchResult.from_subject(
                    subject,
                    score=policy.exact_score,
                    match_type="exact_name",
                    matched_text=subject.sub_name,
                )
            )
            continue
        for syn_key, raw in synonyms:
            if syn_key == key:
                out.append(
                    MatchResult.from_subject(
                        subject,
                        score=policy.exact_score,
                        match_type="exact_synonym",
                        matched_text=raw,
                    )
                )
                break
    if len(out) > 1:
        _logger.debug("term=%r maps to %d subjects: %s", key, len(out), [m.code for m in out])
    return out


__all__ = ["find_ambiguous"]
