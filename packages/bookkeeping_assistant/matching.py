"""Tiered resolution of a subject term against a ledger catalog.

Tiers are evaluated in strict priority order and the first tier that yields
any candidate decides the answer; scores from different tiers are never
compared with each other:

1. compound containment: the term embeds a subject name or synonym;
2. direct containment: a subject name or synonym embeds the term;
3. edit distance: normalized Levenshtein similarity above a threshold.

Ties inside a tier go to the entry seen first in catalog order.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeAlias

from rapidfuzz.distance import Levenshtein

from .logging_setup import get_logger
from .models import MatchResult, Subject
from .normalization import normalize_term
from .policy import DEFAULT_POLICY, MatchPolicy

_logger = get_logger("bookkeeping_assistant.matching")


# ---- Edit distance -----------------------------------------------------------


def levenshtein(a: str, b: str) -> int:
    """Insert/delete/substitute edit distance."""

    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Return ``1 - distance / max(len(a), len(b))`` in ``[0, 1]``."""

    return Levenshtein.normalized_similarity(a, b)


# ---- Tiers -------------------------------------------------------------------

_Tier: TypeAlias = Callable[[str, Sequence[Subject], MatchPolicy, float], list[MatchResult]]


def _keys(subject: Subject) -> tuple[str, list[tuple[str, str]]]:
    name = normalize_term(subject.sub_name)
    synonyms = [(normalize_term(s), s) for s in subject.synonyms]
    return name, [(k, raw) for k, raw in synonyms if k]


def _compound_containment(
    term: str, catalog: Sequence[Subject], policy: MatchPolicy, _threshold: float
) -> list[MatchResult]:
    out: list[MatchResult] = []
    n = len(term)
    for subject in catalog:
        name, synonyms = _keys(subject)
        if len(name) >= policy.min_containment_len and name in term:
            out.append(
                MatchResult.from_subject(
                    subject,
                    score=min(policy.input_contains_name_cap, len(name) / n),
                    match_type="input_contains_subject_name",
                    matched_text=subject.sub_name,
                )
            )
        for key, raw in synonyms:
            if len(key) >= policy.min_containment_len and key in term:
                out.append(
                    MatchResult.from_subject(
                        subject,
                        score=min(policy.input_contains_synonym_cap, len(key) / n),
                        match_type="input_contains_synonym",
                        matched_text=raw,
                    )
                )
    return out


def _direct_containment(
    term: str, catalog: Sequence[Subject], policy: MatchPolicy, _threshold: float
) -> list[MatchResult]:
    out: list[MatchResult] = []
    n = len(term)
    for subject in catalog:
        name, synonyms = _keys(subject)
        if name and term in name:
            out.append(
                MatchResult.from_subject(
                    subject,
                    score=min(
                        policy.contains_match_cap, n / len(name) * policy.contains_match_weight
                    ),
                    match_type="contains_match",
                    matched_text=subject.sub_name,
                )
            )
        for key, raw in synonyms:
            if term in key:
                out.append(
                    MatchResult.from_subject(
                        subject,
                        score=min(
                            policy.synonym_contains_cap,
                            n / len(key) * policy.synonym_contains_weight,
                        ),
                        match_type="synonym_contains",
                        matched_text=raw,
                    )
                )
    return out


def _edit_distance(
    term: str, catalog: Sequence[Subject], policy: MatchPolicy, threshold: float
) -> list[MatchResult]:
    out: list[MatchResult] = []
    for subject in catalog:
        name, synonyms = _keys(subject)
        sim = similarity(term, name)
        if name and sim >= threshold:
            out.append(
                MatchResult.from_subject(
                    subject,
                    score=sim * policy.levenshtein_name_weight,
                    match_type="levenshtein_name",
                    matched_text=subject.sub_name,
                )
            )
        for key, raw in synonyms:
            sim = similarity(term, key)
            if sim >= threshold:
                out.append(
                    MatchResult.from_subject(
                        subject,
                        score=sim * policy.levenshtein_synonym_weight,
                        match_type="levenshtein_synonym",
                        matched_text=raw,
                    )
                )
    return out


_TIERS: tuple[tuple[str, _Tier], ...] = (
    ("compound_containment", _compound_containment),
    ("direct_containment", _direct_containment),
    ("edit_distance", _edit_distance),
)


def _best_per_subject(candidates: list[MatchResult]) -> list[MatchResult]:
    # Stable sort keeps first-seen catalog order among equal scores.
    ranked = sorted(candidates, key=lambda m: m.score, reverse=True)
    seen: set[str] = set()
    out: list[MatchResult] = []
    for m in ranked:
        if m.code in seen:
            continue
        seen.add(m.code)
        out.append(m)
    return out


def rank_matches(
    term: str,
    catalog: Sequence[Subject],
    threshold: float | None = None,
    *,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> list[MatchResult]:
    """Return the deciding tier's candidates, best first, one per subject.

    An empty list means no tier produced a candidate.
    """

    key = normalize_term(term or "")
    if not key or not catalog:
        return []
    cutoff = policy.levenshtein_threshold if threshold is None else threshold
    for tier_name, tier in _TIERS:
        candidates = tier(key, catalog, policy, cutoff)
        if candidates:
            ranked = _best_per_subject(candidates)
            _logger.debug(
                "term=%r tier=%s candidates=%d best=%s score=%.3f",
                key,
                tier_name,
                len(ranked),
                ranked[0].sub_name,
                ranked[0].score,
            )
            return ranked
    _logger.debug("term=%r produced no candidates", key)
    return []


def match_subject(
    term: str,
    catalog: Sequence[Subject],
    threshold: float | None = None,
    *,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> MatchResult | None:
    """Resolve ``term`` to a single catalog entry, or ``None`` when nothing fits.

    Parameters
    ----------
    term:
        Raw subject term; normalized (NFKC, trimmed, casefolded) here.
    catalog:
        Subjects in catalog order.
    threshold:
        Edit-distance cutoff. ``None`` uses ``policy.levenshtein_threshold``
        (0.6 by default).
    """

    ranked = rank_matches(term, catalog, threshold, policy=policy)
    return ranked[0] if ranked else None


__all__ = [
    "levenshtein",
    "match_subject",
    "rank_matches",
    "similarity",
]
