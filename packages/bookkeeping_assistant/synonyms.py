"""Fold confirmed terms into a subject's synonym set.

Public API:
    - :func:`learn_synonym`

The write is a read-modify-write guarded by the catalog's version token: read
the subject, compute the union, then write conditionally. A concurrent learn
that lands first makes the write fail with
:class:`~bookkeeping_assistant.catalog.SynonymWriteConflict`, in which case
the union is recomputed from a fresh read. Set semantics make repeated
learns of the same term a no-op.
"""

from __future__ import annotations

from .catalog import (
    SubjectCatalog,
    SynonymPersistFailure,
    SynonymWriteConflict,
    with_timeout,
)
from .logging_setup import get_logger
from .models import LearnOutcome
from .normalization import normalize_term, split_synonyms

_logger = get_logger("bookkeeping_assistant.synonyms")

_MAX_ATTEMPTS: int = 3


def _split_code(subject_code: str) -> tuple[str, str] | None:
    major, sep, sub = (subject_code or "").partition("-")
    major, sub = major.strip(), sub.strip()
    if not sep or not major or not sub:
        return None
    return major, sub


async def learn_synonym(
    catalog: SubjectCatalog,
    *,
    ledger_id: str,
    term: str,
    matched_subject_name: str,
    subject_code: str,
    timeout: float | None = None,
    max_attempts: int = _MAX_ATTEMPTS,
) -> LearnOutcome:
    """Add ``term`` to the synonyms of the subject identified by ``subject_code``.

    Parameters
    ----------
    catalog:
        Store to read from and write back to.
    term:
        The user's original wording that was confirmed to mean the subject.
    matched_subject_name:
        Display name of the confirmed subject.
    subject_code:
        ``"<majorCode>-<subCode>"``.
    timeout:
        Per-call catalog timeout in seconds (``None`` waits indefinitely).

    Returns
    -------
    LearnOutcome
        ``updated`` with the stored set, or ``skipped`` with a reason
        (``same_as_subject``, ``already_synonym``, ``invalid_input``,
        ``subject_not_found``).

    Raises
    ------
    CatalogUnavailable
        Reads failed or timed out.
    SynonymPersistFailure
        The write failed, or kept conflicting after ``max_attempts`` tries.
    """

    code = _split_code(subject_code)
    key = normalize_term(term or "")
    if code is None or not key or not ledger_id:
        return LearnOutcome(success=False, action="skipped", reason="invalid_input")
    if key == normalize_term(matched_subject_name or ""):
        return LearnOutcome(success=True, action="skipped", reason="same_as_subject")

    major_code, sub_code = code
    new_term = " ".join(term.split())
    last_conflict: SynonymWriteConflict | None = None

    for attempt in range(1, max_attempts + 1):
        subject = await with_timeout(
            catalog.get_subject(ledger_id, major_code, sub_code), timeout, what="read"
        )
        if subject is None:
            return LearnOutcome(success=False, action="skipped", reason="subject_not_found")
        if key == normalize_term(subject.sub_name):
            return LearnOutcome(
                success=True, action="skipped", reason="same_as_subject", synonyms=subject.synonyms
            )
        if key in {normalize_term(s) for s in subject.synonyms}:
            return LearnOutcome(
                success=True, action="skipped", reason="already_synonym", synonyms=subject.synonyms
            )

        history = await with_timeout(
            catalog.list_entry_synonyms(ledger_id, major_code, sub_code), timeout, what="read"
        )
        name_key = normalize_term(subject.sub_name)
        merged = split_synonyms(
            [
                *subject.synonyms,
                *(h for h in history if normalize_term(h) != name_key),
                new_term,
            ]
        )

        try:
            updated = await with_timeout(
                catalog.replace_synonyms(
                    ledger_id,
                    major_code,
                    sub_code,
                    merged,
                    expected_version=subject.version,
                ),
                timeout,
                what="write",
            )
        except SynonymWriteConflict as e:
            last_conflict = e
            _logger.debug(
                "synonym write conflict on %s (attempt %d/%d)", subject_code, attempt, max_attempts
            )
            continue

        _logger.info("learned synonym %r for %s (%s)", new_term, subject.sub_name, subject_code)
        return LearnOutcome(success=True, action="updated", synonyms=updated.synonyms)

    raise SynonymPersistFailure(
        f"gave up learning {new_term!r} for {subject_code} after {max_attempts} conflicts"
    ) from last_conflict


__all__ = ["learn_synonym"]
