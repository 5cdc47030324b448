"""Derive a human remark from the original message text."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from .models import ParseResult, PartialData
from .policy import PAYMENT_METHOD_UNSPECIFIED, PAYMENT_METHODS, REMARK_EXTRA_TOKENS

_AMOUNT_RE = re.compile(r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?")
_PAYMENT_RE = re.compile(
    "|".join(
        re.escape(t)
        for t in sorted({*PAYMENT_METHODS, *REMARK_EXTRA_TOKENS}, key=len, reverse=True)
    ),
    re.IGNORECASE,
)
_UNIT_RE = re.compile(r"NT\$|NTD|(?<![A-Za-z])NT(?![A-Za-z])|塊錢|[元塊$¥€£]")
_EDGE_RE = re.compile(r"^[,，:：\-\s]+|[,，:：\-\s]+$")


def _subject_of(parsed: ParseResult | PartialData | Mapping[str, Any] | None) -> str:
    if parsed is None:
        return ""
    if isinstance(parsed, Mapping):
        value = parsed.get("subject")
        return str(value).strip() if value else ""
    return parsed.subject.strip()


def _payment_of(parsed: ParseResult | PartialData | Mapping[str, Any] | None) -> str:
    if parsed is None:
        return ""
    if isinstance(parsed, Mapping):
        value = parsed.get("payment_method") or parsed.get("paymentMethod")
    else:
        value = parsed.payment_method
    value = str(value).strip() if value else ""
    return "" if value == PAYMENT_METHOD_UNSPECIFIED else value


def format_remark(
    parsed: ParseResult | PartialData | Mapping[str, Any] | None, original_text: str
) -> str:
    """Strip amounts, payment tokens and currency units from ``original_text``.

    Besides the known vocabulary, the payment method the parser extracted is
    removed too.

    A residue that adds nothing beyond the subject (equal to it, empty, or a
    single character) degenerates to the subject itself.
    """

    subject = _subject_of(parsed)
    remark = original_text or ""
    payment = _payment_of(parsed)
    if payment:
        # Open-vocabulary methods follow the amount; drop the last occurrence
        head, sep, tail = remark.rpartition(payment)
        if sep:
            remark = head + tail
    remark = _AMOUNT_RE.sub("", remark)
    remark = _PAYMENT_RE.sub("", remark)
    remark = _UNIT_RE.sub("", remark)
    remark = " ".join(remark.split())
    remark = _EDGE_RE.sub("", remark)

    if subject and (remark == subject or len(remark) <= 1):
        return subject
    return remark


__all__ = ["format_remark"]
