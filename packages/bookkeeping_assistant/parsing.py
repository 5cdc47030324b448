"""Split a free-text bookkeeping message into subject, amount and payment method.

Public API:
    - :func:`parse_input`
    - :func:`extract_payment_method`

Failures are returned as :class:`~bookkeeping_assistant.models.ParseError`
values carrying ``partial_data`` so the reply can still echo what the user
typed.
"""

from __future__ import annotations

import re

from .logging_setup import get_logger
from .models import ParseError, ParseOutcome, ParseResult, PartialData
from .policy import PAYMENT_METHOD_UNSPECIFIED, PAYMENT_METHODS, UNKNOWN_SUBJECT

_logger = get_logger("bookkeeping_assistant.parsing")

# Subject prefix, a signed integer, then anything after it. The subject
# absorbs everything before the sign.
_NEGATIVE_RE = re.compile(r"^(.*?)(-\d+)(.*)$", re.DOTALL)
# Subject prefix, an unsigned amount (optionally with thousands separators),
# then the remainder that may carry the payment method.
_STANDARD_RE = re.compile(r"^(.*?)(\d{1,3}(?:,\d{3})+|\d+)(.*)$", re.DOTALL)


def extract_payment_method(remainder: str) -> str:
    """Return the payment method named in ``remainder``.

    The first known method contained in the text wins. Unknown non-empty text
    is kept verbatim; empty text yields the ``預設`` sentinel.
    """

    rest = remainder.strip()
    for method in PAYMENT_METHODS:
        if method in rest:
            return method
    return rest or PAYMENT_METHOD_UNSPECIFIED


def _amount_from_raw(raw: str) -> int:
    return int(raw.replace(",", ""))


def parse_input(text: str | None) -> ParseOutcome:
    """Parse ``text`` into a :class:`ParseResult` or a tagged :class:`ParseError`.

    Examples
    --------
    ``"午餐 120 刷卡"`` → subject ``午餐``, amount ``120``, method ``刷卡``.
    ``"午餐-50"`` → ``NEGATIVE_AMOUNT`` with subject ``午餐`` and raw ``-50``.
    ``"午餐 0"`` → ``ZERO_AMOUNT``; only positive amounts are booked.
    """

    stripped = (text or "").strip()
    if not stripped:
        return ParseError(
            kind="EMPTY_TEXT",
            message="記帳內容為空",
            partial_data=PartialData(payment_method=PAYMENT_METHOD_UNSPECIFIED),
        )

    neg = _NEGATIVE_RE.match(stripped)
    if neg is not None:
        subject = neg.group(1).strip()
        raw_amount = neg.group(2)
        amount = int(raw_amount)
        if amount < 0:
            payment_method = extract_payment_method(neg.group(3))
            _logger.debug("negative amount in %r: %s", stripped, raw_amount)
            return ParseError(
                kind="NEGATIVE_AMOUNT",
                message="金額不可為負數",
                partial_data=PartialData(
                    subject=subject,
                    amount=amount,
                    raw_amount=raw_amount,
                    payment_method=payment_method,
                    remark=subject,
                ),
            )

    std = _STANDARD_RE.match(stripped)
    if std is None:
        return ParseError(
            kind="UNRECOGNIZED_FORMAT",
            message="無法識別記帳格式，請使用「科目 金額 付款方式」",
            partial_data=PartialData(
                subject=stripped, payment_method=PAYMENT_METHOD_UNSPECIFIED
            ),
        )

    subject = std.group(1).strip()
    raw_amount = std.group(2)
    amount = _amount_from_raw(raw_amount)
    payment_method = extract_payment_method(std.group(3))

    if not subject:
        return ParseError(
            kind="MISSING_SUBJECT",
            message="缺少記帳科目",
            partial_data=PartialData(
                subject=UNKNOWN_SUBJECT,
                amount=amount,
                raw_amount=raw_amount,
                payment_method=payment_method,
            ),
        )

    if amount == 0:
        _logger.debug("zero amount in %r", stripped)
        return ParseError(
            kind="ZERO_AMOUNT",
            message="金額必須大於0",
            partial_data=PartialData(
                subject=subject,
                amount=amount,
                raw_amount=raw_amount,
                payment_method=payment_method,
                remark=subject,
            ),
        )

    return ParseResult(
        subject=subject,
        amount=amount,
        raw_amount=raw_amount,
        payment_method=payment_method,
    )


__all__ = ["extract_payment_method", "parse_input"]
