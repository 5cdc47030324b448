"""Render user-facing bookkeeping replies.

Two entry points:

- :func:`render_outcome` renders the canonical
  :data:`~bookkeeping_assistant.models.ClassificationOutcome` produced by the
  pipeline. No shape guessing happens here.
- :func:`render_response` is the lenient boundary for loosely shaped result
  mappings from other services (camelCase keys, data nested under several
  possible fields, or only a previously rendered message). It validates the
  mapping with pydantic and scans the known locations in a fixed order.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime, tzinfo
from typing import Any, TypedDict
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import DEFAULT_ACTION, DEFAULT_PAYMENT_METHOD, DEFAULT_TIMEZONE, DEFAULT_USER_TYPE
from .logging_setup import get_logger
from .models import Classified, ClassificationFailure, ClassificationOutcome
from .policy import PAYMENT_METHOD_UNSPECIFIED, UNKNOWN_SUBJECT

_logger = get_logger("bookkeeping_assistant.responses")

NO_REMARK = "無"
UNKNOWN_ERROR = "未知錯誤"
UNSPECIFIED_PAYMENT = "未指定支付方式"


class ReplyDict(TypedDict):
    success: bool
    message: str
    partial_data: dict[str, Any]
    error_type: str | None
    error: str | None
    module_code: str
    process_id: str


# ---- Shared helpers ----------------------------------------------------------


def format_timestamp(moment: datetime | None = None, tz: tzinfo | None = None) -> str:
    """``YYYY/MM/DD HH:mm`` in ``tz`` (defaults to Asia/Taipei and now)."""

    zone = tz or ZoneInfo(DEFAULT_TIMEZONE)
    value = moment or datetime.now(UTC)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(zone).strftime("%Y/%m/%d %H:%M")


def _new_process_id() -> str:
    return uuid.uuid4().hex[:8]


def _success_message(
    *,
    amount: str,
    action: str,
    payment_method: str,
    date: str,
    subject_name: str,
    remark: str,
    user_type: str,
) -> str:
    return (
        "記帳成功！\n"
        f"金額：{amount}元 ({action})\n"
        f"付款方式：{payment_method}\n"
        f"時間：{date}\n"
        f"科目：{subject_name}\n"
        f"備註：{remark or NO_REMARK}\n"
        f"使用者類型：{user_type}"
    )


def _failure_message(
    *, amount: str, payment_method: str, date: str, subject: str, remark: str, error: str
) -> str:
    return (
        "記帳失敗！\n"
        f"金額：{amount}元\n"
        f"支付方式：{payment_method or UNSPECIFIED_PAYMENT}\n"
        f"時間：{date}\n"
        f"科目：{subject or UNKNOWN_SUBJECT}\n"
        f"備註：{remark or NO_REMARK}\n"
        f"使用者類型：{DEFAULT_USER_TYPE}\n"
        f"錯誤原因：{error or UNKNOWN_ERROR}"
    )


def _fallback_reply(module_code: str, process_id: str, date: str, error: str) -> ReplyDict:
    message = _failure_message(
        amount="0",
        payment_method="",
        date=date,
        subject="",
        remark="",
        error="訊息格式化錯誤",
    )
    return {
        "success": False,
        "message": message,
        "partial_data": {},
        "error_type": "FORMAT_ERROR",
        "error": error,
        "module_code": module_code,
        "process_id": process_id,
    }


# ---- Canonical outcome -------------------------------------------------------


def render_outcome(
    outcome: ClassificationOutcome,
    *,
    module_code: str = "BK",
    process_id: str | None = None,
    tz: tzinfo | None = None,
    now: datetime | None = None,
    default_payment_method: str = DEFAULT_PAYMENT_METHOD,
) -> ReplyDict:
    """Render a pipeline outcome into the success or failure template."""

    pid = process_id or _new_process_id()
    if isinstance(outcome, Classified):
        payment = outcome.payment_method
        if not payment or payment == PAYMENT_METHOD_UNSPECIFIED:
            payment = default_payment_method
        message = _success_message(
            amount=outcome.raw_amount or str(outcome.amount),
            action=outcome.action,
            payment_method=payment,
            date=format_timestamp(outcome.timestamp, tz),
            subject_name=outcome.subject_name,
            remark=outcome.remark,
            user_type=outcome.user_type,
        )
        return {
            "success": True,
            "message": message,
            "partial_data": {
                "subject": outcome.subject_name,
                "amount": outcome.amount,
                "raw_amount": outcome.raw_amount,
                "payment_method": payment,
                "remark": outcome.remark,
            },
            "error_type": None,
            "error": None,
            "module_code": module_code,
            "process_id": pid,
        }

    failure: ClassificationFailure = outcome
    partial = failure.partial_data
    payment = partial.payment_method
    if payment == PAYMENT_METHOD_UNSPECIFIED:
        payment = ""
    message = _failure_message(
        amount=partial.raw_amount or str(partial.amount),
        payment_method=payment,
        date=format_timestamp(failure.timestamp or now, tz),
        subject=partial.subject,
        remark=partial.remark or "",
        error=failure.error,
    )
    return {
        "success": False,
        "message": message,
        "partial_data": partial.to_dict(),
        "error_type": failure.kind,
        "error": failure.error,
        "module_code": module_code,
        "process_id": pid,
    }


# ---- Lenient boundary --------------------------------------------------------


class BoundaryResult(BaseModel):
    """Loosely shaped result mapping accepted from other services."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    success: Any = None
    response_message: str | None = Field(default=None, alias="responseMessage")
    error_type: str | None = Field(default=None, alias="errorType")
    error: Any = None
    message: Any = None
    action: str | None = None
    parsed_data: dict[str, Any] | None = Field(default=None, alias="parsedData")
    partial_data: dict[str, Any] | None = Field(default=None, alias="partialData")
    error_data: dict[str, Any] | None = Field(default=None, alias="errorData")
    original_result: dict[str, Any] | None = Field(default=None, alias="originalResult")
    data: dict[str, Any] | None = None


_MISSING_RESULT: dict[str, Any] = {
    "success": False,
    "error": "無處理結果資料",
    "errorType": "MISSING_RESULT_DATA",
    "message": "無處理結果資料",
    "partialData": {
        "subject": "",
        "amount": 0,
        "rawAmount": "0",
        "paymentMethod": "支付方式未指定",
    },
}

_LABELS: dict[str, re.Pattern[str]] = {
    "rawAmount": re.compile(r"^金額：\s*(-?[\d,]+(?:\.\d+)?)\s*元"),
    "subject": re.compile(r"^科目：\s*(.+?)\s*$"),
    "remark": re.compile(r"^備註：\s*(.+?)\s*$"),
    "paymentMethod": re.compile(r"^(?:付款方式|支付方式)：\s*(.+?)\s*$"),
}


def parse_rendered_message(message: str) -> dict[str, Any]:
    """Recover labeled fields from a previously rendered reply.

    Returns a camelCase mapping with any of ``rawAmount``, ``amount``,
    ``subject``, ``remark`` and ``paymentMethod`` that could be found.
    """

    out: dict[str, Any] = {}
    for line in message.splitlines():
        line = line.strip()
        for key, pattern in _LABELS.items():
            if key in out:
                continue
            m = pattern.match(line)
            if m:
                out[key] = m.group(1)
    if "rawAmount" in out:
        try:
            out["amount"] = int(out["rawAmount"].replace(",", ""))
        except ValueError:
            pass
    if out.get("remark") == NO_REMARK:
        out.pop("remark")
    return out


def _first_text(*values: Any) -> str | None:
    for v in values:
        if isinstance(v, str) and v.strip():
            return v
        if v is not None and not isinstance(v, str | bool) and v != {}:
            return str(v)
    return None


def _locate_partial(result: BoundaryResult) -> dict[str, Any]:
    nested_error = result.error_data or {}
    nested_prior = result.original_result or {}
    candidates: list[Any] = [
        result.parsed_data,
        result.partial_data,
        nested_error.get("partialData"),
        nested_error.get("parsedData"),
        nested_prior.get("parsedData"),
        nested_prior.get("partialData"),
        nested_prior.get("data"),
        result.data,
    ]
    for candidate in candidates:
        if isinstance(candidate, Mapping) and candidate:
            return dict(candidate)

    # Last resort: a previously rendered message with labeled lines.
    for text in (
        result.message,
        nested_error.get("message"),
        nested_prior.get("responseMessage"),
    ):
        if isinstance(text, str) and "：" in text:
            recovered = parse_rendered_message(text)
            if recovered:
                return recovered
    return {}


def _get(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


def render_response(
    result_data: Mapping[str, Any] | None,
    module_code: str,
    options: Mapping[str, Any] | None = None,
) -> ReplyDict:
    """Render a loosely shaped result mapping into a reply.

    Parameters
    ----------
    result_data:
        Result mapping from a less disciplined producer. ``None`` renders the
        ``MISSING_RESULT_DATA`` failure.
    module_code:
        Short code of the calling module, echoed back.
    options:
        Optional ``processId``, ``timezone`` (IANA name) and ``now``
        (``datetime``) overrides.

    Returns
    -------
    ReplyDict
        Never raises; formatting problems yield a ``FORMAT_ERROR`` reply.
    """

    opts = dict(options or {})
    process_id = str(opts.get("processId") or _new_process_id())
    tz: tzinfo
    try:
        tz = ZoneInfo(str(opts.get("timezone") or DEFAULT_TIMEZONE))
    except (ValueError, KeyError):
        tz = ZoneInfo(DEFAULT_TIMEZONE)
    now_value = opts.get("now")
    now_text = format_timestamp(now_value if isinstance(now_value, datetime) else None, tz)

    try:
        result = BoundaryResult.model_validate(
            dict(result_data) if result_data is not None else _MISSING_RESULT
        )
    except (ValidationError, TypeError, ValueError) as e:
        _logger.warning("unrenderable result data (%s)", e)
        return _fallback_reply(module_code, process_id, now_text, str(e))

    is_success = result.success is True
    first_error = _first_text(
        result.error,
        result.message,
        (result.error_data or {}).get("error"),
    )

    if result.response_message:
        return {
            "success": is_success,
            "message": result.response_message,
            "partial_data": dict(result.partial_data or {}),
            "error_type": result.error_type,
            "error": None if is_success else (first_error or UNKNOWN_ERROR),
            "module_code": module_code,
            "process_id": process_id,
        }

    try:
        partial = _locate_partial(result)
        if is_success:
            data = result.data or {}
            if not data and not partial:
                message = f"操作成功！\n處理ID: {process_id}"
            else:
                message = _success_message(
                    amount=str(
                        _get(data, "rawAmount")
                        or _get(partial, "rawAmount")
                        or _get(data, "amount")
                        or 0
                    ),
                    action=_get(data, "action") or result.action or DEFAULT_ACTION,
                    payment_method=str(
                        _get(data, "paymentMethod") or _get(partial, "paymentMethod") or ""
                    ),
                    date=str(_get(data, "date") or now_text),
                    subject_name=str(_get(data, "subjectName") or _get(partial, "subject") or ""),
                    remark=str(_get(data, "remark") or _get(partial, "remark") or NO_REMARK),
                    user_type=str(_get(data, "userType") or DEFAULT_USER_TYPE),
                )
            error = None
        else:
            amount_text = _get(partial, "rawAmount")
            if amount_text is None:
                amount_value = partial.get("amount")
                amount_text = str(amount_value) if amount_value is not None else "0"
            error = first_error or UNKNOWN_ERROR
            message = _failure_message(
                amount=str(amount_text),
                payment_method=str(_get(partial, "paymentMethod") or ""),
                date=now_text,
                subject=str(_get(partial, "subject") or ""),
                remark=str(_get(partial, "remark") or ""),
                error=error,
            )
    except Exception as e:  # noqa: BLE001 - boundary must always produce a reply
        _logger.error("failed to format reply [%s]", process_id, exc_info=True)
        return _fallback_reply(module_code, process_id, now_text, str(e))

    return {
        "success": is_success,
        "message": message,
        "partial_data": partial,
        "error_type": result.error_type,
        "error": error,
        "module_code": module_code,
        "process_id": process_id,
    }


__all__ = [
    "BoundaryResult",
    "ReplyDict",
    "format_timestamp",
    "parse_rendered_message",
    "render_outcome",
    "render_response",
]
