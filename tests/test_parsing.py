from __future__ import annotations

import pytest

from bookkeeping_assistant.models import ParseError, ParseResult
from bookkeeping_assistant.parsing import extract_payment_method, parse_input


def test_standard_message_splits_subject_amount_and_method():
    res = parse_input("午餐 120 刷卡")
    assert isinstance(res, ParseResult)
    assert (res.subject, res.amount, res.raw_amount, res.payment_method) == (
        "午餐",
        120,
        "120",
        "刷卡",
    )


def test_compact_message_without_spaces():
    res = parse_input("咖啡85現金")
    assert isinstance(res, ParseResult)
    assert res.subject == "咖啡"
    assert res.amount == 85
    assert res.payment_method == "現金"


def test_missing_method_uses_unspecified_sentinel():
    res = parse_input("晚餐 300")
    assert isinstance(res, ParseResult)
    assert res.payment_method == "預設"


def test_unknown_trailing_text_becomes_method_verbatim():
    res = parse_input("計程車 250 悠遊卡")
    assert isinstance(res, ParseResult)
    assert res.payment_method == "悠遊卡"


def test_raw_amount_keeps_leading_zeros_and_grouping():
    res = parse_input("早餐 050")
    assert isinstance(res, ParseResult)
    assert res.amount == 50
    assert res.raw_amount == "050"

    grouped = parse_input("機票 12,500 信用卡")
    assert isinstance(grouped, ParseResult)
    assert grouped.amount == 12500
    assert grouped.raw_amount == "12,500"
    assert grouped.payment_method == "信用卡"


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_text_is_rejected_with_partial_defaults(text):
    res = parse_input(text)
    assert isinstance(res, ParseError)
    assert res.kind == "EMPTY_TEXT"
    assert res.ok is False
    assert res.partial_data.subject == ""
    assert res.partial_data.amount == 0
    assert res.partial_data.raw_amount == "0"


def test_negative_amount_keeps_context_in_partial_data():
    res = parse_input("午餐-50")
    assert isinstance(res, ParseError)
    assert res.kind == "NEGATIVE_AMOUNT"
    assert res.partial_data.subject == "午餐"
    assert res.partial_data.raw_amount == "-50"
    assert res.partial_data.amount == -50
    assert res.partial_data.remark == "午餐"


def test_negative_amount_subject_absorbs_everything_before_sign():
    res = parse_input("現金 午餐 -50 刷卡")
    assert isinstance(res, ParseError)
    assert res.kind == "NEGATIVE_AMOUNT"
    assert res.partial_data.subject == "現金 午餐"
    assert res.partial_data.payment_method == "刷卡"


def test_amount_first_message_reports_missing_subject():
    res = parse_input("85 現金")
    assert isinstance(res, ParseError)
    assert res.kind == "MISSING_SUBJECT"
    assert res.partial_data.subject == "未知科目"
    assert res.partial_data.amount == 85
    assert res.partial_data.payment_method == "現金"


def test_text_without_digits_is_unrecognized():
    res = parse_input("今天吃了很多")
    assert isinstance(res, ParseError)
    assert res.kind == "UNRECOGNIZED_FORMAT"
    assert res.partial_data.subject == "今天吃了很多"
    assert res.partial_data.amount == 0


@pytest.mark.parametrize(
    ("remainder", "expected"),
    [
        (" 行動支付", "行動支付"),
        ("用信用卡", "信用卡"),
        ("", "預設"),
        ("  ", "預設"),
        ("line pay", "line pay"),
    ],
)
def test_extract_payment_method(remainder, expected):
    assert extract_payment_method(remainder) == expected


@pytest.mark.parametrize("text", ["午餐 0 現金", "午餐 000"])
def test_zero_amount_is_rejected_with_context(text):
    res = parse_input(text)
    assert isinstance(res, ParseError)
    assert res.kind == "ZERO_AMOUNT"
    assert res.partial_data.subject == "午餐"
    assert res.partial_data.amount == 0
    assert res.partial_data.remark == "午餐"
