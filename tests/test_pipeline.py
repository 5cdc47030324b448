from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path

import pytest

import bookkeeping_assistant.ingest as ingest_pkg
from bookkeeping_assistant.catalog import InMemoryCatalog, SqlAlchemyCatalog, SynonymPersistFailure
from bookkeeping_assistant.config import AssistantConfig
from bookkeeping_assistant.models import Classified, ClassificationFailure
from bookkeeping_assistant.pipeline import (
    AssistantContext,
    action_for,
    classify_and_render,
    classify_message,
)
from tests.helpers.subjects import FIXED_NOW, LEDGER, mk_subject

AT_0830 = 1735691400000
AT_1200 = 1735704000000

SEED_FILE = Path(ingest_pkg.__file__).parent / "seeds" / "subjects.v1.json"


async def _classify(ctx: AssistantContext, text, **kwargs):
    return await classify_message(ctx, text, ledger_id=LEDGER, **kwargs)


@pytest.mark.asyncio
async def test_compound_term_books_to_embedded_subject(ctx, memory_catalog):
    out = await _classify(ctx, "家鄉便當 85 現金")
    assert isinstance(out, Classified)
    assert out.subject_name == "便當"
    assert out.subject_code == "100-104"
    assert out.match_type == "input_contains_subject_name"
    assert out.match_method == "fuzzy_match"
    assert out.amount == 85
    assert out.payment_method == "現金"
    assert out.remark == "家鄉便當"
    assert out.action == "支出"
    assert out.original_subject == "家鄉便當"
    assert out.confidence == pytest.approx(0.5)

    assert out.learning is not None
    assert out.learning.action == "updated"
    stored = await memory_catalog.get_subject(LEDGER, "100", "104")
    assert "家鄉便當" in stored.synonyms


@pytest.mark.asyncio
async def test_learned_wording_becomes_an_exact_match(ctx):
    await _classify(ctx, "家鄉便當 85 現金")
    again = await _classify(ctx, "家鄉便當 90")
    assert again.match_method == "exact_match"
    assert again.match_type == "exact_synonym"
    assert again.learning is None


@pytest.mark.asyncio
async def test_exact_synonym_skips_learning(ctx, memory_catalog):
    out = await _classify(ctx, "午飯 120")
    assert out.subject_name == "午餐"
    assert out.match_method == "exact_match"
    assert out.confidence == 1.0
    assert out.payment_method == "預設"
    assert out.learning is None
    assert (await memory_catalog.get_subject(LEDGER, "100", "102")).version == 1


@pytest.mark.asyncio
async def test_ambiguous_term_without_timestamp_takes_first(ctx):
    out = await _classify(ctx, "coffee 60")
    assert out.subject_name == "咖啡"
    assert out.match_method == "exact_match"


@pytest.mark.asyncio
async def test_ambiguous_term_with_timestamp_uses_time_context(ctx):
    out = await _classify(ctx, "coffee 60", timestamp_ms=AT_0830)
    assert out.subject_name == "咖啡"
    assert out.match_method == "time_context"
    assert out.confidence == 0.7
    assert out.timestamp == datetime.fromtimestamp(AT_0830 / 1000, tz=UTC)


@pytest.mark.asyncio
@pytest.mark.parametrize(("ts", "expected"), [(AT_0830, "早餐"), (AT_1200, "午餐")])
async def test_meal_is_chosen_by_hour(ts, expected):
    catalog = InMemoryCatalog(
        {
            LEDGER: [
                mk_subject("100", "101", "早餐", "吃飯"),
                mk_subject("100", "102", "午餐", "吃飯"),
            ]
        }
    )
    ctx = AssistantContext(catalog=catalog, clock=lambda: FIXED_NOW)
    out = await _classify(ctx, "吃飯 100", timestamp_ms=ts)
    assert out.subject_name == expected
    assert out.match_method == "time_context"
    assert out.confidence == 0.9


@pytest.mark.asyncio
async def test_income_major_code_books_income(ctx):
    out = await _classify(ctx, "薪水 50000 轉帳")
    assert out.major_code == "801"
    assert out.action == "收入"
    assert out.payment_method == "轉帳"


def test_action_for_major_code():
    assert action_for("801") == "收入"
    assert action_for("100") == "支出"


@pytest.mark.asyncio
async def test_negative_amount_is_a_failure(ctx):
    out = await _classify(ctx, "午餐 -50")
    assert isinstance(out, ClassificationFailure)
    assert out.kind == "NEGATIVE_AMOUNT"
    assert out.partial_data.subject == "午餐"
    assert out.partial_data.raw_amount == "-50"
    assert out.retryable is False


@pytest.mark.asyncio
@pytest.mark.parametrize("text", [None, "", "   "])
async def test_empty_text_is_a_failure(ctx, text):
    out = await _classify(ctx, text)
    assert out.kind == "EMPTY_TEXT"
    assert out.timestamp == FIXED_NOW


@pytest.mark.asyncio
async def test_unknown_subject_is_a_failure(ctx):
    out = await _classify(ctx, "火星 100")
    assert out.kind == "UNKNOWN_SUBJECT"
    assert out.error == '無法識別科目: "火星"'
    assert out.partial_data.subject == "火星"
    assert out.partial_data.amount == 100
    assert out.partial_data.remark == "火星"


@pytest.mark.asyncio
async def test_weak_fuzzy_match_is_rejected(ctx):
    # "計程" is contained in "計程車" but scores 2/3 * 0.95, below 0.7
    out = await _classify(ctx, "計程 300")
    assert out.kind == "UNKNOWN_SUBJECT"


@pytest.mark.asyncio
async def test_full_width_digits_are_accepted(ctx):
    out = await _classify(ctx, "午餐 １２０ 現金")
    assert out.amount == 120
    assert out.raw_amount == "120"


@pytest.mark.asyncio
async def test_user_type_is_validated(ctx):
    assert (await _classify(ctx, "午餐 120", user_type="M")).user_type == "M"
    assert (await _classify(ctx, "午餐 120", user_type="X")).user_type == "J"


class SlowCatalog(InMemoryCatalog):
    async def list_subjects(self, ledger_id):
        await asyncio.sleep(1)
        return await super().list_subjects(ledger_id)


@pytest.mark.asyncio
async def test_catalog_timeout_is_a_retryable_failure(food_subjects):
    ctx = AssistantContext(
        catalog=SlowCatalog({LEDGER: food_subjects}),
        config=AssistantConfig(catalog_timeout=0.01),
        clock=lambda: FIXED_NOW,
    )
    out = await _classify(ctx, "午餐 120")
    assert out.kind == "CATALOG_UNAVAILABLE"
    assert out.retryable is True
    assert out.partial_data.subject == "午餐"
    assert out.partial_data.amount == 120


class ReadOnlyCatalog(InMemoryCatalog):
    async def replace_synonyms(self, *args, **kwargs):
        raise SynonymPersistFailure("read-only replica")


@pytest.mark.asyncio
async def test_learning_failure_does_not_fail_classification(food_subjects):
    ctx = AssistantContext(catalog=ReadOnlyCatalog({LEDGER: food_subjects}), clock=lambda: FIXED_NOW)
    out = await _classify(ctx, "家鄉便當 85")
    assert isinstance(out, Classified)
    assert out.subject_name == "便當"
    assert out.learning.success is False
    assert out.learning.reason == "persist_failed"


@pytest.mark.asyncio
async def test_learning_can_be_disabled(ctx, memory_catalog):
    out = await _classify(ctx, "家鄉便當 85", learn=False)
    assert out.learning is None
    assert (await memory_catalog.get_subject(LEDGER, "100", "104")).version == 1


@pytest.mark.asyncio
async def test_recorded_entry_keeps_the_users_wording(ctx, memory_catalog):
    await _classify(ctx, "家鄉便當 85 現金", learn=False, record=True)
    await _classify(ctx, "便當 90", record=True)
    first, second = memory_catalog.entries(LEDGER)
    assert first.synonym_hint == "家鄉便當"
    assert first.amount == 85
    assert first.payment_method == "現金"
    assert second.synonym_hint is None


@pytest.mark.asyncio
async def test_classify_and_render_returns_reply(ctx):
    outcome, reply = await classify_and_render(ctx, "午飯 120", ledger_id=LEDGER)
    assert outcome.ok is True
    assert reply["success"] is True
    assert reply["module_code"] == "BK"
    assert "科目：午餐\n" in reply["message"]
    assert "付款方式：刷卡\n" in reply["message"]
    assert "時間：2025/01/01 12:00\n" in reply["message"]


@pytest.mark.asyncio
async def test_classify_and_render_failure_reply(ctx):
    outcome, reply = await classify_and_render(ctx, "火星 100", ledger_id=LEDGER, module_code="ZZ")
    assert outcome.ok is False
    assert reply["error_type"] == "UNKNOWN_SUBJECT"
    assert reply["module_code"] == "ZZ"
    assert "支付方式：未指定支付方式\n" in reply["message"]


def test_context_from_seed_file():
    ctx = AssistantContext.from_config(AssistantConfig(), catalog_file=SEED_FILE, ledger_id=LEDGER)
    assert isinstance(ctx.catalog, InMemoryCatalog)
    assert ctx.database is None


def test_context_from_seed_file_requires_ledger():
    with pytest.raises(ValueError):
        AssistantContext.from_config(AssistantConfig(), catalog_file=SEED_FILE)


@pytest.mark.asyncio
async def test_context_from_database_url(tmp_path: Path):
    config = AssistantConfig(database_url=f"sqlite+aiosqlite:///{tmp_path / 'c.db'}", accept_threshold=0.5)
    ctx = AssistantContext.from_config(config)
    assert isinstance(ctx.catalog, SqlAlchemyCatalog)
    assert ctx.policy.accept_threshold == 0.5
    await ctx.aclose()


@pytest.mark.asyncio
async def test_zero_amount_is_not_booked(ctx, memory_catalog):
    out = await _classify(ctx, "午餐 0 現金", record=True)
    assert isinstance(out, ClassificationFailure)
    assert out.kind == "ZERO_AMOUNT"
    assert out.partial_data.raw_amount == "0"
    assert out.partial_data.payment_method == "現金"
    assert memory_catalog.entries(LEDGER) == []


@pytest.mark.asyncio
async def test_traditional_catalog_entry_matches_mapped_input():
    catalog = InMemoryCatalog(
        {LEDGER: [mk_subject("300", "301", "面紙", "衛生紙", major_name="日常生活")]}
    )
    ctx = AssistantContext(catalog=catalog, clock=lambda: FIXED_NOW)
    out = await _classify(ctx, "面紙 50 現金")
    assert isinstance(out, Classified)
    assert out.subject_name == "面紙"
    assert out.match_method == "exact_match"
    assert out.amount == 50
