"""Pytest configuration and shared fixtures.

The application reads ``DATABASE_URL`` and ``BOOKKEEPING_*`` variables from
the environment (and a local ``.env`` via the CLI). A developer shell that
exports them would leak into tests, so an autouse fixture clears them for
every test; tests that need a value set it explicitly with ``monkeypatch``.
"""

from __future__ import annotations

import os

import pytest

from bookkeeping_assistant.catalog import InMemoryCatalog
from bookkeeping_assistant.config import AssistantConfig
from bookkeeping_assistant.models import Subject
from bookkeeping_assistant.pipeline import AssistantContext
from tests.helpers.subjects import FIXED_NOW, LEDGER, mk_subject


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop ambient configuration so each test starts from defaults."""

    for key in list(os.environ):
        if key == "DATABASE_URL" or key.startswith("BOOKKEEPING_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def food_subjects() -> list[Subject]:
    return [
        mk_subject("100", "101", "早餐", "早點,breakfast"),
        mk_subject("100", "102", "午餐", "中餐,午飯,lunch"),
        mk_subject("100", "103", "晚餐", "晚飯,dinner"),
        mk_subject("100", "104", "便當", "lunch box"),
        mk_subject("100", "106", "咖啡", "coffee,手搖飲"),
        mk_subject("100", "107", "飲料", "coffee"),
        mk_subject("200", "202", "計程車", "uber,小黃", major_name="交通"),
        mk_subject("801", "01", "薪資", "薪水,salary", major_name="收入"),
    ]


@pytest.fixture
def memory_catalog(food_subjects: list[Subject]) -> InMemoryCatalog:
    return InMemoryCatalog({LEDGER: food_subjects})


@pytest.fixture
def ctx(memory_catalog: InMemoryCatalog) -> AssistantContext:
    return AssistantContext(
        catalog=memory_catalog,
        config=AssistantConfig(catalog_timeout=1.0),
        clock=lambda: FIXED_NOW,
    )
