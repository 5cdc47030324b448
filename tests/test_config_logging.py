from __future__ import annotations

import io
import logging

import pytest

import bookkeeping_assistant.logging_setup as logging_setup
from bookkeeping_assistant.config import AssistantConfig, load_config
from bookkeeping_assistant.policy import MatchPolicy


def test_defaults_without_environment():
    cfg = load_config({})
    assert cfg == AssistantConfig()
    assert cfg.database_url is None
    assert str(cfg.tzinfo()) == "Asia/Taipei"


def test_values_are_read_from_environment():
    cfg = load_config(
        {
            "DATABASE_URL": "sqlite+aiosqlite:///x.db",
            "BOOKKEEPING_TIMEZONE": "Asia/Tokyo",
            "BOOKKEEPING_FUZZY_THRESHOLD": "0.5",
            "BOOKKEEPING_ACCEPT_THRESHOLD": "0.8",
            "BOOKKEEPING_CATALOG_TIMEOUT": "2.5",
        }
    )
    assert cfg.database_url == "sqlite+aiosqlite:///x.db"
    assert cfg.timezone == "Asia/Tokyo"
    assert cfg.fuzzy_threshold == 0.5
    assert cfg.accept_threshold == 0.8
    assert cfg.catalog_timeout == 2.5

    policy = MatchPolicy.from_config(cfg)
    assert policy.levenshtein_threshold == 0.5
    assert policy.accept_threshold == 0.8


@pytest.mark.parametrize("raw", ["abc", "1.5", "-0.1"])
def test_bad_threshold_falls_back_to_default(raw):
    assert load_config({"BOOKKEEPING_ACCEPT_THRESHOLD": raw}).accept_threshold == 0.7


def test_load_config_reads_os_environ(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///env.db")
    assert load_config().database_url == "sqlite+aiosqlite:///env.db"


def test_unknown_timezone_falls_back():
    assert str(AssistantConfig(timezone="Mars/Olympus").tzinfo()) == "Asia/Taipei"


@pytest.fixture
def fresh_logging(monkeypatch: pytest.MonkeyPatch):
    pkg = logging.getLogger("bookkeeping_assistant")
    saved = (list(pkg.handlers), pkg.level, pkg.propagate)
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    pkg.handlers.clear()
    yield pkg
    pkg.handlers[:] = saved[0]
    pkg.setLevel(saved[1])
    pkg.propagate = saved[2]


def test_library_logger_is_silent_until_configured(fresh_logging):
    logging_setup.get_logger("bookkeeping_assistant.matching")
    assert any(isinstance(h, logging.NullHandler) for h in fresh_logging.handlers)


def test_configure_logging_attaches_one_stream_handler(fresh_logging):
    buf = io.StringIO()
    logging_setup.configure_logging("debug", stream=buf)
    logging_setup.configure_logging("error", stream=io.StringIO())

    stream_handlers = [h for h in fresh_logging.handlers if isinstance(h, logging.StreamHandler)]
    assert len(stream_handlers) == 1
    assert fresh_logging.level == logging.DEBUG
    assert fresh_logging.propagate is False

    logging_setup.get_logger("bookkeeping_assistant.pipeline").debug("hello")
    assert "bookkeeping_assistant.pipeline DEBUG [- -] hello" in buf.getvalue()


def test_level_comes_from_environment(fresh_logging, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BOOKKEEPING_LOG_LEVEL", "WARNING")
    logging_setup.configure_logging(stream=io.StringIO())
    assert fresh_logging.level == logging.WARNING


def test_unrecognized_level_defaults_to_info(fresh_logging, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BOOKKEEPING_LOG_LEVEL", "LOUD")
    logging_setup.configure_logging("nope", stream=io.StringIO())
    assert fresh_logging.level == logging.INFO


def test_bound_logger_stamps_ledger_and_process(fresh_logging):
    buf = io.StringIO()
    logging_setup.configure_logging("info", stream=buf)
    log = logging_setup.bind_logger(
        logging_setup.get_logger("bookkeeping_assistant.pipeline"),
        ledger_id="L1",
        process_id="p-42",
    )
    log.info("booked")
    log.info("override", extra={"process_id": "p-43"})

    lines = buf.getvalue().splitlines()
    assert lines[0].endswith("[L1 p-42] booked")
    assert lines[1].endswith("[L1 p-43] override")


def test_custom_format_and_numeric_level(fresh_logging):
    buf = io.StringIO()
    logging_setup.configure_logging("15", fmt="%(levelname)s|%(message)s", stream=buf)
    assert fresh_logging.level == 15
    logging_setup.get_logger("bookkeeping_assistant.cli").warning("careful")
    assert buf.getvalue() == "WARNING|careful\n"


@pytest.mark.asyncio
async def test_pipeline_logs_carry_the_ledger(fresh_logging):
    from bookkeeping_assistant.catalog import InMemoryCatalog
    from bookkeeping_assistant.pipeline import AssistantContext, classify_message

    buf = io.StringIO()
    logging_setup.configure_logging("debug", stream=buf)
    ctx = AssistantContext(catalog=InMemoryCatalog())
    await classify_message(ctx, "", ledger_id="ledger-7")
    assert "[ledger-7 -] parse failed kind=EMPTY_TEXT" in buf.getvalue()
