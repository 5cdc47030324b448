from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import bookkeeping_assistant.ingest as ingest_pkg
from bookkeeping_assistant.cli import app

SEED_FILE = Path(ingest_pkg.__file__).parent / "seeds" / "subjects.v1.json"

runner = CliRunner()


def _seeded(*args: str) -> list[str]:
    return [*args, "--ledger-id", "user_cli", "--catalog-file", str(SEED_FILE)]


def test_classify_prints_reply_json():
    result = runner.invoke(app, ["classify", *_seeded("午餐 120 現金"), "--json"])
    assert result.exit_code == 0, result.output
    assert '"success": true' in result.output
    assert "午餐" in result.output


def test_classify_failure_exits_nonzero():
    result = runner.invoke(app, ["classify", *_seeded("火星 100")])
    assert result.exit_code == 1
    assert "記帳失敗" in result.output


def test_classify_requires_a_catalog_source():
    result = runner.invoke(app, ["classify", "午餐 120", "--ledger-id", "user_cli"])
    assert result.exit_code == 1


def test_match_lists_ranked_candidates():
    result = runner.invoke(app, ["match", *_seeded("手搖")])
    assert result.exit_code == 0, result.output
    assert "飲料" in result.output
    assert "synonym_contains" in result.output


def test_match_without_candidates_exits_nonzero():
    result = runner.invoke(app, ["match", *_seeded("火星")])
    assert result.exit_code == 1
    assert "No match" in result.output


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def test_seed_then_classify_and_learn_against_database(db_url: str):
    seeded = runner.invoke(
        app, ["seed-catalog", str(SEED_FILE), "--ledger-id", "user_cli", "--database-url", db_url]
    )
    assert seeded.exit_code == 0, seeded.output
    assert "Seeded 15 subjects" in seeded.output

    classified = runner.invoke(
        app,
        ["classify", "家鄉便當 85", "--ledger-id", "user_cli", "--database-url", db_url, "--json"],
    )
    assert classified.exit_code == 0, classified.output
    assert "便當" in classified.output

    learned = runner.invoke(
        app,
        ["learn", "美式", "100-106", "--ledger-id", "user_cli", "--database-url", db_url],
    )
    assert learned.exit_code == 0, learned.output
    summary = json.loads(learned.output)
    assert summary["action"] == "updated"
    assert "美式" in summary["synonyms"]

    again = runner.invoke(
        app,
        ["learn", "美式", "100-106", "--ledger-id", "user_cli", "--database-url", db_url],
    )
    assert json.loads(again.output)["reason"] == "already_synonym"


def test_seed_catalog_rejects_invalid_file(tmp_path: Path, db_url: str):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"not": "a list"}), encoding="utf-8")
    result = runner.invoke(
        app, ["seed-catalog", str(bad), "--ledger-id", "user_cli", "--database-url", db_url]
    )
    assert result.exit_code == 1
