# ruff: noqa: I001
"""CLI for the ``bookkeeping_assistant`` package.

A Typer console interface over the classification pipeline. Environment
variables (notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Business logic lives in
``bookkeeping_assistant.pipeline`` and related modules.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import AssistantConfig, load_config
from .logging_setup import configure_logging

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="bookkeeping-assistant",
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Classify free-text bookkeeping messages against a ledger's subject catalog. "
        "Loads DATABASE_URL and BOOKKEEPING_* settings from a local .env."
    ),
)

LEDGER_OPTION = typer.Option("--ledger-id", help="Ledger whose catalog is used.")
DATABASE_URL_OPTION = typer.Option(
    "--database-url", help="Override DATABASE_URL (async SQLAlchemy URL)."
)
CATALOG_FILE_OPTION = typer.Option(
    "--catalog-file",
    exists=True,
    dir_okay=False,
    help="Use a seed JSON file as an in-memory catalog instead of the database.",
)


@app.callback()
def _main(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Logging level (default: INFO).")
    ] = None,
) -> None:
    load_dotenv()
    configure_logging(log_level)


# ---- Small helpers -----------------------------------------------------------


def _config(database_url: str | None) -> AssistantConfig:
    config = load_config()
    if database_url:
        from dataclasses import replace

        config = replace(config, database_url=database_url)
    return config


def _context(config: AssistantConfig, *, catalog_file: Path | None, ledger_id: str):
    from .pipeline import AssistantContext

    if catalog_file is None and not config.database_url:
        err_console.print("[red]Error:[/red] DATABASE_URL is not set and no --catalog-file given.")
        raise typer.Exit(1)
    return AssistantContext.from_config(config, catalog_file=catalog_file, ledger_id=ledger_id)


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


# ---- Commands ----------------------------------------------------------------


@app.command("classify")
def classify_cmd(
    text: Annotated[str, typer.Argument(help='Message text, e.g. "午餐 120 刷卡".')],
    ledger_id: Annotated[str, LEDGER_OPTION],
    timestamp_ms: Annotated[
        int | None, typer.Option("--timestamp-ms", help="Message time (epoch ms).")
    ] = None,
    user_type: Annotated[str, typer.Option("--user-type", help="M, S or J.")] = "J",
    learn: Annotated[bool, typer.Option("--learn/--no-learn")] = True,
    record: Annotated[bool, typer.Option("--record/--no-record")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the reply as JSON.")] = False,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    catalog_file: Annotated[Path | None, CATALOG_FILE_OPTION] = None,
) -> None:
    """Classify one message and print the rendered reply."""

    from .pipeline import classify_and_render

    config = _config(database_url)
    ctx = _context(config, catalog_file=catalog_file, ledger_id=ledger_id)

    async def _run():
        try:
            return await classify_and_render(
                ctx,
                text,
                ledger_id=ledger_id,
                timestamp_ms=timestamp_ms,
                user_type=user_type.upper(),
                learn=learn,
                record=record,
            )
        finally:
            await ctx.aclose()

    outcome, reply = asyncio.run(_run())

    if as_json:
        console.print_json(json.dumps(reply, ensure_ascii=False, default=str))
    else:
        style = "green" if reply["success"] else "red"
        console.print(Panel(reply["message"], title="記帳結果", border_style=style))
        learning = getattr(outcome, "learning", None)
        if learning is not None:
            console.print(
                f"[cyan]synonym learning:[/cyan] {learning.action}"
                + (f" ({learning.reason})" if learning.reason else "")
            )
    if not reply["success"]:
        raise typer.Exit(1)


@app.command("match")
def match_cmd(
    term: Annotated[str, typer.Argument(help="Subject term to resolve.")],
    ledger_id: Annotated[str, LEDGER_OPTION],
    threshold: Annotated[
        float | None, typer.Option("--threshold", help="Edit-distance cutoff.")
    ] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    catalog_file: Annotated[Path | None, CATALOG_FILE_OPTION] = None,
) -> None:
    """Show the ranked matches and exact multi-mappings for a term."""

    from .ambiguity import find_ambiguous
    from .catalog import CatalogError, with_timeout
    from .matching import rank_matches

    config = _config(database_url)
    ctx = _context(config, catalog_file=catalog_file, ledger_id=ledger_id)

    async def _load():
        try:
            return await with_timeout(
                ctx.catalog.list_subjects(ledger_id), config.catalog_timeout, what="read"
            )
        finally:
            await ctx.aclose()

    try:
        subjects = asyncio.run(_load())
    except CatalogError as e:
        raise _fail(str(e)) from e

    ranked = rank_matches(term, subjects, threshold, policy=ctx.policy)
    exact = find_ambiguous(term, subjects, policy=ctx.policy)

    table = Table(title=f"Matches for {term!r}")
    table.add_column("#", justify="right")
    table.add_column("Code")
    table.add_column("Subject")
    table.add_column("Match type")
    table.add_column("Via")
    table.add_column("Score", justify="right")
    for i, m in enumerate(ranked, start=1):
        table.add_row(str(i), m.code, m.sub_name, m.match_type, m.matched_text, f"{m.score:.3f}")
    console.print(table)

    if len(exact) > 1:
        names = ", ".join(f"{m.sub_name} ({m.code})" for m in exact)
        console.print(f"[yellow]Ambiguous:[/yellow] {term!r} exactly names {names}")
    if not ranked:
        console.print("[yellow]No match.[/yellow]")
        raise typer.Exit(1)


@app.command("learn")
def learn_cmd(
    term: Annotated[str, typer.Argument(help="Confirmed wording to add as a synonym.")],
    subject_code: Annotated[str, typer.Argument(help='Target subject as "major-sub".')],
    ledger_id: Annotated[str, LEDGER_OPTION],
    subject_name: Annotated[
        str, typer.Option("--subject-name", help="Display name of the subject.")
    ] = "",
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Fold TERM into the synonym set of SUBJECT_CODE."""

    from .catalog import CatalogError
    from .synonyms import learn_synonym

    config = _config(database_url)
    ctx = _context(config, catalog_file=None, ledger_id=ledger_id)

    async def _run():
        try:
            return await learn_synonym(
                ctx.catalog,
                ledger_id=ledger_id,
                term=term,
                matched_subject_name=subject_name,
                subject_code=subject_code,
                timeout=config.catalog_timeout,
            )
        finally:
            await ctx.aclose()

    try:
        outcome = asyncio.run(_run())
    except CatalogError as e:
        raise _fail(str(e)) from e

    summary: dict[str, Any] = {
        "success": outcome.success,
        "action": outcome.action,
        "reason": outcome.reason,
        "synonyms": list(outcome.synonyms),
    }
    console.print_json(json.dumps(summary, ensure_ascii=False))
    if not outcome.success:
        raise typer.Exit(1)


@app.command("seed-catalog")
def seed_catalog_cmd(
    file: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Seed JSON file.")],
    ledger_id: Annotated[str, LEDGER_OPTION],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Replace a ledger's subjects with the contents of FILE."""

    from pydantic import ValidationError

    from .ingest.seed_catalog import reseed

    config = _config(database_url)
    if not config.database_url:
        raise _fail("DATABASE_URL is not set.")
    try:
        count = asyncio.run(
            reseed(database_url=config.database_url, ledger_id=ledger_id, file=file)
        )
    except (ValidationError, ValueError, json.JSONDecodeError) as e:
        raise _fail(f"invalid seed file: {e}") from e
    console.print(f"[green]Seeded {count} subjects into ledger {ledger_id}.[/green]")


__all__ = ["app"]
