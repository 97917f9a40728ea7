"""CLI for the ``loop_ledger`` package.

Commands read the ledger either from a JSON snapshot (``--json-path``, a
``{"settings": {...}, "loops": [...], "expenses": [...]}`` file) or from the
SQL store (``--database-url`` / ``DATABASE_URL``), load it through
:class:`~loop_ledger.cache.LedgerCache` and render the aggregation views with
``rich``. ``.env`` is loaded from the current working directory before any
command runs.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import BaseModel, ConfigDict, ValidationError
from rich.console import Console
from rich.table import Table

from .aggregation import LedgerReport, LoopTypeFilter, pct
from .cache import LedgerCache
from .config import AppConfig, load_config
from .date_range import RangeKey
from .errors import LedgerError
from .logging_setup import configure_logging
from .persistence import sql_ledger_store
from .store import LedgerStore, in_memory_store

console = Console()
err_console = Console(stderr=True)


class LedgerSnapshot(BaseModel):
    """On-disk JSON snapshot: raw records, normalized on load."""

    model_config = ConfigDict(extra="ignore")

    settings: dict[str, Any] | None = None
    loops: list[dict[str, Any]] = []
    expenses: list[dict[str, Any]] = []


# ---- Small helpers used by CLI commands ---------------------------------------


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _read_snapshot(path: Path) -> LedgerSnapshot:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise _fail(f"File not found: {path}") from None
    except json.JSONDecodeError as e:
        raise _fail(f"Invalid JSON in {path}: {e}") from None
    try:
        return LedgerSnapshot.model_validate(payload)
    except ValidationError as e:
        raise _fail(f"Unexpected snapshot shape in {path}: {e}") from None


def _open_store(config: AppConfig, json_path: Path | None) -> LedgerStore:
    if json_path is not None:
        snap = _read_snapshot(json_path)
        return in_memory_store(
            loops=snap.loops,
            expenses=snap.expenses,
            settings=snap.settings,
            user_id=config.user_id,
        )
    if not config.database_url:
        raise _fail("Provide --json-path or set DATABASE_URL / --database-url.")
    return sql_ledger_store(config.database_url)


def _load_cache(config: AppConfig, json_path: Path | None) -> LedgerCache:
    cache = LedgerCache(
        _open_store(config, json_path),
        user_id=config.user_id,
        mileage=config.mileage_estimator(),
    )
    try:
        asyncio.run(cache.refresh())
    except LedgerError as e:
        raise _fail(f"could not load ledger: {e}") from None
    return cache


def _parse_as_of(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise _fail(f"--as-of must be YYYY-MM-DD, got {value!r}") from None


def _resolve_config(database_url: str | None, user_id: str | None) -> AppConfig:
    config = load_config()
    updates: dict[str, Any] = {}
    if database_url:
        updates["database_url"] = database_url
    if user_id:
        updates["user_id"] = user_id
    return config.model_copy(update=updates) if updates else config


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _fmt_range(report: LedgerReport) -> str:
    rng = report.date_range
    if not rng.is_bounded:
        return "all time"
    assert rng.start is not None and rng.end is not None
    return f"{rng.start.date().isoformat()} .. {rng.end.date().isoformat()}"


def _render_report(report: LedgerReport) -> None:
    console.print(
        f"[bold]Loop Ledger[/bold] {report.range_key.value} ({_fmt_range(report)})"
    )

    income = Table(title="Income")
    income.add_column("Category")
    income.add_column("Amount", justify="right")
    income.add_column("Share", justify="right")
    inc = report.income
    income.add_row("Bag fees", _money(inc.bag_fees), f"{inc.bag_fees_pct}%")
    income.add_row("Cash tips", _money(inc.cash_tips), f"{inc.cash_tips_pct}%")
    income.add_row("Digital tips", _money(inc.digital_tips), f"{inc.digital_tips_pct}%")
    income.add_row("Pre-grat", _money(inc.pre_grat), f"{inc.pre_grat_pct}%")
    income.add_row("Total", _money(inc.total_income), f"{inc.loop_count} loops")
    console.print(income)

    ins = report.insights
    insights = Table(title=f"Insights ({report.loop_type.label})")
    insights.add_column("Metric")
    insights.add_column("Value", justify="right")
    insights.add_row("Loops", str(ins.total_loops))
    insights.add_row("Total income", _money(ins.total_income))
    tips = ins.cash_tips + ins.digital_tips + ins.pre_grat
    insights.add_row("Tips %", f"{pct(tips, ins.total_income)}%")
    insights.add_row("Avg per loop", _money(ins.avg_earnings_per_loop))
    insights.add_row("On-bag $/hr", _money(ins.on_bag_per_hour))
    insights.add_row("Overall $/hr", _money(ins.overall_per_hour))
    insights.add_row("Avg wait", ins.avg_wait)
    insights.add_row("Avg pace", ins.avg_pace)
    console.print(insights)

    exp = report.expenses
    expenses = Table(title="Expenses")
    expenses.add_column("Category")
    expenses.add_column("Amount", justify="right")
    for category, amount in sorted(exp.by_category.items()):
        expenses.add_row(category, _money(amount))
    expenses.add_row(f"Mileage ({exp.mileage_miles:.1f} mi)", _money(exp.mileage_total))
    expenses.add_row("Total", _money(exp.total_expenses))
    console.print(expenses)

    by_type = Table(title="By loop type")
    by_type.add_column("Type")
    by_type.add_column("Loops", justify="right")
    by_type.add_column("Tips", justify="right")
    for row in report.by_type:
        by_type.add_row(row.facet.label, str(row.count), _money(row.tips))
    console.print(by_type)

    led = report.ledger
    console.print(
        f"Income {_money(led.total_income)}  Expenses {_money(led.total_expenses)}  "
        f"[bold]Net {_money(led.net)}[/bold]"
    )
    if report.undated_loops:
        err_console.print(
            f"[yellow]Warning:[/yellow] {report.undated_loops} loop(s) have an unreadable "
            "date and are only included in ALL."
        )


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    name="loop-ledger",
    no_args_is_help=True,
    add_completion=False,
    help="Caddie earnings ledger: income, insights and expenses by date range.",
)

RANGE_OPTION = typer.Option("--range", "-r", help="7D, 14D, 30D, MTD, YTD or ALL.")
JSON_PATH_OPTION = typer.Option(help="Read records from a JSON snapshot instead of the DB.")
DATABASE_URL_OPTION = typer.Option(help="Override DATABASE_URL (falls back to env var).")
USER_ID_OPTION = typer.Option(help="Override LOOP_LEDGER_USER_ID.")
AS_OF_OPTION = typer.Option(help="Resolve the range as of this date (YYYY-MM-DD).")


@app.command("report")
def report_cmd(
    range_key: Annotated[str, RANGE_OPTION] = RangeKey.LAST_7_DAYS.value,
    loop_type: Annotated[
        str, typer.Option(help="Insights facet: all, single, double or forecaddie.")
    ] = LoopTypeFilter.ALL.value,
    json_path: Annotated[Path | None, JSON_PATH_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    user_id: Annotated[str | None, USER_ID_OPTION] = None,
    as_of: Annotated[str | None, AS_OF_OPTION] = None,
) -> None:
    """Show income, insights and expenses for a date range."""

    try:
        key = RangeKey.parse(range_key)
        facet = LoopTypeFilter.parse(loop_type)
    except ValueError as e:
        raise _fail(str(e)) from None
    now = _parse_as_of(as_of)

    cache = _load_cache(_resolve_config(database_url, user_id), json_path)
    _render_report(cache.report(key, loop_type=facet, now=now))


@app.command("trend")
def trend_cmd(
    range_key: Annotated[str, RANGE_OPTION] = RangeKey.LAST_30_DAYS.value,
    json_path: Annotated[Path | None, JSON_PATH_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    user_id: Annotated[str | None, USER_ID_OPTION] = None,
    as_of: Annotated[str | None, AS_OF_OPTION] = None,
) -> None:
    """Show daily earnings for a date range, oldest first."""

    try:
        key = RangeKey.parse(range_key)
    except ValueError as e:
        raise _fail(str(e)) from None
    now = _parse_as_of(as_of)

    cache = _load_cache(_resolve_config(database_url, user_id), json_path)
    report = cache.report(key, now=now)

    table = Table(title=f"Daily earnings {key.value} ({_fmt_range(report)})")
    table.add_column("Day")
    table.add_column("Total", justify="right")
    for row in report.trend:
        table.add_row(row.day.isoformat(), _money(row.total))
    console.print(table)


@app.command("init-db")
def init_db_cmd(
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Create the ledger tables (idempotent)."""

    config = _resolve_config(database_url, None)
    if not config.database_url:
        raise _fail("DATABASE_URL is not set; pass --database-url.")
    try:
        sql_ledger_store(config.database_url, create_tables=True)
    except LedgerError as e:
        raise _fail(str(e)) from None
    console.print("[green]Ledger tables ready.[/green]")


@app.command("import-snapshot")
def import_snapshot_cmd(
    json_path: Annotated[Path, typer.Argument(help="JSON snapshot to import.")],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    user_id: Annotated[str | None, USER_ID_OPTION] = None,
) -> None:
    """Normalize a JSON snapshot and save every record into the SQL store."""

    config = _resolve_config(database_url, user_id)
    if not config.database_url:
        raise _fail("DATABASE_URL is not set; pass --database-url.")
    snap = _read_snapshot(json_path)

    async def _import() -> LedgerCache:
        store = sql_ledger_store(config.database_url or "", create_tables=True)
        cache = LedgerCache(store, user_id=config.user_id, mileage=config.mileage_estimator())
        await cache.refresh()
        if snap.settings is not None:
            await cache.save_settings(snap.settings)
        for raw in snap.loops:
            await cache.save_loop(raw)
        for raw in snap.expenses:
            await cache.save_expense(raw)
        return cache

    try:
        cache = asyncio.run(_import())
    except LedgerError as e:
        raise _fail(f"import failed: {e}") from None
    console.print(
        f"Imported {len(snap.loops)} loop(s) and {len(snap.expenses)} expense(s); "
        f"ledger now holds {len(cache.loops)} loop(s)."
    )


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    config = load_config()
    configure_logging(config.log_level, force=True)


if __name__ == "__main__":  # pragma: no cover
    app()
