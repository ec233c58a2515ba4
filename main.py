#!/usr/bin/env python3
"""
Stock Entry Engine: CLI entry point.

Usage examples:
  python main.py check                              # Verify backend and draft store
  python main.py show 42                            # Load entry 42 and print its summary
  python main.py recalc --factor 1 --rate 12500 purchase_unit_quantity=10 price_per_unit_currency=2
  python main.py recalc --base-currency price_per_unit_uz=5000 purchase_unit_quantity=3

  python main.py drafts show 42                     # Print the saved draft of entry 42
  python main.py drafts clear new                   # Drop the draft of an unsaved entry
"""
import asyncio
import json
import logging
import sqlite3
import sys

import click

from config import Config
from models.line_item import (
    CalculationMetadata, FieldDescriptor, FieldName, LineItem, LineItemStatus, empty_fields,
)
from stock_entry.backend import BackendClient
from stock_entry.derivation import apply_edit
from stock_entry.drafts import SqliteDraftStore, draft_key
from stock_entry.errors import RemoteError, StockEntryError
from stock_entry.report import EntryReport
from stock_entry.session import StockEntrySession

DEFAULT_EDITABLE = (
    FieldName.PURCHASE_UNIT_QUANTITY.value,
    FieldName.PRICE_PER_UNIT_CURRENCY.value,
    FieldName.TOTAL_IN_CURRENCY.value,
    FieldName.PRICE_PER_UNIT_BASE.value,
    FieldName.TOTAL_IN_BASE.value,
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _entry_id(value: str):
    return None if value == "new" else int(value)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Stock Entry Engine: line-item calculation, balance checks and submission."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

async def _check_backend(config: Config) -> dict:
    async with BackendClient(config) as client:
        try:
            rates = await client.get_currency_rates()
        except RemoteError as exc:
            return {"ok": False, "error": str(exc)}
    return {"ok": True, "rate": (rates[0] or {}).get("rate") if rates else None}


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that the backend is reachable and the draft store is writable."""
    config = Config()

    click.echo("\n=== Stock Entry Setup Check ===\n")
    click.echo(f"  Backend:        {config.api_base_url}")
    backend = asyncio.run(_check_backend(config))
    if backend["ok"]:
        rate = backend["rate"]
        click.echo(f"  Reachable:      ✓  (USD rate: {rate if rate is not None else 'not published'})")
    else:
        click.echo(f"  Reachable:      ✗  ({backend['error']})")
        click.echo("  → Check STOCK_API_BASE_URL and STOCK_API_TOKEN")

    click.echo()
    if config.drafts_enabled:
        try:
            SqliteDraftStore(config.draft_db_path)
            click.echo(f"  Draft store:    ✓  {config.draft_db_path}")
        except (OSError, sqlite3.Error) as exc:
            click.echo(f"  Draft store:    ✗  {config.draft_db_path} ({exc})")
    else:
        click.echo("  Draft store:    disabled (DRAFTS_ENABLED=false)")
    click.echo()


# --------------------------------------------------------------------
# show command
# --------------------------------------------------------------------

async def _show(config: Config, entry_id: int) -> str:
    async with BackendClient(config) as client:
        session = StockEntrySession(client, config, entry_id=entry_id)
        try:
            await session.load()
            return EntryReport().render(
                session.context, session.items, session.totals,
                entry_id=entry_id,
                supplier=session.supplier,
                balance=session.balance_check() if session.context.use_supplier_balance else None,
                issues=session.validate(),
            )
        finally:
            await session.close()


@cli.command()
@click.argument("entry_id", type=int)
@click.pass_context
def show(ctx: click.Context, entry_id: int) -> None:
    """Load ENTRY_ID, resolve its lines and print a summary."""
    config = Config()
    try:
        click.echo(asyncio.run(_show(config, entry_id)))
    except StockEntryError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# --------------------------------------------------------------------
# recalc command
# --------------------------------------------------------------------

@cli.command()
@click.argument("edits", nargs=-1)
@click.option("--factor", default=1.0, type=float, help="Conversion factor (purchase unit -> base unit)")
@click.option("--rate", default=1.0, type=float, help="Exchange rate into base currency")
@click.option("--base-currency", is_flag=True, help="Line is priced in base currency")
@click.option(
    "--editable", "-e", multiple=True,
    help="Editable field (repeatable); default: purchase quantity, prices and totals",
)
@click.pass_context
def recalc(
    ctx: click.Context,
    edits: tuple[str, ...],
    factor: float,
    rate: float,
    base_currency: bool,
    editable: tuple[str, ...],
) -> None:
    """
    Run the calculation engine offline over one line.

    \b
    EDITS are field=value pairs applied in order, e.g.
      purchase_unit_quantity=10 price_per_unit_currency=2.00
    """
    editable_fields = set(editable or DEFAULT_EDITABLE)
    item = LineItem(
        id="item-1",
        fields=empty_fields(),
        field_descriptors=[
            FieldDescriptor(name=name, label=name, editable=name in editable_fields)
            for name in (f.value for f in FieldName)
        ],
        calculation_metadata=CalculationMetadata(
            conversion_factor=factor, exchange_rate=rate, is_base_currency=base_currency,
        ),
        status=LineItemStatus.RESOLVED,
    )
    for edit in edits:
        name, sep, value = edit.partition("=")
        if not sep or name not in item.fields:
            click.echo(f"Error: bad edit {edit!r} (expected field=value)", err=True)
            sys.exit(1)
        apply_edit(item, name, value)

    shown = {k: v for k, v in item.fields.items() if v}
    click.echo(json.dumps(shown, indent=2, ensure_ascii=False))


# --------------------------------------------------------------------
# drafts commands
# --------------------------------------------------------------------

@cli.group()
def drafts() -> None:
    """Inspect or drop saved drafts (ENTRY_ID or 'new')."""


@drafts.command("show")
@click.argument("entry_id")
def drafts_show(entry_id: str) -> None:
    config = Config()
    store = SqliteDraftStore(config.draft_db_path)
    snapshot = store.get(draft_key(_entry_id(entry_id)))
    if snapshot is None:
        click.echo(f"No draft for entry {entry_id}")
        return
    click.echo(snapshot.model_dump_json(indent=2))


@drafts.command("clear")
@click.argument("entry_id")
def drafts_clear(entry_id: str) -> None:
    config = Config()
    store = SqliteDraftStore(config.draft_db_path)
    store.clear(draft_key(_entry_id(entry_id)))
    click.echo(f"Draft for entry {entry_id} cleared")


if __name__ == "__main__":
    cli()
