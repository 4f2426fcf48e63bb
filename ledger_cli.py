#!/usr/bin/env python3
"""Reseller Ledger - CLI entry point."""
import sys
from typing import Any, Dict, Optional

import click
from rich.table import Table

from api_server import ApiServer
from config_loader import ConfigurationError, get_server_address, load_config
from ledger_service import LedgerService, create_service
from stats import RANGE_KEYS
from table_store import TableStoreError
from utils import console, format_currency, format_days, format_percentage, setup_logging

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option('--config', '-c', type=click.Path(), default=None,
              help='Path to config file (optional, uses config.yaml by default)')
@click.pass_context
def cli(ctx, config):
    """Reseller Ledger - inventory and profit reports from a spreadsheet."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config

    ctx.obj['config'] = load_config(config)

    log_level = ctx.obj['config'].get('reporting', {}).get('log_level', 'INFO')
    ctx.obj['logger'] = setup_logging(log_level)


def _service(ctx) -> LedgerService:
    """Service from context (tests inject one), else from config."""
    service = ctx.obj.get('service')
    if service is not None:
        return service
    try:
        service = create_service(ctx.obj['config'])
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    ctx.obj['service'] = service
    return service


def _run(fn, *args, **kwargs) -> Any:
    try:
        return fn(*args, **kwargs)
    except TableStoreError as e:
        console.print(f"[red]Spreadsheet error: {e}[/red]")
        sys.exit(1)


def _money(value: float) -> str:
    color = "green" if value > 0 else "red" if value < 0 else "white"
    return f"[{color}]{format_currency(value)}[/{color}]"


@cli.command()
@click.pass_context
def inventory(ctx):
    """Show items on hand with cost basis and estimated value."""
    report = _run(_service(ctx).inventory)

    table = Table(title="Inventory On Hand")
    table.add_column("Item")
    table.add_column("Qty", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Avg Cost", justify="right")
    table.add_column("Est. Value", justify="right")
    table.add_column("Unrealized", justify="right")
    for row in report["items"]:
        table.add_row(
            row["item"],
            str(row["on_hand_qty"]),
            format_currency(row["on_hand_cost"]),
            format_currency(row["avg_cost"]),
            format_currency(row["est_value"]),
            _money(row["unrealized"]),
        )
    totals = report["totals"]
    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        str(totals["qty"]),
        format_currency(totals["cost"]),
        "",
        format_currency(totals["est_value"]),
        _money(totals["unrealized"]),
    )
    console.print(table)


@cli.command()
@click.option('--range', 'range_key', type=click.Choice(RANGE_KEYS, case_sensitive=False),
              default='mtd', help='Reporting window')
@click.option('--item', '-i', default='', help='Only items whose name contains all these words')
@click.option('--from', 'date_from', default=None, help='Start date override (YYYY-MM-DD)')
@click.option('--to', 'date_to', default=None, help='End date override (YYYY-MM-DD)')
@click.pass_context
def stats(ctx, range_key: str, item: str, date_from: Optional[str], date_to: Optional[str]):
    """Show profit statistics for a period."""
    result = _run(_service(ctx).stats, range_key=range_key, item_filter=item,
                  date_from=date_from, date_to=date_to)
    _print_summary(result)

    if result["by_item"]:
        table = Table(title="By Item")
        table.add_column("Item")
        table.add_column("Bought", justify="right")
        table.add_column("Sold", justify="right")
        table.add_column("Revenue", justify="right")
        table.add_column("Profit", justify="right")
        for row in result["by_item"]:
            table.add_row(row["item"], str(row["bought"]), str(row["sold"]),
                          format_currency(row["revenue"]), _money(row["profit"]))
        console.print(table)

    if result["by_platform"]:
        table = Table(title="By Platform")
        table.add_column("Platform")
        table.add_column("Sold", justify="right")
        table.add_column("Revenue", justify="right")
        table.add_column("Fees", justify="right")
        table.add_column("Profit", justify="right")
        for row in result["by_platform"]:
            table.add_row(row["platform"], str(row["sold"]), format_currency(row["revenue"]),
                          format_currency(row["fees"]), _money(row["profit"]))
        console.print(table)


def _print_summary(result: Dict[str, Any]) -> None:
    s = result["summary"]
    window = f"{result['start'] or '...'} to {result['end'] or '...'}"
    console.print(f"\n[bold blue]Statistics ({result['range']}, {window})[/bold blue]")
    if result["item_filter"]:
        console.print(f"Filter: {result['item_filter']}")
    console.print(f"  Bought: {s['bought_qty']} for {format_currency(s['spent'])}")
    console.print(f"  Sold: {s['sold_qty']} for {format_currency(s['revenue'])}")
    console.print(f"  Fees: {format_currency(s['fees'])}  Shipping: {format_currency(s['shipping'])}")
    console.print(f"  Profit: {_money(s['profit'])}")
    console.print(f"  ROI: {format_percentage(s['roi_pct'])}  Margin: {format_percentage(s['margin_pct'])}")
    console.print(f"  Avg sale price: {format_currency(s['asp'])}")
    console.print(f"  Avg days to sell: {format_days(s['avg_days_to_sell'])}\n")


@cli.command()
@click.option('--item', '-i', default='', help='Only items whose name contains all these words')
@click.pass_context
def hold(ctx, item: str):
    """Show how long the oldest unsold purchase has been held."""
    result = _run(_service(ctx).longest_hold_days, item)
    label = f" matching '{item}'" if item else ""
    console.print(f"Oldest open position{label}: [bold]{format_days(result['days'])}[/bold]")


@cli.command()
@click.option('--host', default=None, help='Bind address (default from config)')
@click.option('--port', '-p', type=int, default=None, help='Port (default from config)')
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Serve the JSON API."""
    default_host, default_port = get_server_address(ctx.obj['config'])
    server = ApiServer(_service(ctx), host=host or default_host, port=port or default_port)
    console.print(f"[bold blue]Serving ledger API on {server.host}:{server.port}[/bold blue]")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Shutting down...[/bold yellow]")


if __name__ == '__main__':
    cli()
