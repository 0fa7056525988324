#!/usr/bin/env python3
"""
CLOB Gateway

Usage:
    python main.py serve --port 8000
    python main.py whales --time-range 24h
    python main.py whales --read-only --side YES
    python main.py link-status 0xabc...
"""
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import uvicorn

from clob_gateway.api.app import create_app
from clob_gateway.config import load_config
from clob_gateway.errors import GatewayError
from clob_gateway.services import build_services

logger = logging.getLogger(__name__)


def _setup_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@click.group()
@click.version_option(version="1.0.0")
@click.option(
    "--env-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to .env file (default: ./.env)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging (DEBUG level)")
@click.pass_context
def cli(ctx: click.Context, env_file: Optional[Path], verbose: bool):
    """Polymarket CLOB gateway: credential linking, order routing,
    reconciliation and whale trade aggregation.
    """
    try:
        config = load_config(env_file)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    _setup_logging(config.log_level, verbose)
    ctx.obj = config


@cli.command()
@click.option("--host", type=str, default=None, help="Bind host (default: API_HOST)")
@click.option("--port", type=int, default=None, help="Bind port (default: API_PORT)")
@click.pass_obj
def serve(config, host: Optional[str], port: Optional[int]):
    """Run the HTTP gateway."""
    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


@cli.command()
@click.option(
    "--time-range",
    type=click.Choice(["1h", "24h", "7d", "30d"]),
    default="24h",
    help="Window to collect and report",
)
@click.option("--min-size", type=float, default=0, help="Minimum trade amount to report")
@click.option("--side", type=click.Choice(["YES", "NO"]), default=None)
@click.option("--read-only", is_flag=True, help="Skip collection, report stored trades only")
@click.pass_obj
def whales(config, time_range: str, min_size: float, side: Optional[str], read_only: bool):
    """Collect whale trades from the activity feed and print stats."""
    services = build_services(config)
    try:
        if not read_only:
            run = services.whales.run(time_range=time_range)
            click.echo(
                f"Scanned {run.scanned:,} orders over {run.pages} page(s): "
                f"{run.qualifying} whale trades, {run.stored} stored, {run.skipped} skipped"
            )
        view = services.whales.read(time_range=time_range, min_size=min_size, side=side)
    except GatewayError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    finally:
        services.close()

    stats = view["stats"]
    click.echo(f"\nWhale activity, last {time_range}:")
    click.echo(f"  - Trades:       {stats['tradeCount']:,}")
    click.echo(f"  - Volume:       ${stats['totalVolume']:,.0f}")
    click.echo(f"  - YES / NO:     ${stats['yesVolume']:,.0f} / ${stats['noVolume']:,.0f}")
    click.echo(f"  - Net flow:     ${stats['netFlow']:,.0f}")
    click.echo(f"  - Hot markets:  {stats['hotMarketsCount']}")
    for trade in view["trades"][:10]:
        click.echo(
            f"  {trade.timestamp}  {trade.side:<3}  ${trade.amount:>10,.0f}  "
            f"@ {trade.price:.2f}  {trade.market_question[:60]}"
        )
    if view["message"]:
        click.echo(f"\n{view['message']}")


@cli.command("link-status")
@click.argument("address")
@click.pass_obj
def link_status(config, address: str):
    """Show whether a wallet has stored credentials (no secrets printed)."""
    services = build_services(config)
    try:
        click.echo(json.dumps(services.credentials.status(address), indent=2))
    finally:
        services.close()


if __name__ == "__main__":
    cli()
