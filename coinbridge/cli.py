"""
Command-line interface for poking a single exchange connector.
"""

import asyncio
import logging
import os
import sys

import click

from . import registry
from .config import configure_logging, load_config, exchange_config
from .errors import ExchangeError
from .exchanges import create_exchange, SUPPORTED_EXCHANGES
from .models import DataSource, PublicOperation, PublicOperationType


def _build(ctx, name):
    path = ctx.obj.get("config_file") or os.getenv("CONFIG_PATH")
    config = load_config(path) if path and os.path.exists(path) else {}
    return create_exchange(exchange_config(config, name))


def _run(coro):
    try:
        return asyncio.run(coro)
    except ExchangeError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


async def _resolve_pair(ex, base, target):
    await ex.init_data()
    b, t = registry.get_coin(base), registry.get_coin(target)
    if b is None or t is None:
        raise click.BadParameter(f"{ex.get_name()} does not list {base}/{target}")
    pair = registry.get_pair(b, t)
    if ex.get_pair_constraint(pair) is None:
        raise click.BadParameter(f"{ex.get_name()} has no market for {pair}")
    return pair


exchange_arg = click.argument("exchange", type=click.Choice(SUPPORTED_EXCHANGES, case_sensitive=False))


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False),
              help="Configuration file path (defaults to $CONFIG_PATH)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def cli(ctx, config, verbose):
    """Exchange connector CLI"""
    configure_logging(logging.DEBUG if verbose else None)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config


@cli.command()
@exchange_arg
@click.pass_context
def coins(ctx, exchange):
    """Refresh and list coin constraints"""
    async def go():
        ex = _build(ctx, exchange)
        try:
            if ex.source == DataSource.JSON_FILE:
                await ex.init_data()
            await ex.get_coins_data()
            for c in sorted(ex.get_coins(), key=lambda c: c.code):
                cc = ex.get_coin_constraint(c)
                click.echo(f"{c.code:<10} {cc.ex_symbol:<10} fee={cc.tx_fee} withdraw={cc.withdraw} listed={cc.listed}")
        finally:
            await ex.close()
    _run(go())


@cli.command()
@exchange_arg
@click.pass_context
def pairs(ctx, exchange):
    """Refresh and list pair constraints"""
    async def go():
        ex = _build(ctx, exchange)
        try:
            await ex.init_data()
            for p in sorted(ex.get_pairs(), key=lambda p: p.symbol):
                pc = ex.get_pair_constraint(p)
                click.echo(f"{p.symbol:<14} {pc.ex_symbol:<14} lot={pc.lot_size} tick={pc.price_filter} "
                           f"maker={pc.maker_fee} taker={pc.taker_fee} listed={pc.listed}")
        finally:
            await ex.close()
    _run(go())


@cli.command()
@exchange_arg
@click.argument("base")
@click.argument("target")
@click.option("--depth", "-d", default=5, help="Levels to print per side")
@click.pass_context
def book(ctx, exchange, base, target, depth):
    """Print an order book snapshot for BASE|TARGET (e.g. USDT BTC)"""
    async def go():
        ex = _build(ctx, exchange)
        try:
            pair = await _resolve_pair(ex, base, target)
            maker = await ex.order_book(pair)
            click.echo(f"📖 {ex.get_name()} {pair} from {maker.worker_ip} "
                       f"[{maker.before_timestamp:.0f} .. {maker.after_timestamp:.0f}]")
            for ask in reversed(maker.asks[:depth]):
                click.echo(f"  ask {ask.rate:>16} x {ask.quantity}")
            for bid in maker.bids[:depth]:
                click.echo(f"  bid {bid.rate:>16} x {bid.quantity}")
        finally:
            await ex.close()
    _run(go())


@cli.command()
@exchange_arg
@click.argument("base")
@click.argument("target")
@click.pass_context
def trades(ctx, exchange, base, target):
    """Print recent public trades for BASE|TARGET"""
    async def go():
        ex = _build(ctx, exchange)
        try:
            pair = await _resolve_pair(ex, base, target)
            op = PublicOperation(type=PublicOperationType.TRADE_HISTORY, pair=pair)
            await ex.load_public_data(op)
            for t in op.trade_history:
                direction = t.direction.value if t.direction else "?"
                click.echo(f"{t.timestamp} {direction:<4} {t.rate} x {t.quantity}")
        finally:
            await ex.close()
    _run(go())


@cli.command()
@exchange_arg
@click.pass_context
def balances(ctx, exchange):
    """Refresh and print available balances"""
    async def go():
        ex = _build(ctx, exchange)
        try:
            if not ex.has_credentials():
                click.echo(f"⚠️ {ex.get_name()} has no API credentials configured", err=True)
                return
            await ex.init_data()
            await ex.update_all_balances()
            for code, amount in sorted(ex.balances.items()):
                if amount:
                    click.echo(f"{code:<10} {amount}")
        finally:
            await ex.close()
    _run(go())


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
