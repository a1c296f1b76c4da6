#!/usr/bin/env python3
"""
bondcurve CLI

Inspect a market maker deployment and quote orders against it.

Usage:
    bondcurve [--config FILE] info [--json]
    bondcurve [--config FILE] quote buy <symbol> <amount> [--json]
    bondcurve [--config FILE] quote sell <symbol> <amount> [--json]

Every command deploys a fresh in-memory market from the config, so quotes
reflect the configured initial state.
"""

import json
from typing import Any, Dict, Optional

import click

from ..config import load_config, parse_amount
from ..constants import PCT_BASE
from ..deploy import Deployment, deploy_market_maker
from ..exceptions import BondCurveException, ConfigurationError


def format_address(address: str, short: bool = False) -> str:
    """Format address for display."""
    if short:
        return f"{address[:10]}...{address[-8:]}"
    return address


def format_pct(pct: int) -> str:
    return f"{pct * 100 / PCT_BASE:.4f}%"


def _deploy(ctx: click.Context) -> Deployment:
    try:
        return deploy_market_maker(load_config(ctx.obj["config_path"]))
    except BondCurveException as e:
        raise click.ClickException(f"Deployment failed: {e}")


def _parse_amount_arg(amount: str) -> int:
    try:
        return parse_amount(amount, "AMOUNT")
    except ConfigurationError as e:
        raise click.BadParameter(str(e), param_hint="AMOUNT")


@click.group()
@click.version_option(version="1.0.0", prog_name="bondcurve")
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Deployment config (default: $BONDCURVE_CONFIG or ./bondcurve.toml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]):
    """Bonding-curve market maker command line interface."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command("info")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable JSON")
@click.pass_context
def info_cmd(ctx: click.Context, as_json: bool):
    """Show deployment parameters and the collateral table."""
    deployment = _deploy(ctx)
    mm = deployment.market_maker

    collaterals = []
    for symbol, address in deployment.collaterals.items():
        entry = mm.get_collateral_token(address)
        collaterals.append({
            "symbol": symbol,
            "address": address,
            "reserveBalance": str(mm.reserve.balance(address)),
            **{k: str(v) if isinstance(v, int) and not isinstance(v, bool) else v
               for k, v in entry.to_dict().items()},
        })

    info: Dict[str, Any] = {
        "marketMaker": mm.address,
        "gated": deployment.market_maker.GATED,
        "isOpen": mm.is_open,
        "token": {
            "address": deployment.token.address,
            "symbol": deployment.token.symbol,
            "totalSupply": str(deployment.token.total_supply()),
        },
        "tokenManager": deployment.token_manager.address,
        "reserve": deployment.vault.address,
        "formula": deployment.formula.address,
        "beneficiary": mm.beneficiary,
        "buyFeePct": str(mm.buy_fee_pct),
        "sellFeePct": str(mm.sell_fee_pct),
        "collaterals": collaterals,
    }

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    click.echo()
    click.echo(click.style("═══════════════════════════════════════", fg="cyan"))
    click.echo(click.style("         Bonding Curve Market Maker     ", fg="cyan", bold=True))
    click.echo(click.style("═══════════════════════════════════════", fg="cyan"))
    click.echo()
    click.echo(f"Market maker: {mm.address} ({'gated' if mm.GATED else 'always open'})")
    click.echo(f"Open:         {mm.is_open}")
    click.echo(f"Token:        {deployment.token.symbol} {deployment.token.address}")
    click.echo(f"Supply:       {deployment.token.total_supply()}")
    click.echo(f"Reserve:      {deployment.vault.address}")
    click.echo(f"Beneficiary:  {mm.beneficiary}")
    click.echo(f"Buy fee:      {format_pct(mm.buy_fee_pct)}")
    click.echo(f"Sell fee:     {format_pct(mm.sell_fee_pct)}")
    click.echo()
    if not collaterals:
        click.echo(click.style("No collaterals configured", fg="yellow"))
        return
    click.echo(click.style("Collaterals:", fg="green"))
    for c in collaterals:
        click.echo(f"  {c['symbol']:<8} {format_address(c['address'], short=True)}")
        click.echo(f"    virtual supply:  {c['virtualSupply']}")
        click.echo(f"    virtual balance: {c['virtualBalance']}")
        click.echo(f"    reserve ratio:   {c['reserveRatio']} ppm")
        click.echo(f"    reserve balance: {c['reserveBalance']}")


@cli.group("quote")
def quote():
    """Quote an order without placing it."""
    pass


def _print_receipt(side: str, symbol: str, receipt, as_json: bool) -> None:
    data = {k: str(v) if isinstance(v, int) else v for k, v in receipt.to_dict().items()}
    data.pop("trader")
    data.pop("minReturnAmount")
    data["side"] = side
    data["symbol"] = symbol

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    if side == "buy":
        click.echo(f"Deposit:  {receipt.amount} {symbol}")
        click.echo(f"Fee:      {receipt.fee} {symbol}")
        click.echo(f"Net:      {receipt.net_amount} {symbol}")
        click.echo(click.style(f"Return:   {receipt.return_amount} bonded tokens", fg="green"))
    else:
        click.echo(f"Sell:     {receipt.amount} bonded tokens")
        click.echo(f"Gross:    {receipt.net_amount} {symbol}")
        click.echo(f"Fee:      {receipt.fee} {symbol}")
        click.echo(click.style(f"Return:   {receipt.return_amount} {symbol}", fg="green"))


@quote.command("buy")
@click.argument("symbol")
@click.argument("amount")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable JSON")
@click.pass_context
def quote_buy_cmd(ctx: click.Context, symbol: str, amount: str, as_json: bool):
    """Quote depositing AMOUNT of collateral SYMBOL.

    Examples:

        bondcurve quote buy ETH 1e18

        bondcurve --config market.toml quote buy DAI 500000000000000000000 --json
    """
    deposit = _parse_amount_arg(amount)
    deployment = _deploy(ctx)
    try:
        receipt = deployment.market_maker.quote_buy(deployment.collateral(symbol), deposit)
    except BondCurveException as e:
        raise click.ClickException(f"Quote failed: {e}")
    _print_receipt("buy", symbol, receipt, as_json)


@quote.command("sell")
@click.argument("symbol")
@click.argument("amount")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable JSON")
@click.pass_context
def quote_sell_cmd(ctx: click.Context, symbol: str, amount: str, as_json: bool):
    """Quote selling AMOUNT bonded tokens for collateral SYMBOL.

    The bonded token supply comes from [token] balances in the config.
    """
    sell_amount = _parse_amount_arg(amount)
    deployment = _deploy(ctx)
    try:
        receipt = deployment.market_maker.quote_sell(deployment.collateral(symbol), sell_amount)
    except BondCurveException as e:
        raise click.ClickException(f"Quote failed: {e}")
    _print_receipt("sell", symbol, receipt, as_json)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
