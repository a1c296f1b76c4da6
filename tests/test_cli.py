"""
Command line interface tests (click CliRunner).
"""

import json

import pytest
from click.testing import CliRunner

from bondcurve.cli import cli
from bondcurve.config import load_config
from bondcurve.deploy import deploy_market_maker

CONFIG = """
[market_maker]
gated = true
open = true
buy_fee_pct = "1e17"
sell_fee_pct = "1e16"

[token]
symbol = "BOND"

[token.balances]
alice = "1e21"

[[collaterals]]
symbol = "ETH"
native = true
virtual_supply = "1e23"
virtual_balance = "1e22"
reserve_ratio = 100000
reserve_balance = "1e21"

[[collaterals]]
symbol = "DAI"
virtual_supply = "1e23"
virtual_balance = "1e22"
reserve_ratio = 200000
reserve_balance = "5e21"

[logging]
level = "WARNING"
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    for name in ("BONDCURVE_CONFIG", "BONDCURVE_GATED", "BONDCURVE_BUY_FEE_PCT", "BONDCURVE_SELL_FEE_PCT"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "market.toml"
    path.write_text(CONFIG)
    return str(path)


def invoke(runner, config_path, *args):
    return runner.invoke(cli, ["--config", config_path, *args], obj={})


class TestInfo:

    def test_json(self, runner, config_path):
        result = invoke(runner, config_path, "info", "--json")
        assert result.exit_code == 0, result.output

        info = json.loads(result.output)
        assert info["gated"] is True
        assert info["isOpen"] is True
        assert info["buyFeePct"] == str(10 ** 17)
        assert info["token"]["totalSupply"] == str(10 ** 21)
        symbols = [c["symbol"] for c in info["collaterals"]]
        assert symbols == ["ETH", "DAI"]
        eth = info["collaterals"][0]
        assert eth["reserveBalance"] == str(10 ** 21)
        assert eth["reserveRatio"] == "100000"
        assert eth["whitelisted"] is True

    def test_human(self, runner, config_path):
        result = invoke(runner, config_path, "info")
        assert result.exit_code == 0, result.output
        assert "Bonding Curve Market Maker" in result.output
        assert "10.0000%" in result.output
        assert "DAI" in result.output


class TestQuote:

    def test_buy_matches_market_maker(self, runner, config_path):
        result = invoke(runner, config_path, "quote", "buy", "ETH", "1e18", "--json")
        assert result.exit_code == 0, result.output

        deployment = deploy_market_maker(load_config(config_path))
        expected = deployment.market_maker.quote_buy(deployment.collateral("ETH"), 10 ** 18)

        data = json.loads(result.output)
        assert data["side"] == "buy"
        assert data["fee"] == str(10 ** 17)
        assert data["netAmount"] == str(9 * 10 ** 17)
        assert data["returnAmount"] == str(expected.return_amount)

    def test_sell(self, runner, config_path):
        result = invoke(runner, config_path, "quote", "sell", "dai", "1e18", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["side"] == "sell"
        assert int(data["returnAmount"]) + int(data["fee"]) == int(data["netAmount"])

    def test_human_output(self, runner, config_path):
        result = invoke(runner, config_path, "quote", "buy", "DAI", "1000")
        assert result.exit_code == 0, result.output
        assert "Return:" in result.output

    def test_unknown_symbol(self, runner, config_path):
        result = invoke(runner, config_path, "quote", "buy", "BTC", "1")
        assert result.exit_code == 1
        assert "Unknown collateral" in result.output

    def test_sell_more_than_supply(self, runner, config_path):
        result = invoke(runner, config_path, "quote", "sell", "ETH", "1e30")
        assert result.exit_code == 1
        assert "Quote failed" in result.output

    def test_bad_amount(self, runner, config_path):
        result = invoke(runner, config_path, "quote", "buy", "ETH", "lots")
        assert result.exit_code == 2

    def test_invalid_config(self, runner, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[market_maker]\nopen = true\n")
        result = invoke(runner, str(path), "info")
        assert result.exit_code == 1
        assert "Deployment failed" in result.output


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output
