import json

import pytest

from coinbridge import registry
from coinbridge.config import exchange_config, exchange_configs, load_config
from coinbridge.errors import CredentialsError, ResponseParseError
from coinbridge.exchanges import create_exchange, BitzExchange, BtseExchange
from coinbridge.models import ChainType, DataSource


CONSTRAINTS = {
    "coins": [
        {"code": "BTC", "ex_symbol": "BTC", "tx_fee": 0.0005, "confirmation": 3},
        {"code": "USDT", "ex_symbol": "USDT", "chain_type": "ERC20", "withdraw": False},
    ],
    "pairs": [
        {"base": "USDT", "target": "BTC", "ex_symbol": "BTC-USDT", "lot_size": 0.001,
         "price_filter": 0.1, "maker_fee": 0.0005, "taker_fee": 0.001},
    ],
}


@pytest.fixture
def constraints_file(tmp_path):
    path = tmp_path / "btse.json"
    path.write_text(json.dumps(CONSTRAINTS))
    return str(path)


class TestJsonFileSource:

    def test_load_constraints_file(self, constraints_file):
        ex = BtseExchange(source="json_file", source_file=constraints_file)
        ex.load_constraints_file(constraints_file)

        btc, usdt = registry.get_coin("BTC"), registry.get_coin("USDT")
        pair = registry.get_pair(usdt, btc)

        assert ex.get_txfee(btc) == 0.0005
        assert ex.get_confirmation(btc) == 3
        assert ex.can_withdraw(btc) is True
        assert ex.can_withdraw(usdt) is False
        assert ex.get_coin_constraint(usdt).chain_type == ChainType.ERC20
        assert ex.get_symbol_by_pair(pair) == "BTC-USDT"
        assert ex.get_lot_size(pair) == 0.001
        assert ex.get_price_filter(pair) == 0.1

    @pytest.mark.asyncio
    async def test_init_data_reads_file_without_network(self, constraints_file, fake_http):
        ex = BtseExchange(source=DataSource.JSON_FILE, source_file=constraints_file)

        await ex.init_data()

        assert len(ex.get_pairs()) == 1
        assert fake_http.calls == []

    @pytest.mark.asyncio
    async def test_json_file_refresh_ignores_unknown_symbols(self, constraints_file, fake_http):
        fake_http.add("GET", "/api/v3.1/market_summary", [
            {"symbol": "BTC-USDT", "base": "BTC", "quote": "USDT", "active": False,
             "minSizeIncrement": 0.0001, "minPriceIncrement": 0.5},
            {"symbol": "ETH-USDT", "base": "ETH", "quote": "USDT", "active": True},
        ])
        ex = BtseExchange(source="json_file", source_file=constraints_file)
        await ex.init_data()

        await ex.get_coins_data()
        await ex.get_pairs_data()

        assert registry.get_coin("ETH") is None
        pair = ex.get_pair_by_symbol("BTC-USDT")
        assert ex.get_pair_constraint(pair).listed is False
        assert ex.get_lot_size(pair) == 0.0001
        # fields not reported by the listing keep their file values
        assert ex.get_fee(pair, maker=True) == 0.0005

    @pytest.mark.asyncio
    async def test_missing_source_file(self):
        ex = BtseExchange(source="json_file")
        with pytest.raises(ValueError, match="no source_file"):
            await ex.init_data()

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ResponseParseError):
            BitzExchange().load_constraints_file(str(path))


class TestCredentials:

    def test_require_credentials(self):
        with pytest.raises(CredentialsError, match="btse API Key or Secret Key are nil."):
            BtseExchange(api_key="only-key").require_credentials()
        BtseExchange(api_key="k", secret_key="s").require_credentials()


class TestFactory:

    def test_create_bitz(self):
        ex = create_exchange({"name": "Bitz", "api_key": "k", "secret_key": "s", "trade_password": "p"})
        assert isinstance(ex, BitzExchange)
        assert ex.trade_password == "p"
        assert ex.has_credentials()

    def test_create_btse_with_base_url(self):
        ex = create_exchange({"name": "btse", "base_url": "https://testapi.btse.io/spot/"})
        assert isinstance(ex, BtseExchange)
        assert ex.api_url == "https://testapi.btse.io/spot"
        assert ex.source == DataSource.EXCHANGE_API

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown exchange name"):
            create_exchange({"name": "mtgox"})


class TestConfig:

    def test_load_from_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"exchanges": [{"name": "btse", "api_key": "k"}]}))
        monkeypatch.setenv("CONFIG_PATH", str(path))

        assert load_config()["exchanges"][0]["name"] == "btse"

    def test_env_credentials_fill_gaps(self, monkeypatch):
        monkeypatch.setenv("BTSE_SECRET_KEY", "from-env")
        monkeypatch.setenv("BTSE_API_KEY", "ignored")
        cfgs = exchange_configs({"exchanges": [{"name": "btse", "api_key": "from-file"}]})

        assert cfgs[0]["api_key"] == "from-file"
        assert cfgs[0]["secret_key"] == "from-env"

    def test_exchange_missing_from_file(self, monkeypatch):
        monkeypatch.setenv("BITZ_API_KEY", "k")
        cfg = exchange_config({}, "BITZ")
        assert cfg == {"name": "bitz", "api_key": "k"}
