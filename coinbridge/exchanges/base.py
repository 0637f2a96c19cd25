from __future__ import annotations
import json, logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List

from .. import registry
from ..errors import CredentialsError, ResponseParseError
from ..models import (
    Coin, Pair, CoinConstraint, PairConstraint, Order, Maker,
    PublicOperation, DataSource, ChainType,
)
from ..utils.http import close_http_session

logger = logging.getLogger(__name__)

class Exchange(ABC):
    """
    Abstract adapter interface for any spot exchange.
    Holds the per-exchange coin/pair constraint maps and the balance cache;
    subclasses supply the signed REST calls and the response mapping.
    """
    name: str
    api_url: str

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        source: DataSource | str = DataSource.EXCHANGE_API,
        source_file: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key or ""
        self.api_secret = api_secret or ""
        self.source = DataSource(source)
        self.source_file = source_file
        if base_url:
            self.api_url = base_url.rstrip("/")
        self._coin_constraints: Dict[int, CoinConstraint] = {}
        self._pair_constraints: Dict[int, PairConstraint] = {}
        self.balances: Dict[str, float] = {}

    def get_name(self) -> str:
        return self.name

    # --- credentials ---
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def require_credentials(self) -> None:
        if not self.has_credentials():
            raise CredentialsError(f"{self.name} API Key or Secret Key are nil.")

    # --- constraints ---
    def get_coin_constraint(self, coin: Coin) -> Optional[CoinConstraint]:
        return self._coin_constraints.get(coin.id)

    def set_coin_constraint(self, constraint: CoinConstraint) -> None:
        self._coin_constraints[constraint.coin_id] = constraint

    def get_pair_constraint(self, pair: Pair) -> Optional[PairConstraint]:
        if pair is None:
            return None
        return self._pair_constraints.get(pair.id)

    def set_pair_constraint(self, constraint: PairConstraint) -> None:
        self._pair_constraints[constraint.pair_id] = constraint

    def get_coins(self) -> List[Coin]:
        return [c.coin for c in self._coin_constraints.values()]

    def get_pairs(self) -> List[Pair]:
        return [p.pair for p in self._pair_constraints.values()]

    # --- symbol lookups ---
    def get_symbol_by_coin(self, coin: Coin) -> str:
        cc = self.get_coin_constraint(coin)
        return cc.ex_symbol if cc else ""

    def get_symbol_by_pair(self, pair: Pair) -> str:
        pc = self.get_pair_constraint(pair)
        return pc.ex_symbol if pc else ""

    def get_coin_by_symbol(self, symbol: str) -> Optional[Coin]:
        for cc in self._coin_constraints.values():
            if cc.ex_symbol.lower() == symbol.lower():
                return cc.coin
        return None

    def get_pair_by_symbol(self, symbol: str) -> Optional[Pair]:
        for pc in self._pair_constraints.values():
            if pc.ex_symbol.lower() == symbol.lower():
                return pc.pair
        return None

    # --- constraint accessors ---
    def get_txfee(self, coin: Coin) -> float:
        cc = self.get_coin_constraint(coin)
        return cc.tx_fee if cc else 0.0

    def can_withdraw(self, coin: Coin) -> bool:
        cc = self.get_coin_constraint(coin)
        return bool(cc and cc.withdraw)

    def can_deposit(self, coin: Coin) -> bool:
        cc = self.get_coin_constraint(coin)
        return bool(cc and cc.deposit)

    def get_confirmation(self, coin: Coin) -> int:
        cc = self.get_coin_constraint(coin)
        return cc.confirmation if cc else 0

    def get_fee(self, pair: Pair, maker: bool = False) -> float:
        pc = self.get_pair_constraint(pair)
        if pc is None:
            return 0.0
        return pc.maker_fee if maker else pc.taker_fee

    def get_lot_size(self, pair: Pair) -> float:
        pc = self.get_pair_constraint(pair)
        return pc.lot_size if pc else 0.0

    def get_price_filter(self, pair: Pair) -> float:
        pc = self.get_pair_constraint(pair)
        return pc.price_filter if pc else 0.0

    def get_balance(self, coin: Coin) -> float:
        return self.balances.get(coin.code, 0.0)

    # --- loading ---
    def load_constraints_file(self, path: str) -> None:
        """
        JSON_FILE source: read previously exported constraints.

        {"coins": [{"code": "BTC", "ex_symbol": "btc", "tx_fee": 0.0005, ...}],
         "pairs": [{"base": "BTC", "target": "ETH", "ex_symbol": "eth_btc", "lot_size": 0.001, ...}]}
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                doc = json.load(f)
            except json.JSONDecodeError as e:
                raise ResponseParseError(f"{self.name} constraints file {path} is not valid JSON: {e}") from e

        for item in doc.get("coins", []):
            c = registry.get_coin(item["code"]) or registry.add_coin(Coin(code=item["code"]))
            self.set_coin_constraint(CoinConstraint(
                coin_id=c.id,
                coin=c,
                ex_symbol=item.get("ex_symbol", item["code"]),
                chain_type=ChainType(item.get("chain_type", ChainType.MAINNET.value)),
                tx_fee=float(item.get("tx_fee", 0.0)),
                withdraw=bool(item.get("withdraw", True)),
                deposit=bool(item.get("deposit", True)),
                confirmation=int(item.get("confirmation", 0)),
                listed=bool(item.get("listed", True)),
            ))

        for item in doc.get("pairs", []):
            base = registry.get_coin(item["base"]) or registry.add_coin(Coin(code=item["base"]))
            target = registry.get_coin(item["target"]) or registry.add_coin(Coin(code=item["target"]))
            p = registry.get_pair(base, target)
            self.set_pair_constraint(PairConstraint(
                pair_id=p.id,
                pair=p,
                ex_symbol=item["ex_symbol"],
                maker_fee=float(item.get("maker_fee", 0.0)),
                taker_fee=float(item.get("taker_fee", 0.0)),
                lot_size=float(item.get("lot_size", 0.0)),
                price_filter=float(item.get("price_filter", 0.0)),
                listed=bool(item.get("listed", True)),
            ))
        logger.info("%s loaded %d coins / %d pairs from %s", self.name,
                    len(self._coin_constraints), len(self._pair_constraints), path)

    async def init_data(self) -> None:
        if self.source == DataSource.JSON_FILE:
            if not self.source_file:
                raise ValueError(f"{self.name} source is json_file but no source_file is configured")
            self.load_constraints_file(self.source_file)
            return
        await self.get_coins_data()
        await self.get_pairs_data()

    # --- reconciliation against the shared registry ---
    def _reconcile_coin(self, symbol: str, defaults: Dict[str, Any]) -> Optional[CoinConstraint]:
        """
        Find (EXCHANGE_API: create) the coin behind an exchange symbol and upsert its constraint.
        New constraints take `defaults`; existing ones only get their ex_symbol refreshed.
        """
        if self.source == DataSource.EXCHANGE_API:
            c = registry.get_coin(symbol)
            if c is None:
                c = registry.add_coin(Coin(code=symbol))
        else:
            c = self.get_coin_by_symbol(symbol)
        if c is None:
            return None

        cc = self.get_coin_constraint(c)
        if cc is None:
            cc = CoinConstraint(coin_id=c.id, coin=c, ex_symbol=symbol, **defaults)
        else:
            cc.ex_symbol = symbol
        self.set_coin_constraint(cc)
        return cc

    def _reconcile_pair(
        self,
        base_code: str,
        target_code: str,
        ex_symbol: str,
        defaults: Dict[str, Any],
        refresh: Optional[Dict[str, Any]] = None,
    ) -> Optional[PairConstraint]:
        """Same as _reconcile_coin for pairs; `refresh` fields are overwritten on every call."""
        refresh = refresh or {}
        p: Optional[Pair] = None
        if self.source == DataSource.EXCHANGE_API:
            base = registry.get_coin(base_code)
            target = registry.get_coin(target_code)
            if base is not None and target is not None:
                p = registry.get_pair(base, target)
        else:
            p = self.get_pair_by_symbol(ex_symbol)
        if p is None:
            return None

        pc = self.get_pair_constraint(p)
        if pc is None:
            pc = PairConstraint(pair_id=p.id, pair=p, ex_symbol=ex_symbol, **{**defaults, **refresh})
        else:
            pc.ex_symbol = ex_symbol
            for k, v in refresh.items():
                setattr(pc, k, v)
        self.set_pair_constraint(pc)
        return pc

    def _decode(self, body: str, op: str) -> Any:
        try:
            return json.loads(body)
        except (TypeError, ValueError) as e:
            raise ResponseParseError(f"{self.name} {op} Json Unmarshal Err: {e} {body}", raw=body) from e

    # --- public ---
    @abstractmethod
    async def load_public_data(self, operation: PublicOperation) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_coins_data(self) -> None:
        """Fetch the coin listing and reconcile it into coin constraints."""
        raise NotImplementedError

    @abstractmethod
    async def get_pairs_data(self) -> None:
        """Fetch the market listing and reconcile it into pair constraints."""
        raise NotImplementedError

    @abstractmethod
    async def order_book(self, pair: Pair) -> Maker:
        raise NotImplementedError

    # --- account ---
    @abstractmethod
    async def update_all_balances(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def withdraw(self, coin: Coin, quantity: float, addr: str, tag: str = "") -> bool:
        raise NotImplementedError

    @abstractmethod
    async def limit_buy(self, pair: Pair, quantity: float, rate: float) -> Order:
        raise NotImplementedError

    @abstractmethod
    async def limit_sell(self, pair: Pair, quantity: float, rate: float) -> Order:
        raise NotImplementedError

    @abstractmethod
    async def order_status(self, order: Order) -> None:
        """Refresh status and fill fields of `order` in place."""
        raise NotImplementedError

    @abstractmethod
    async def list_orders(self, pair: Pair) -> List[Order]:
        raise NotImplementedError

    @abstractmethod
    async def cancel_order(self, order: Order) -> None:
        raise NotImplementedError

    # --- signed http ---
    @abstractmethod
    async def api_key_get(self, path: str, params: Dict[str, str]) -> str:
        raise NotImplementedError

    @abstractmethod
    async def api_key_request(self, method: str, path: str, params: Dict[str, str]) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        """Override to close network resources if needed."""
        await close_http_session()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"
