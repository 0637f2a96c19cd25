from __future__ import annotations

import time, random, logging
from typing import Optional, Dict, Any, List, Tuple
from urllib.parse import urlencode

from .base import Exchange
from ..errors import ExchangeError, ExchangeAPIError, ResponseParseError, UnsupportedOperationError
from ..models import (
    Coin, Pair, Order, Maker, TradeDetail, PublicOperation, PublicOperationType,
    OrderStatus, TradeDirection, DataSource, ChainType,
)
from ..utils.http import http_request, http_get_request, get_external_ip
from ..utils.signing import compute_md5, map_to_url_query, nonce_s, format_float

logger = logging.getLogger(__name__)

API_URL = "https://apiv2.bitz.com"

DEFAULT_LISTED = True
DEFAULT_TXFEE = 0.0
DEFAULT_WITHDRAW = True
DEFAULT_DEPOSIT = True
DEFAULT_CONFIRMATION = 2
DEFAULT_MAKER_FEE = 0.001
DEFAULT_TAKER_FEE = 0.001

# getEntrustSheetInfo / getUserNowEntrustSheet "status"
ORDER_STATUS = {
    0: OrderStatus.NEW,
    1: OrderStatus.PARTIAL,
    2: OrderStatus.FILLED,
    3: OrderStatus.CANCELLED,
}


class BitzExchange(Exchange):
    """
    Bit-Z v2 adapter.
    Auth: every private call is a form POST carrying apiKey, timeStamp (s) and a 6-digit nonce;
    sign = md5(sorted url-encoded params + secretKey).
    Responses: {"status": 200, "msg": "", "data": ...}
    """
    name = "bitz"
    api_url = API_URL

    def __init__(self, api_key: str = "", secret_key: str = "", trade_password: str = "",
                 source: DataSource | str = DataSource.EXCHANGE_API, source_file: Optional[str] = None,
                 base_url: Optional[str] = None):
        super().__init__(api_key, secret_key, source=source, source_file=source_file, base_url=base_url)
        self.trade_password = trade_password or ""

    # --- helpers ---
    def _check(self, resp: Any, op: str) -> Any:
        if not isinstance(resp, dict) or resp.get("status") != 200:
            msg = resp.get("msg") if isinstance(resp, dict) else resp
            status = resp.get("status") if isinstance(resp, dict) else None
            raise ExchangeAPIError(f"{self.name} {op} Failed: {status} {msg}", status=status, payload=resp)
        return resp.get("data")

    async def _public(self, op: str, path: str, params: Dict[str, str] | None = None,
                      proxy: Optional[str] = None) -> Tuple[Any, str]:
        body = await http_get_request(self.api_url + path, params=params, proxy=proxy)
        return self._check(self._decode(body, op), op), body

    async def _private(self, op: str, path: str, params: Dict[str, str], readonly: bool = False) -> Tuple[Any, str]:
        if readonly:
            body = await self.api_key_get(path, params)
        else:
            body = await self.api_key_request("POST", path, params)
        return self._check(self._decode(body, op), op), body

    # --- public ---
    async def load_public_data(self, operation: PublicOperation) -> None:
        if operation.type == PublicOperationType.TRADE_HISTORY:
            return await self._do_trade_history(operation)
        err = UnsupportedOperationError(f"LoadPublicData :: Operation type invalid: {operation.type}")
        operation.error = err
        raise err

    async def _do_trade_history(self, operation: PublicOperation) -> None:
        # trade timestamps are only second precision
        symbol = self.get_symbol_by_pair(operation.pair)
        params = {"symbol": symbol}
        url = f"{self.api_url}/Market/order"

        try:
            body = await http_get_request(url, params=params, proxy=operation.proxy)
            if operation.debug_mode:
                operation.request_uri = f"{url}?{urlencode(params)}"
                operation.call_response = body
            data = self._check(self._decode(body, "TradeHistory"), "TradeHistory")
        except ExchangeError as e:
            logger.error("%s TradeHistory %s: %s", self.name, symbol, e)
            operation.error = e
            raise

        history: List[TradeDetail] = []
        # newest first on the wire; keep oldest first
        for trade in reversed(data or []):
            try:
                price = float(trade["p"])
            except (KeyError, TypeError, ValueError) as e:
                logger.error("%s price parse Err: %s %s", self.name, e, trade.get("p"))
                operation.error = ResponseParseError(f"{self.name} price parse Err: {e}", raw=body)
                raise operation.error from e
            try:
                amount = float(trade["n"])
            except (KeyError, TypeError, ValueError) as e:
                logger.error("%s amount parse Err: %s %s", self.name, e, trade.get("n"))
                operation.error = ResponseParseError(f"{self.name} amount parse Err: {e}", raw=body)
                raise operation.error from e
            try:
                ts = int(trade.get("T", 0)) * 1000
            except (TypeError, ValueError) as e:
                logger.error("%s timestamp parse Err: %s %s", self.name, e, trade.get("T"))
                operation.error = ResponseParseError(f"{self.name} timestamp parse Err: {e}", raw=body)
                raise operation.error from e

            td = TradeDetail(
                id=str(trade.get("id", "")),
                quantity=amount,
                rate=price,
                timestamp=ts,
            )
            if trade.get("s") == "buy":
                td.direction = TradeDirection.BUY
            elif trade.get("s") == "sell":
                td.direction = TradeDirection.SELL
            history.append(td)

        operation.trade_history = history

    async def get_coins_data(self) -> None:
        data, _ = await self._public("Get Coins", "/Market/symbolList")
        defaults = {
            "chain_type": ChainType.MAINNET,
            "tx_fee": DEFAULT_TXFEE,
            "withdraw": DEFAULT_WITHDRAW,
            "deposit": DEFAULT_DEPOSIT,
            "confirmation": DEFAULT_CONFIRMATION,
            "listed": DEFAULT_LISTED,
        }
        for sym in (data or {}).values():
            for code in (sym.get("coinFrom"), sym.get("coinTo")):
                if code:
                    self._reconcile_coin(code, defaults)

    async def get_pairs_data(self) -> None:
        data, _ = await self._public("Get Pairs", "/Market/symbolList")
        defaults = {"maker_fee": DEFAULT_MAKER_FEE, "taker_fee": DEFAULT_TAKER_FEE}
        for sym in (data or {}).values():
            try:
                refresh = {
                    "lot_size": 10 ** -int(sym.get("numberFloat", 8)),
                    "price_filter": 10 ** -int(sym.get("priceFloat", 8)),
                    "listed": str(sym.get("status")) == "1",
                }
            except (TypeError, ValueError) as e:
                raise ResponseParseError(f"{self.name} Get Pairs bad precision for {sym.get('name')}: {e}") from e
            self._reconcile_pair(sym.get("coinTo", ""), sym.get("coinFrom", ""), sym.get("name", ""),
                                 defaults, refresh)

    async def order_book(self, pair: Pair) -> Maker:
        symbol = self.get_symbol_by_pair(pair)
        maker = Maker(
            worker_ip=get_external_ip(),
            source=DataSource.EXCHANGE_API,
            before_timestamp=float(int(time.time() * 1000)),
        )
        data, _ = await self._public("Get Orderbook", "/Market/depth", params={"symbol": symbol})
        maker.after_timestamp = float(int(time.time() * 1000))

        try:
            for bid in data.get("bids", []):
                maker.bids.append(Order(rate=float(bid[0]), quantity=float(bid[1])))
            for ask in data.get("asks", []):
                maker.asks.append(Order(rate=float(ask[0]), quantity=float(ask[1])))
        except (AttributeError, IndexError, TypeError, ValueError) as e:
            raise ResponseParseError(f"{self.name} Get Orderbook Result Unmarshal Err: {e}", raw=str(data)) from e

        # best price first on both sides
        maker.bids.sort(key=lambda o: o.rate, reverse=True)
        maker.asks.sort(key=lambda o: o.rate)
        return maker

    # --- account ---
    async def update_all_balances(self) -> None:
        if not self.has_credentials():
            logger.warning("%s API Key or Secret Key are nil.", self.name)
            return

        data, _ = await self._private("UpdateAllBalances", "/Assets/getUserAssets", {}, readonly=True)
        for row in (data or {}).get("info", []):
            c = self.get_coin_by_symbol(row.get("name", ""))
            if c is not None:
                self.balances[c.code] = float(row.get("over", 0))

    async def withdraw(self, coin: Coin, quantity: float, addr: str, tag: str = "") -> bool:
        if not self.has_credentials():
            logger.warning("%s API Key or Secret Key are nil.", self.name)
            return False

        params = {
            "coin": self.get_symbol_by_coin(coin),
            "number": format_float(quantity),
            "address": addr,
            "tradePwd": self.trade_password,
        }
        if tag:
            params["memo"] = tag
        try:
            await self._private("Withdraw", "/Trade/coinOut", params)
        except ExchangeError as e:
            logger.error("%s Withdraw Failed: %s", self.name, e)
            return False
        return True

    async def _place_order(self, op: str, pair: Pair, quantity: float, rate: float, side: str) -> Order:
        self.require_credentials()
        params = {
            "symbol": self.get_symbol_by_pair(pair),
            "type": "1" if side == "Buy" else "2",
            "price": format_float(rate),
            "number": format_float(quantity),
            "tradePwd": self.trade_password,
        }
        data, body = await self._private(op, "/Trade/addEntrustSheet", params)
        try:
            order_id = str(data["id"])
        except (KeyError, TypeError) as e:
            raise ResponseParseError(f"{self.name} {op} missing order id: {body}", raw=body) from e

        return Order(
            pair=pair,
            order_id=order_id,
            rate=rate,
            quantity=quantity,
            side=side,
            status=OrderStatus.NEW,
            json_response=body,
            timestamp=int(time.time() * 1000),
        )

    async def limit_buy(self, pair: Pair, quantity: float, rate: float) -> Order:
        return await self._place_order("LimitBuy", pair, quantity, rate, "Buy")

    async def limit_sell(self, pair: Pair, quantity: float, rate: float) -> Order:
        return await self._place_order("LimitSell", pair, quantity, rate, "Sell")

    async def order_status(self, order: Order) -> None:
        self.require_credentials()
        data, _ = await self._private("OrderStatus", "/Trade/getEntrustSheetInfo",
                                      {"entrustSheetId": order.order_id}, readonly=True)
        try:
            order.status = ORDER_STATUS.get(int(data.get("status", -1)), OrderStatus.OTHER)
            order.deal_quantity = float(data.get("numberDeal") or 0)
            order.deal_rate = float(data.get("averagePrice") or data.get("price") or 0)
        except (AttributeError, TypeError, ValueError) as e:
            raise ResponseParseError(f"{self.name} OrderStatus Result Unmarshal Err: {e} {data}") from e

    async def list_orders(self, pair: Pair) -> List[Order]:
        self.require_credentials()
        params = {
            "coinFrom": self.get_symbol_by_coin(pair.target),
            "coinTo": self.get_symbol_by_coin(pair.base),
        }
        data, _ = await self._private("ListOrders", "/Trade/getUserNowEntrustSheet", params, readonly=True)
        rows = data.get("data", []) if isinstance(data, dict) else (data or [])

        orders = []
        try:
            for row in rows:
                orders.append(Order(
                    pair=pair,
                    order_id=str(row.get("id", "")),
                    rate=float(row.get("price") or 0),
                    quantity=float(row.get("number") or 0),
                    side="Buy" if row.get("flag") == "buy" else "Sell",
                    status=ORDER_STATUS.get(int(row.get("status", -1)), OrderStatus.OTHER),
                    deal_quantity=float(row.get("numberDeal") or 0),
                ))
        except (AttributeError, TypeError, ValueError) as e:
            raise ResponseParseError(f"{self.name} ListOrders Result Unmarshal Err: {e} {rows}") from e
        return orders

    async def cancel_order(self, order: Order) -> None:
        self.require_credentials()
        _, body = await self._private("CancelOrder", "/Trade/cancelEntrustSheet",
                                      {"entrustSheetId": order.order_id})
        order.status = OrderStatus.CANCELING
        order.cancel_status = body

    # --- signing helpers ---
    def _signed_params(self, params: Dict[str, str]) -> Dict[str, str]:
        signed = dict(params)
        signed["apiKey"] = self.api_key
        signed["timeStamp"] = nonce_s()
        signed["nonce"] = f"{random.randint(0, 999999):06d}"
        signed["sign"] = compute_md5(map_to_url_query(signed) + self.api_secret)
        return signed

    async def api_key_get(self, path: str, params: Dict[str, str]) -> str:
        # Bit-Z has no signed GET; read-only calls are retried POSTs
        return await http_request("POST", self.api_url + path, data=self._signed_params(params))

    async def api_key_request(self, method: str, path: str, params: Dict[str, str]) -> str:
        return await http_request(method, self.api_url + path, data=self._signed_params(params), retry=False)
