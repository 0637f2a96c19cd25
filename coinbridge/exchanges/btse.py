from __future__ import annotations

import json, time, logging
from typing import Optional, Dict, Any, List
from urllib.parse import urlencode

from .base import Exchange
from ..errors import ExchangeError, ExchangeAPIError, ResponseParseError, UnsupportedOperationError
from ..models import (
    Coin, Pair, Order, Maker, TradeDetail, PublicOperation, PublicOperationType,
    OrderStatus, TradeDirection, DataSource, ChainType,
)
from ..utils.http import http_request, http_get_request, get_external_ip
from ..utils.signing import compute_hmac256, compute_hmac384, map_to_url_query, nonce_s, nonce_ms, format_float

logger = logging.getLogger(__name__)

API_URL = "https://api.btse.com/spot"

DEFAULT_LISTED = True
DEFAULT_TXFEE = 0.0
DEFAULT_WITHDRAW = True
DEFAULT_DEPOSIT = True
DEFAULT_CONFIRMATION = 2
DEFAULT_MAKER_FEE = 0.001
DEFAULT_TAKER_FEE = 0.002
DEFAULT_LOT_SIZE = 0.00000001
DEFAULT_PRICE_FILTER = 0.00000001

ORDER_STATUS_TEXT = {
    "NEW": OrderStatus.NEW,
    "FILLED": OrderStatus.FILLED,
    "PARTIALLY_FILLED": OrderStatus.PARTIAL,
    "CANCELED": OrderStatus.CANCELLED,
    "CANCELLED": OrderStatus.CANCELLED,
    "REJECTED": OrderStatus.REJECTED,
    "EXPIRED": OrderStatus.EXPIRED,
    # open_orders orderState
    "STATUS_ACTIVE": OrderStatus.NEW,
}

ORDER_STATUS_CODE = {
    2: OrderStatus.NEW,         # ORDER_INSERTED
    4: OrderStatus.FILLED,      # ORDER_FULLY_TRANSACTED
    5: OrderStatus.PARTIAL,     # ORDER_PARTIALLY_TRANSACTED
    6: OrderStatus.CANCELLED,   # ORDER_CANCELLED
    7: OrderStatus.CANCELLED,   # ORDER_REFUNDED
    8: OrderStatus.REJECTED,    # INSUFFICIENT_BALANCE
    15: OrderStatus.REJECTED,   # ORDER_REJECTED
}


def map_order_status(value: Any) -> OrderStatus:
    if isinstance(value, str):
        if value.strip().isdigit():
            return ORDER_STATUS_CODE.get(int(value), OrderStatus.OTHER)
        return ORDER_STATUS_TEXT.get(value.upper(), OrderStatus.OTHER)
    if isinstance(value, int) and not isinstance(value, bool):
        return ORDER_STATUS_CODE.get(value, OrderStatus.OTHER)
    return OrderStatus.OTHER


class BtseExchange(Exchange):
    """
    BTSE spot v3.1 adapter.
    Auth: params carry `signature` = HMAC-SHA256(sorted query, secret);
    headers btse-api / btse-nonce (s) / btse-sign = HMAC-SHA384(secret, path + api key + json body).
    Responses are bare objects/lists, optionally wrapped as {"success", "message", "data"}.
    """
    name = "btse"
    api_url = API_URL

    def __init__(self, api_key: str = "", secret_key: str = "",
                 source: DataSource | str = DataSource.EXCHANGE_API, source_file: Optional[str] = None,
                 base_url: Optional[str] = None):
        super().__init__(api_key, secret_key, source=source, source_file=source_file, base_url=base_url)

    # --- helpers ---
    def _unwrap(self, resp: Any, op: str) -> Any:
        if isinstance(resp, dict):
            if "success" in resp:
                if not resp.get("success"):
                    raise ExchangeAPIError(f"{self.name} {op} Failed: {resp.get('message')}", payload=resp)
                return resp.get("data")
            if "errorCode" in resp or (isinstance(resp.get("status"), int) and resp["status"] >= 400):
                raise ExchangeAPIError(f"{self.name} {op} Failed: {resp.get('message')}",
                                       status=resp.get("status"), payload=resp)
        return resp

    @staticmethod
    def _first(data: Any) -> Dict[str, Any]:
        if isinstance(data, list):
            return data[0] if data else {}
        return data or {}

    async def _public(self, op: str, path: str, params: Dict[str, str] | None = None,
                      proxy: Optional[str] = None) -> Any:
        body = await http_get_request(self.api_url + path, params=params, proxy=proxy)
        return self._unwrap(self._decode(body, op), op)

    # --- public ---
    async def load_public_data(self, operation: PublicOperation) -> None:
        if operation.type == PublicOperationType.TRADE_HISTORY:
            return await self._do_trade_history(operation)
        err = UnsupportedOperationError(f"LoadPublicData :: Operation type invalid: {operation.type}")
        operation.error = err
        raise err

    async def _do_trade_history(self, operation: PublicOperation) -> None:
        symbol = self.get_symbol_by_pair(operation.pair)
        params = {"symbol": symbol}
        url = f"{self.api_url}/api/v3.1/trades"

        try:
            body = await http_get_request(url, params=params, proxy=operation.proxy)
            if operation.debug_mode:
                operation.request_uri = f"{url}?{urlencode(params)}"
                operation.call_response = body
            rows = self._unwrap(self._decode(body, "TradeHistory"), "TradeHistory") or []
            history = []
            for trade in rows:
                side = str(trade.get("side", "")).upper()
                history.append(TradeDetail(
                    id=str(trade.get("serialId", "")),
                    quantity=float(trade["size"]),
                    rate=float(trade["price"]),
                    timestamp=int(trade.get("timestamp", 0)),  # already ms
                    direction=TradeDirection.BUY if side == "BUY" else TradeDirection.SELL if side == "SELL" else None,
                ))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            err = ResponseParseError(f"{self.name} TradeHistory Result Unmarshal Err: {e}")
            logger.error("%s", err)
            operation.error = err
            raise err from e
        except ExchangeError as e:
            logger.error("%s TradeHistory %s: %s", self.name, symbol, e)
            operation.error = e
            raise

        history.sort(key=lambda t: t.timestamp)
        operation.trade_history = history

    async def get_coins_data(self) -> None:
        markets = await self._public("Get Coins", "/api/v3.1/market_summary")
        defaults = {
            "chain_type": ChainType.MAINNET,
            "tx_fee": DEFAULT_TXFEE,
            "withdraw": DEFAULT_WITHDRAW,
            "deposit": DEFAULT_DEPOSIT,
            "confirmation": DEFAULT_CONFIRMATION,
            "listed": DEFAULT_LISTED,
        }
        for m in markets or []:
            for code in (m.get("base"), m.get("quote")):
                if code:
                    self._reconcile_coin(code, defaults)

    async def get_pairs_data(self) -> None:
        markets = await self._public("Get Pairs", "/api/v3.1/market_summary")
        defaults = {"maker_fee": DEFAULT_MAKER_FEE, "taker_fee": DEFAULT_TAKER_FEE}
        for m in markets or []:
            base, quote = m.get("base", ""), m.get("quote", "")
            refresh = {
                "lot_size": float(m.get("minSizeIncrement") or DEFAULT_LOT_SIZE),
                "price_filter": float(m.get("minPriceIncrement") or DEFAULT_PRICE_FILTER),
                "listed": bool(m.get("active", DEFAULT_LISTED)),
            }
            self._reconcile_pair(quote, base, m.get("symbol") or f"{base}-{quote}", defaults, refresh)

    async def order_book(self, pair: Pair) -> Maker:
        symbol = self.get_symbol_by_pair(pair)
        maker = Maker(
            worker_ip=get_external_ip(),
            source=DataSource.EXCHANGE_API,
            before_timestamp=float(int(time.time() * 1000)),
        )
        book = await self._public("Get Orderbook", "/api/v3.1/orderbook", params={"symbol": symbol})
        maker.after_timestamp = float(int(time.time() * 1000))

        try:
            for bid in book.get("buyQuote", []):
                maker.bids.append(Order(rate=float(bid["price"]), quantity=float(bid["size"])))
            for ask in book.get("sellQuote", []):
                maker.asks.append(Order(rate=float(ask["price"]), quantity=float(ask["size"])))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ResponseParseError(f"{self.name} Get Orderbook Result Unmarshal Err: {e}", raw=str(book)) from e

        maker.bids.sort(key=lambda o: o.rate, reverse=True)
        maker.asks.sort(key=lambda o: o.rate)
        return maker

    # --- account ---
    async def update_all_balances(self) -> None:
        if not self.has_credentials():
            logger.warning("%s API Key or Secret Key are nil.", self.name)
            return

        body = await self.api_key_get("/api/v3.1/user/wallet", {})
        rows = self._unwrap(self._decode(body, "UpdateAllBalances"), "UpdateAllBalances")
        for row in rows or []:
            c = self.get_coin_by_symbol(row.get("currency", ""))
            if c is not None:
                self.balances[c.code] = float(row.get("available", 0))

    async def withdraw(self, coin: Coin, quantity: float, addr: str, tag: str = "") -> bool:
        if not self.has_credentials():
            logger.warning("%s API Key or Secret Key are nil.", self.name)
            return False

        params = {
            "currency": self.get_symbol_by_coin(coin),
            "address": addr,
            "amount": format_float(quantity),
            "timestamp": nonce_ms(),
        }
        if tag:
            params["tag"] = tag
        try:
            body = await self.api_key_request("POST", "/api/v3.1/user/wallet/withdraw", params)
            self._unwrap(self._decode(body, "Withdraw"), "Withdraw")
        except ExchangeError as e:
            logger.error("%s Withdraw Failed: %s", self.name, e)
            return False
        return True

    async def _place_order(self, op: str, pair: Pair, quantity: float, rate: float, side: str) -> Order:
        self.require_credentials()
        params = {
            "symbol": self.get_symbol_by_pair(pair),
            "side": side.upper(),
            "type": "LIMIT",
            "price": format_float(rate),
            "size": format_float(quantity),
        }
        body = await self.api_key_request("POST", "/api/v3.1/order", params)
        placed = self._first(self._unwrap(self._decode(body, op), op))
        order_id = placed.get("orderID") or placed.get("orderId")
        if not order_id:
            raise ResponseParseError(f"{self.name} {op} missing order id: {body}", raw=body)

        return Order(
            pair=pair,
            order_id=str(order_id),
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
        params = {"symbol": self.get_symbol_by_pair(order.pair), "orderID": order.order_id}
        body = await self.api_key_get("/api/v3.1/order", params)
        row = self._first(self._unwrap(self._decode(body, "OrderStatus"), "OrderStatus"))
        try:
            order.status = map_order_status(row.get("status", row.get("orderState")))
            order.deal_rate = float(row.get("averageFillPrice") or 0)
            order.deal_quantity = float(row.get("fillSize") or 0)
        except (TypeError, ValueError) as e:
            raise ResponseParseError(f"{self.name} OrderStatus Result Unmarshal Err: {e} {body}", raw=body) from e

    async def list_orders(self, pair: Pair) -> List[Order]:
        self.require_credentials()
        body = await self.api_key_get("/api/v3.1/user/open_orders", {"symbol": self.get_symbol_by_pair(pair)})
        rows = self._unwrap(self._decode(body, "ListOrders"), "ListOrders") or []

        orders = []
        try:
            for row in rows:
                orders.append(Order(
                    pair=pair,
                    order_id=str(row.get("orderID", "")),
                    rate=float(row.get("price") or 0),
                    quantity=float(row.get("size") or 0),
                    side="Buy" if str(row.get("side", "")).upper() == "BUY" else "Sell",
                    status=map_order_status(row.get("status", row.get("orderState"))),
                    deal_quantity=float(row.get("fillSize") or 0),
                    timestamp=int(row.get("timestamp") or 0),
                ))
        except (AttributeError, TypeError, ValueError) as e:
            raise ResponseParseError(f"{self.name} ListOrders Result Unmarshal Err: {e} {body}", raw=body) from e
        return orders

    async def cancel_order(self, order: Order) -> None:
        self.require_credentials()
        params = {"symbol": self.get_symbol_by_pair(order.pair), "orderID": order.order_id}
        body = await self.api_key_request("DELETE", "/api/v3.1/order", params)
        self._unwrap(self._decode(body, "CancelOrder"), "CancelOrder")
        order.status = OrderStatus.CANCELING
        order.cancel_status = body

    # --- signing helpers ---
    def _signed_params(self, params: Dict[str, str]) -> Dict[str, str]:
        signed = dict(params)
        signed["signature"] = compute_hmac256(map_to_url_query(signed), self.api_secret)
        return signed

    def _headers(self, path: str, payload: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json; charset=utf-8",
            "btse-api": self.api_key,
            "btse-nonce": nonce_s(),
            "btse-sign": compute_hmac384(self.api_secret, path + self.api_key + payload),
        }

    async def api_key_get(self, path: str, params: Dict[str, str]) -> str:
        signed = self._signed_params(params)
        return await http_request("GET", self.api_url + path, params=signed, headers=self._headers(path, ""))

    async def api_key_request(self, method: str, path: str, params: Dict[str, str]) -> str:
        signed = self._signed_params(params)
        payload = json.dumps(signed, separators=(",", ":"), sort_keys=True)
        return await http_request(method, self.api_url + path, data=payload,
                                  headers=self._headers(path, payload), retry=False)
