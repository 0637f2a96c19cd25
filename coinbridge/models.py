"""
Shared data model 🧩
Exchange-agnostic coin, pair, order and market-data types every connector maps into.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class DataSource(str, Enum):
    EXCHANGE_API = "exchange_api"
    JSON_FILE = "json_file"


class ChainType(str, Enum):
    MAINNET = "MAINNET"
    BEP2 = "BEP2"
    ERC20 = "ERC20"
    TRC20 = "TRC20"
    OTHER = "OTHER"


class OrderStatus(str, Enum):
    NEW = "New"
    FILLED = "Filled"
    PARTIAL = "Partial"
    CANCELING = "Canceling"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"
    EXPIRED = "Expired"
    OTHER = "Other"


class TradeDirection(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


class PublicOperationType(str, Enum):
    TRADE_HISTORY = "TradeHistory"
    ORDERBOOK = "Orderbook"


@dataclass
class Coin:
    id: int = 0
    code: str = ""
    name: str = ""
    website: str = ""
    explorer: str = ""


@dataclass
class Pair:
    """
    A trading pair. `base` is the quote currency (what prices are expressed in)
    and `target` is the coin being traded, so ETH priced in BTC is BTC|ETH.
    """
    id: int
    base: Coin
    target: Coin

    @property
    def symbol(self) -> str:
        return f"{self.base.code}|{self.target.code}"

    def __str__(self) -> str:
        return self.symbol


@dataclass
class CoinConstraint:
    coin_id: int
    coin: Coin
    ex_symbol: str
    chain_type: ChainType = ChainType.MAINNET
    tx_fee: float = 0.0
    withdraw: bool = True
    deposit: bool = True
    confirmation: int = 0
    listed: bool = True


@dataclass
class PairConstraint:
    pair_id: int
    pair: Pair
    ex_symbol: str
    maker_fee: float = 0.0
    taker_fee: float = 0.0
    lot_size: float = 0.0
    price_filter: float = 0.0
    listed: bool = True


@dataclass
class Order:
    """Placed order; order-book levels reuse it with only rate/quantity set."""
    pair: Optional[Pair] = None
    order_id: str = ""
    rate: float = 0.0
    quantity: float = 0.0
    side: str = ""
    status: OrderStatus = OrderStatus.NEW
    deal_rate: float = 0.0
    deal_quantity: float = 0.0
    json_response: str = ""
    cancel_status: str = ""
    timestamp: int = 0


@dataclass
class Maker:
    worker_ip: str = ""
    source: DataSource = DataSource.EXCHANGE_API
    before_timestamp: float = 0.0   # ms
    after_timestamp: float = 0.0    # ms
    bids: List[Order] = field(default_factory=list)
    asks: List[Order] = field(default_factory=list)


@dataclass
class TradeDetail:
    id: str
    quantity: float
    rate: float
    timestamp: int                  # ms
    direction: Optional[TradeDirection] = None


@dataclass
class PublicOperation:
    type: PublicOperationType
    pair: Optional[Pair] = None
    proxy: Optional[str] = None
    debug_mode: bool = False

    # outputs
    trade_history: List[TradeDetail] = field(default_factory=list)
    request_uri: str = ""
    call_response: str = ""
    error: Optional[Any] = None
