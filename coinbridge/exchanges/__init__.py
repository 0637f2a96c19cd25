from __future__ import annotations
from typing import Any
from .base import Exchange
from .bitz import BitzExchange
from .btse import BtseExchange

SUPPORTED_EXCHANGES = ("bitz", "btse")

def create_exchange(exchange_cfg: dict[str, Any]) -> Exchange:
    """
    Factory: exchange_cfg example:
    {"name":"bitz","api_key":"...","secret_key":"...","trade_password":"..."}
    or
    {"name":"btse","api_key":"...","secret_key":"...","source":"json_file","source_file":"btse.json"}
    """
    name = exchange_cfg.get("name", "").lower()
    common = dict(
        api_key=exchange_cfg.get("api_key", ""),
        secret_key=exchange_cfg.get("secret_key", ""),
        source=exchange_cfg.get("source", "exchange_api"),
        source_file=exchange_cfg.get("source_file"),
        base_url=exchange_cfg.get("base_url"),
    )
    if name == "bitz":
        return BitzExchange(trade_password=exchange_cfg.get("trade_password", ""), **common)
    if name == "btse":
        return BtseExchange(**common)
    raise ValueError(f"Unknown exchange name: {name}")

__all__ = ["Exchange", "BitzExchange", "BtseExchange", "create_exchange", "SUPPORTED_EXCHANGES"]
