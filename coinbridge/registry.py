"""
Process-wide coin/pair registry shared by all connectors.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from .models import Coin, Pair

_lock = threading.Lock()
_coins: Dict[str, Coin] = {}
_coins_by_id: Dict[int, Coin] = {}
_pairs: Dict[Tuple[int, int], Pair] = {}
_next_coin_id = 1
_next_pair_id = 1


def get_coin(code: str) -> Optional[Coin]:
    if not code:
        return None
    return _coins.get(code.upper())


def get_coin_by_id(coin_id: int) -> Optional[Coin]:
    return _coins_by_id.get(coin_id)


def add_coin(coin: Coin) -> Coin:
    """Register a coin, assigning an id when it has none. Returns the registered instance."""
    global _next_coin_id
    code = coin.code.upper()
    with _lock:
        existing = _coins.get(code)
        if existing is not None:
            return existing
        coin.code = code
        if not coin.id:
            coin.id = _next_coin_id
        _next_coin_id = max(_next_coin_id, coin.id) + 1
        _coins[code] = coin
        _coins_by_id[coin.id] = coin
    return coin


def get_pair(base: Coin, target: Coin) -> Pair:
    """Pair for base (quote currency) and target, created on first use."""
    global _next_pair_id
    key = (base.id, target.id)
    with _lock:
        p = _pairs.get(key)
        if p is None:
            p = Pair(id=_next_pair_id, base=base, target=target)
            _next_pair_id += 1
            _pairs[key] = p
    return p


def get_coins() -> List[Coin]:
    return list(_coins.values())


def get_pairs() -> List[Pair]:
    return list(_pairs.values())


def clear() -> None:
    global _next_coin_id, _next_pair_id
    with _lock:
        _coins.clear()
        _coins_by_id.clear()
        _pairs.clear()
        _next_coin_id = 1
        _next_pair_id = 1
