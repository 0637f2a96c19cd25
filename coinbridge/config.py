"""
Configuration loading.

The config file is JSON, located by CONFIG_PATH (default /config/config.json):

    {"exchanges": [{"name": "btse", "api_key": "...", "secret_key": "..."},
                   {"name": "bitz", "api_key": "...", "secret_key": "...", "trade_password": "..."}]}

Credentials left out of the file are read from <NAME>_API_KEY / <NAME>_SECRET_KEY.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

DEFAULT_CONFIG_PATH = "/config/config.json"


def configure_logging(level: Optional[int] = None) -> None:
    if level is None:
        level = logging.DEBUG if os.getenv("DEBUG_MODE", "False") == "True" else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    path = path or os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _with_env_credentials(cfg: Dict[str, Any]) -> Dict[str, Any]:
    cfg = dict(cfg)
    prefix = cfg.get("name", "").upper()
    for key, env in (("api_key", "API_KEY"), ("secret_key", "SECRET_KEY"), ("trade_password", "TRADE_PASSWORD")):
        if not cfg.get(key):
            value = os.getenv(f"{prefix}_{env}")
            if value:
                cfg[key] = value
    return cfg


def exchange_configs(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [_with_env_credentials(c) for c in config.get("exchanges", [])]


def exchange_config(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Config entry for one exchange; an exchange missing from the file runs on env credentials only."""
    for cfg in exchange_configs(config):
        if cfg.get("name", "").lower() == name.lower():
            return cfg
    return _with_env_credentials({"name": name.lower()})
