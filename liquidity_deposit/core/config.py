import json
import os
from pathlib import Path
from typing import Any

from liquidity_deposit.core.constants.base import DEFAULT_DEBOUNCE_SECONDS
from liquidity_deposit.core.constants.chains import (
    CHAIN_ID_BASE_SEPOLIA,
    PERMIT2_ADDRESS,
)
from liquidity_deposit.core.models import TokenRef

_CONFIG_ENV_KEYS = ("LIQUIDITY_DEPOSIT_CONFIG_PATH", "LIQUIDITY_DEPOSIT_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"
_PRIVATE_KEY_KEY = "wallet_private_key"
_PRIVATE_KEY_ENV = "LIQUIDITY_DEPOSIT_PRIVATE_KEY"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except json.JSONDecodeError:
        return {}


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def get_api_base_url() -> str:
    system = CONFIG.get("system", {})
    api_url = system.get("api_base_url")
    if api_url:
        return str(api_url).strip().rstrip("/")
    return "http://localhost:3000/api"


def get_api_key() -> str | None:
    system = CONFIG.get("system", {})
    api_key = system.get("api_key")
    if api_key:
        return str(api_key).strip()
    return os.environ.get("LIQUIDITY_DEPOSIT_API_KEY")


def get_debounce_seconds() -> float:
    value = CONFIG.get("system", {}).get("debounce_seconds")
    if value is None:
        return DEFAULT_DEBOUNCE_SECONDS
    return max(0.0, float(value))


def get_chain_id() -> int:
    value = CONFIG.get("network", {}).get("chain_id")
    return int(value) if value is not None else CHAIN_ID_BASE_SEPOLIA


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("network", {}).get("rpc_urls", {})


def get_permit2_address() -> str:
    value = CONFIG.get("liquidity", {}).get("permit2_address")
    return str(value).strip() if value else PERMIT2_ADDRESS


def get_tick_spacing(pool_id: str | None = None) -> int | None:
    liquidity = CONFIG.get("liquidity", {})
    if pool_id:
        pool = liquidity.get("pools", {}).get(pool_id, {})
        if pool.get("tick_spacing") is not None:
            return int(pool["tick_spacing"])
    value = liquidity.get("tick_spacing")
    return int(value) if value is not None else None


def load_token_refs() -> dict[str, TokenRef]:
    tokens = CONFIG.get("liquidity", {}).get("tokens", {})
    refs: dict[str, TokenRef] = {}
    for symbol, entry in tokens.items():
        refs[symbol] = TokenRef(
            symbol=symbol,
            address=entry["address"],
            decimals=int(entry["decimals"]),
            display_decimals=int(entry.get("display_decimals", 4)),
        )
    return refs


def get_token_ref(symbol: str) -> TokenRef:
    refs = load_token_refs()
    if symbol not in refs:
        raise ValueError(f"Unknown token symbol: {symbol}")
    return refs[symbol]


def load_wallet_private_key(path: str | Path | None = None) -> str | None:
    config = CONFIG if path is None else load_config_json(path)
    value = config.get(_PRIVATE_KEY_KEY)
    if isinstance(value, str) and value.strip():
        return value.strip()
    env_value = os.environ.get(_PRIVATE_KEY_ENV, "").strip()
    return env_value or None
