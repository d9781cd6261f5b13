# aptos_warmup/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import dotenv_values

APTOS_COIN = "0x1::aptos_coin::AptosCoin"
APTOS_DECIMALS = 8

RESOURCE_DIR = Path("resource")
CONFIG_DIR = RESOURCE_DIR / "config" / "aptos"
LOG_DIR = RESOURCE_DIR / "log" / "aptos"
DEFAULT_PROPERTIES = CONFIG_DIR / ".properties"
DEFAULT_WARMUP_WALLETS = CONFIG_DIR / "wallets.txt"

Range = Tuple[int, int]


class ConfigError(Exception):
    pass


def _env(values: Mapping[str, Optional[str]], name: str, default: str = "") -> str:
    v = values.get(name)
    return (v if v is not None else default).strip()


def _env_required(values: Mapping[str, Optional[str]], name: str) -> str:
    v = _env(values, name)
    if not v:
        raise ConfigError(f"{name} required (.properties)")
    return v


def _env_float(values: Mapping[str, Optional[str]], name: str, default: Optional[float] = None) -> float:
    v = _env(values, name)
    if not v:
        if default is None:
            raise ConfigError(f"{name} required (.properties)")
        return float(default)
    try:
        return float(v)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {v!r}") from None


def _env_int(values: Mapping[str, Optional[str]], name: str, default: Optional[int] = None) -> int:
    v = _env(values, name)
    if not v:
        if default is None:
            raise ConfigError(f"{name} required (.properties)")
        return int(default)
    try:
        return int(v)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {v!r}") from None


def _env_bool(values: Mapping[str, Optional[str]], name: str, default: bool) -> bool:
    v = _env(values, name)
    if not v:
        return default
    return v.lower() in ("1", "true", "yes", "y", "on")


def _env_range(values: Mapping[str, Optional[str]], min_name: str, max_name: str) -> Range:
    lo = _env_int(values, min_name)
    hi = _env_int(values, max_name)
    if lo > hi:
        raise ConfigError(f"{min_name}={lo} is greater than {max_name}={hi}")
    if lo < 0:
        raise ConfigError(f"{min_name} must not be negative")
    return lo, hi


def _apt_to_octas(apt: float) -> int:
    return int(round(apt * 10 ** APTOS_DECIMALS))


@dataclass(frozen=True)
class WarmupConfig:
    sid_phrases_file: Path
    rpc: str
    swap_delay: Range
    register_delay: Range
    swaps_per_account: Range
    aptos_balance: Range  # octas
    swap_percent: Range
    slippage_percent: Range
    gas_amount: Range
    gas_price: Range
    log_file_per_execution: bool = False
    warmup_wallets_file: Path = DEFAULT_WARMUP_WALLETS
    balance_api: str = "https://api.apscan.io"
    network_id: int = 1
    tx_wait_timeout: int = 60
    http_timeout: int = 30
    log_level: str = "INFO"
    log_color: bool = True
    log_json: bool = False
    debug: bool = False

    def public_view(self) -> dict:
        d = dict(self.__dict__)
        d["sid_phrases_file"] = str(self.sid_phrases_file)
        d["warmup_wallets_file"] = str(self.warmup_wallets_file)
        return d


def from_mapping(values: Mapping[str, Optional[str]]) -> WarmupConfig:
    balance_min = _env_float(values, "APTOS_BALANCE_MIN")
    balance_max = _env_float(values, "APTOS_BALANCE_MAX")
    if balance_min > balance_max:
        raise ConfigError(f"APTOS_BALANCE_MIN={balance_min} is greater than APTOS_BALANCE_MAX={balance_max}")
    if balance_min < 0:
        raise ConfigError("APTOS_BALANCE_MIN must not be negative")

    swap_percent = _env_range(values, "SWAP_MIN_PERCENT", "SWAP_MAX_PERCENT")
    slippage_percent = _env_range(values, "SLIPPAGE_MIN_PERCENT", "SLIPPAGE_MAX_PERCENT")
    for name, (lo, hi) in (("SWAP", swap_percent), ("SLIPPAGE", slippage_percent)):
        if hi > 100:
            raise ConfigError(f"{name}_MAX_PERCENT must be at most 100")

    return WarmupConfig(
        sid_phrases_file=Path(_env_required(values, "SID_PHRASES_FILE")),
        rpc=_env_required(values, "RPC").rstrip("/"),
        swap_delay=_env_range(values, "MIN_DELAY_BETWEEN_SWAPS_SECONDS", "MAX_DELAY_BETWEEN_SWAPS_SECONDS"),
        register_delay=_env_range(values, "MIN_REGISTER_TOKEN_DELAY_SECONDS", "MAX_REGISTER_TOKEN_DELAY_SECONDS"),
        swaps_per_account=_env_range(values, "MIN_SWAPS_PER_ACCOUNT", "MAX_SWAPS_PER_ACCOUNT"),
        aptos_balance=(_apt_to_octas(balance_min), _apt_to_octas(balance_max)),
        swap_percent=swap_percent,
        slippage_percent=slippage_percent,
        gas_amount=_env_range(values, "MIN_GAS_AMOUNT", "MAX_GAS_AMOUNT"),
        gas_price=_env_range(values, "MIN_GAS_PRICE", "MAX_GAS_PRICE"),
        log_file_per_execution=_env_bool(values, "LOG_FILE_PER_EXECUTION", False),
        warmup_wallets_file=Path(_env(values, "WARMUP_WALLETS_FILE", str(DEFAULT_WARMUP_WALLETS))),
        balance_api=_env(values, "BALANCE_API", "https://api.apscan.io").rstrip("/"),
        network_id=_env_int(values, "NETWORK_ID", 1),
        tx_wait_timeout=_env_int(values, "TX_WAIT_TIMEOUT_SECONDS", 60),
        http_timeout=_env_int(values, "HTTP_TIMEOUT", 30),
        log_level=_env(values, "LOG_LEVEL", "INFO").upper(),
        log_color=_env_bool(values, "LOG_COLOR", True),
        log_json=_env_bool(values, "LOG_JSON", False),
        debug=_env_bool(values, "DEBUG", False),
    )


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> WarmupConfig:
    """Read the properties file; environment variables win over file values."""
    path = Path(path) if path else DEFAULT_PROPERTIES
    if not path.is_file():
        raise ConfigError(f"properties file not found: {path}")
    values = dict(dotenv_values(path))
    values.update(os.environ if environ is None else environ)
    return from_mapping(values)
