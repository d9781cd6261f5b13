# aptos_warmup/util.py
import asyncio
import json
import logging
import random
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

# --- pretty logging utils ---
RESET = "\x1b[0m"
COLORS = {
    "DEBUG": "\x1b[38;5;245m",
    "INFO":  "\x1b[38;5;39m",
    "WARNING": "\x1b[38;5;214m",
    "ERROR": "\x1b[38;5;203m",
}

LOGGER_NAME = "warmup"


class _HumanFormatter(logging.Formatter):
    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        msg = record.getMessage()
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"
        if self.color:
            c = COLORS.get(level, "")
            return f"{c}{level.lower():>7}{RESET} {msg}"
        return f"{level.lower():>7} {msg}"


class _FileFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(message)s")


class _JsonFormatter(logging.Formatter):
    def __init__(self, debug: bool = False):
        super().__init__()
        self.debug = debug

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": round(time.time(), 3),
            "level": record.levelname.lower(),
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if self.debug and record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


_log: Optional[logging.Logger] = None
_debug = False


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    return _log if _log else init_logging(name=name)


def init_logging(level: str = "INFO", color: bool = True, as_json: bool = False,
                 debug: bool = False, log_file: Optional[Path] = None,
                 name: str = LOGGER_NAME) -> logging.Logger:
    global _log, _debug
    log = logging.getLogger(name)
    lvl = getattr(logging, level.upper(), logging.INFO)
    log.setLevel(lvl)
    h = logging.StreamHandler(sys.stdout)
    h.setLevel(lvl)
    h.setFormatter(_JsonFormatter(debug) if as_json else _HumanFormatter(color))
    handlers: List[logging.Handler] = [h]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        fh.setLevel(lvl)
        fh.setFormatter(_FileFormatter())
        handlers.append(fh)
    # avoid duplicate handlers
    for old in log.handlers:
        old.close()
    log.handlers[:] = handlers
    log.propagate = False
    _log = log
    _debug = debug
    return log


def on_error(log: logging.Logger, msg: str, exc: Optional[BaseException] = None) -> None:
    if _debug and exc:
        log.error(msg, exc_info=exc)
    else:
        log.error(f"{msg}: {exc!r}" if exc else msg)


# --- pretty helpers ---
def short(x: object, keep: int = 6) -> str:
    if x is None:
        return "-"
    s = str(x)
    if s.startswith("0x") and len(s) > 2*keep+2:
        return f"{s[:2+keep]}…{s[-keep:]}"
    if len(s) > keep*2:
        return f"{s[:keep]}…{s[-keep:]}"
    return s


def fmt_amount(raw_amount: int, decimals: int) -> str:
    if decimals <= 0:
        return str(raw_amount)
    q = 10 ** decimals
    whole = raw_amount // q
    frac = raw_amount % q
    if frac == 0:
        return f"{whole}"
    # trim trailing zeros, limit length
    s = f"{frac:0{decimals}d}".rstrip("0")
    s = s[:8]
    return f"{whole}.{s}"


def coin_name(contract: str) -> str:
    """'0x1::aptos_coin::AptosCoin' -> 'AptosCoin'"""
    return contract.rsplit("::", 1)[-1] if "::" in contract else short(contract)


# --- randomness ---
def random_int(bounds: Tuple[int, int], rng=random) -> int:
    """Uniform integer in the inclusive (min, max) range."""
    lo, hi = bounds
    return rng.randint(lo, hi)


def shuffled(items: Sequence, rng=random) -> list:
    out = list(items)
    rng.shuffle(out)
    return out


async def sleep_with_jitter(bounds: Tuple[int, int], reason: str = "", rng=random) -> int:
    t = random_int(bounds, rng)
    log = get_logger()
    if reason:
        log.info(f"sleep {t}s  ({reason})")
    else:
        log.info(f"sleep {t}s")
    await asyncio.sleep(t)
    return t


# --- files ---
def read_lines(path: Path) -> List[str]:
    """Non-empty, stripped lines of a text file."""
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def current_datetime() -> str:
    return datetime.now().strftime("%Y-%m-%d-%H-%M-%S")


def run_suffix(run_datetime: str, per_execution: bool) -> str:
    return f"-{run_datetime}" if per_execution else ""
