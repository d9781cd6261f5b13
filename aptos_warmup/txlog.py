# aptos_warmup/txlog.py
import csv
import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import LOG_DIR
from .util import get_logger, run_suffix

log = get_logger()

HEADERS = [
    ("wallet_address", "Wallet Address"),
    ("time", "Tx time"),
    ("tx_status", "Tx status"),
    ("tx_type", "Tx type"),
    ("vm_status", "Vm status"),
    ("hash", "Tx hash"),
    ("gas_used", "Gas used"),
    ("max_gas", "Max gas"),
    ("gas_price", "Gas price"),
    ("payload_args", "Tx payload args"),
    ("error", "Error message"),
]

SUCCESS, FAILURE = "success", "failure"
SIMULATION, ON_CHAIN = "simulation", "on-chain"


@dataclass
class TxLogEntry:
    wallet_address: str
    time: str
    tx_status: str
    tx_type: str
    vm_status: str = ""
    hash: str = ""
    gas_used: str = ""
    max_gas: str = ""
    gas_price: str = ""
    payload_args: str = ""
    error: Optional[str] = None

    @classmethod
    def from_result(cls, wallet_address: str, result: Dict[str, Any], simulation: bool) -> "TxLogEntry":
        """Entry from a node transaction (or simulation) response."""
        return cls(
            wallet_address=wallet_address,
            time=_micros_to_iso(result.get("timestamp")),
            tx_status=SUCCESS if result.get("success") else FAILURE,
            tx_type=SIMULATION if simulation else ON_CHAIN,
            vm_status=str(result.get("vm_status", "")),
            hash=str(result.get("hash", "")),
            gas_used=str(result.get("gas_used", "")),
            max_gas=str(result.get("max_gas_amount", "")),
            gas_price=str(result.get("gas_unit_price", "")),
            payload_args=json.dumps(result.get("payload"), separators=(",", ":")),
        )

    @classmethod
    def from_error(cls, wallet_address: str, exc: BaseException, tx_hash: str = "",
                   tx_type: str = ON_CHAIN) -> "TxLogEntry":
        return cls(
            wallet_address=wallet_address,
            time=datetime.now(timezone.utc).isoformat(),
            tx_status=FAILURE,
            tx_type=tx_type,
            hash=tx_hash,
            error=f"{type(exc).__name__}: {exc}",
        )


def _micros_to_iso(ts) -> str:
    try:
        return datetime.fromtimestamp(int(ts) / 1_000_000, tz=timezone.utc).isoformat()
    except (TypeError, ValueError):
        return datetime.now(timezone.utc).isoformat()


class TxLog:
    """In-memory transaction records, written to CSV once at shutdown."""

    def __init__(self, run_datetime: str, per_execution: bool, log_dir: Path = LOG_DIR):
        self.path = Path(log_dir) / f"execution{run_suffix(run_datetime, per_execution)}.csv"
        self.entries: List[TxLogEntry] = []
        self._flushed = False

    def append(self, entry: TxLogEntry) -> None:
        self.entries.append(entry)

    def sorted_entries(self) -> List[TxLogEntry]:
        # sorted() is stable: same-wallet rows keep arrival order
        return sorted(self.entries, key=lambda e: e.wallet_address)

    @property
    def flushed(self) -> bool:
        return self._flushed

    def flush(self) -> Optional[Path]:
        if self._flushed:
            return None
        self._flushed = True
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow([title for _, title in HEADERS])
            for e in self.sorted_entries():
                row = asdict(e)
                w.writerow(["" if row[k] is None else row[k] for k, _ in HEADERS])
        log.info(f"tx log: {len(self.entries)} rows -> {self.path}")
        return self.path
