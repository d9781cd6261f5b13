# aptos_warmup/balances.py
from dataclasses import dataclass
from typing import Iterable, List, Optional

import requests
import urllib3

from .util import get_logger, short

log = get_logger()

# the indexer is served with a certificate requests cannot verify
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class BalanceApiError(Exception):
    pass


@dataclass(frozen=True)
class CoinHolding:
    contract: str
    balance: int
    decimals: int


def balance_of(holdings: Iterable[CoinHolding], contract: str) -> int:
    for h in holdings:
        if h.contract == contract:
            return h.balance
    return 0


def contracts_with_balance(holdings: Iterable[CoinHolding], only: Iterable[str] = ()) -> List[str]:
    """Contracts held with a positive balance, optionally limited to ``only``."""
    wanted = set(only)
    return [
        h.contract for h in holdings
        if h.balance > 0 and (not wanted or h.contract in wanted)
    ]


def _indexer_address(address: str) -> str:
    # the indexer keys accounts without the first leading zero
    return address.replace("0x0", "0x", 1)


def parse_balances(data) -> List[CoinHolding]:
    try:
        balances = data[0]["all_balances"]
    except (IndexError, KeyError, TypeError):
        raise BalanceApiError(f"Bad balance response: {str(data)[:300]}") from None
    if balances is None:
        return []
    out = []
    for b in balances:
        try:
            out.append(CoinHolding(
                contract=b["move_resource_generic_type_params"][0],
                balance=int(b["balance"]),
                decimals=int(b["coin_info"]["decimals"]),
            ))
        except (IndexError, KeyError, TypeError, ValueError):
            raise BalanceApiError(f"Bad balance entry: {b!r}") from None
    return out


class BalanceSource:
    """Live coin balances from the indexer plus coin-store probes against the node."""

    def __init__(self, balance_api: str, rpc: str, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.balance_api = balance_api.rstrip("/")
        self.rpc = rpc.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def wallet_coins(self, address: str) -> List[CoinHolding]:
        url = f"{self.balance_api}/accounts"
        r = self.session.get(
            url, params={"address": f"eq.{_indexer_address(address)}"},
            timeout=self.timeout, verify=False,
        )
        if r.status_code >= 400:
            raise BalanceApiError(f"HTTP {r.status_code} from {url}: {r.text[:300]}")
        holdings = parse_balances(r.json())
        log.debug(f"balances {short(address)}: {len(holdings)} coins")
        return holdings

    def coin_store_registered(self, address: str, contract: str) -> bool:
        resource = f"0x1::coin::CoinStore<{contract}>"
        r = self.session.get(f"{self.rpc}/accounts/{address}/resource/{resource}", timeout=self.timeout)
        if r.status_code == 404:
            return False
        r.raise_for_status()
        return "data" in r.json()
