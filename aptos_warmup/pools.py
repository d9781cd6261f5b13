# aptos_warmup/pools.py
import json
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .util import get_logger

CATALOG_FILE = Path(__file__).with_name("pools.json")

CURVES = ("stable", "unstable")
CONTRACT_VERSIONS = (0, 0.5)


@dataclass(frozen=True)
class Pool:
    coin_x: str
    coin_y: str
    curve: str
    contract: Union[int, float]
    network_id: int

    @property
    def coins(self) -> Tuple[str, str]:
        return self.coin_x, self.coin_y

    @classmethod
    def from_json(cls, raw: dict) -> "Pool":
        pool = cls(
            coin_x=raw["coinX"],
            coin_y=raw["coinY"],
            curve=raw["curve"],
            contract=raw["contract"],
            network_id=int(raw["networkId"]),
        )
        if pool.curve not in CURVES:
            raise ValueError(f"unknown curve {pool.curve!r} for {pool.coin_x} - {pool.coin_y}")
        if pool.contract not in CONTRACT_VERSIONS:
            raise ValueError(f"unknown contract version {pool.contract!r} for {pool.coin_x} - {pool.coin_y}")
        return pool


class PoolCatalog:
    """Read-only pool table indexed under both orderings of each coin pair."""

    def __init__(self, pools: Iterable[Pool]):
        self._pools: Tuple[Pool, ...] = tuple(pools)
        self._by_pair: Dict[Tuple[str, str], Pool] = {}
        for p in self._pools:
            # later entries for the same pair win
            self._by_pair[(p.coin_x, p.coin_y)] = p
            self._by_pair[(p.coin_y, p.coin_x)] = p

    def __len__(self) -> int:
        return len(self._pools)

    def __iter__(self):
        return iter(self._pools)

    def lookup(self, coin_a: str, coin_b: str) -> Optional[Pool]:
        return self._by_pair.get((coin_a, coin_b))

    def has_pool(self, coin_a: str, coin_b: str) -> bool:
        return (coin_a, coin_b) in self._by_pair

    def pick_random(self, rng=random) -> Pool:
        if not self._pools:
            raise ValueError("Empty pool catalog")
        return rng.choice(self._pools)


def load_catalog(path: Optional[Path] = None, network_id: Optional[int] = None) -> PoolCatalog:
    path = Path(path) if path else CATALOG_FILE
    with open(path, "r", encoding="utf-8") as f:
        raw: List[dict] = json.load(f)
    pools = [Pool.from_json(r) for r in raw]
    if network_id is not None:
        pools = [p for p in pools if p.network_id == network_id]
    get_logger().info(f"pool catalog: {len(pools)} pools loaded from {path.name}")
    return PoolCatalog(pools)
