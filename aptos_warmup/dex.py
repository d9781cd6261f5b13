# aptos_warmup/dex.py
"""Liquidswap (Pontem) helpers: pool reserves, output quotes and entry-function payloads."""
import random
from dataclasses import dataclass
from typing import Dict, Tuple

from aptos_sdk.async_client import ResourceNotFound, RestClient
from aptos_sdk.bcs import Serializer
from aptos_sdk.transactions import EntryFunction, TransactionArgument, TransactionPayload
from aptos_sdk.type_tag import StructTag, TypeTag

from .pools import Pool, PoolCatalog
from .util import coin_name, get_logger, random_int

log = get_logger()

FEE_SCALE = 10_000
ONE_E_8 = 100_000_000


@dataclass(frozen=True)
class Deployment:
    module: str
    scripts: str
    resource_account: str


# contract version -> where that Liquidswap release lives on mainnet
DEPLOYMENTS: Dict[float, Deployment] = {
    0: Deployment(
        module="0x190d44266241744264b964a37b8f09863167a12d3e70cda39376cfb4e3561e12",
        scripts="scripts_v2",
        resource_account="0x05a97986a9d031c4567e15b797be516910cfcb4156312482efc6a19c0a30c948",
    ),
    0.5: Deployment(
        module="0x0163df34fccbf003ce219d3f1d9e70d140b60622cb9dd47599c25fb2f797ba6e",
        scripts="scripts",
        resource_account="0x61d2c22a6cb7831bee0f48363b0eec92369357aece0d1142062f7d5d85c7bef8",
    ),
}


class PoolNotFound(LookupError):
    pass


@dataclass(frozen=True)
class Reserves:
    reserve_in: int
    reserve_out: int
    scale_in: int
    scale_out: int
    fee: int


def deployment_of(pool: Pool) -> Deployment:
    return DEPLOYMENTS[pool.contract]


def curve_type(pool: Pool) -> str:
    d = deployment_of(pool)
    return f"{d.module}::curves::{'Stable' if pool.curve == 'stable' else 'Uncorrelated'}"


def _pool_resource(pool: Pool, coin_x: str, coin_y: str) -> str:
    d = deployment_of(pool)
    return f"{d.module}::liquidity_pool::LiquidityPool<{coin_x}, {coin_y}, {curve_type(pool)}>"


async def get_reserves(client: RestClient, pool: Pool, coin_in: str, coin_out: str) -> Reserves:
    """Pool reserves oriented as (coin_in, coin_out); the pool is stored under one ordering only."""
    account = deployment_of(pool).resource_account
    for x, y, flipped in ((coin_in, coin_out, False), (coin_out, coin_in, True)):
        try:
            res = await client.account_resource(account, _pool_resource(pool, x, y))
        except ResourceNotFound:
            continue
        data = res["data"]
        rx, ry = int(data["coin_x_reserve"]["value"]), int(data["coin_y_reserve"]["value"])
        # scales are only set for stable pools
        sx, sy = int(data.get("x_scale") or 0) or 1, int(data.get("y_scale") or 0) or 1
        fee = int(data["fee"])
        if flipped:
            return Reserves(ry, rx, sy, sx, fee)
        return Reserves(rx, ry, sx, sy, fee)
    raise PoolNotFound(f"No on-chain pool for {coin_name(coin_in)} - {coin_name(coin_out)} ({pool.curve})")


# --- curve math (integer, rounds down) ---

def uncorrelated_out(amount_in: int, reserve_in: int, reserve_out: int, fee: int) -> int:
    in_after_fee = amount_in * (FEE_SCALE - fee)
    return in_after_fee * reserve_out // (reserve_in * FEE_SCALE + in_after_fee)


def _lp_value(x: int, y: int) -> int:
    return x * y * (x * x + y * y)


def _get_y(x0: int, k: int, y: int) -> int:
    # newton on x0*y^3 + x0^3*y = k
    for _ in range(255):
        f = _lp_value(x0, y)
        d = 3 * x0 * y * y + x0 ** 3
        if d == 0:
            break
        if f < k:
            dy = (k - f) // d
            y += dy
        else:
            dy = (f - k) // d
            y -= dy
        if dy <= 1:
            break
    while _lp_value(x0, y) < k:
        y += 1
    return y


def stable_out(amount_in: int, reserve_in: int, reserve_out: int,
               scale_in: int, scale_out: int, fee: int) -> int:
    amount_in = amount_in * (FEE_SCALE - fee) // FEE_SCALE
    x = reserve_in * ONE_E_8 // scale_in
    y = reserve_out * ONE_E_8 // scale_out
    dx = amount_in * ONE_E_8 // scale_in
    new_y = _get_y(x + dx, _lp_value(x, y), y)
    dy = max(y - new_y, 0)
    return dy * scale_out // ONE_E_8


def amount_out(pool: Pool, r: Reserves, amount_in: int) -> int:
    if r.reserve_in == 0 or r.reserve_out == 0:
        return 0
    if pool.curve == "stable":
        return stable_out(amount_in, r.reserve_in, r.reserve_out, r.scale_in, r.scale_out, r.fee)
    return uncorrelated_out(amount_in, r.reserve_in, r.reserve_out, r.fee)


def min_amount_out(expected: int, slippage_pct: int) -> int:
    return expected * (100 - slippage_pct) // 100


# --- payloads ---

def _tag(struct: str) -> TypeTag:
    return TypeTag(StructTag.from_str(struct))


def swap_payload(pool: Pool, coin_from: str, coin_to: str, amount_in: int, min_out: int) -> TransactionPayload:
    d = deployment_of(pool)
    return TransactionPayload(EntryFunction.natural(
        f"{d.module}::{d.scripts}",
        "swap",
        [_tag(coin_from), _tag(coin_to), _tag(curve_type(pool))],
        [
            TransactionArgument(int(amount_in), Serializer.u64),
            TransactionArgument(int(min_out), Serializer.u64),
        ],
    ))


def register_payload(coin: str) -> TransactionPayload:
    return TransactionPayload(EntryFunction.natural(
        "0x1::managed_coin",
        "register",
        [_tag(coin)],
        [],
    ))


async def build_swap_payload(
    client: RestClient, catalog: PoolCatalog, coin_from: str, coin_to: str,
    amount_in: int, slippage_range: Tuple[int, int], rng=random,
) -> TransactionPayload:
    pool = catalog.lookup(coin_from, coin_to)
    if pool is None:
        raise PoolNotFound(f"No pool for {coin_from} - {coin_to} in catalog")
    reserves = await get_reserves(client, pool, coin_from, coin_to)
    expected = amount_out(pool, reserves, amount_in)
    slippage = random_int(slippage_range, rng)
    min_out = min_amount_out(expected, slippage)
    log.info(
        f"quote {coin_name(coin_from)}->{coin_name(coin_to)} in={amount_in} "
        f"out≈{expected} minOut={min_out} slippage={slippage}% curve={pool.curve} v{pool.contract}"
    )
    return swap_payload(pool, coin_from, coin_to, amount_in, min_out)
