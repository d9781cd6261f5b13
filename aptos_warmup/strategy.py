# aptos_warmup/strategy.py
import asyncio
import random
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from aptos_sdk.account import Account
from aptos_sdk.async_client import RestClient

from .balances import BalanceSource, CoinHolding, balance_of, contracts_with_balance
from .chain import TxSequencer
from .config import APTOS_COIN, APTOS_DECIMALS, WarmupConfig
from .dex import build_swap_payload, register_payload
from .pools import PoolCatalog
from .util import coin_name, fmt_amount, get_logger, random_int, short, shuffled

log = get_logger()


class SwapSelectionError(AssertionError):
    pass


class InsufficientFundsError(SwapSelectionError):
    pass


class NoPoolFoundError(SwapSelectionError):
    pass


@dataclass(frozen=True)
class SwapDecision:
    source: str
    destination: str
    amount: int


def _first_with_native_pool(candidates: Sequence[str], catalog: PoolCatalog,
                            native: str, rng=random) -> Optional[str]:
    # fresh shuffle each call so ties never follow catalog order
    return next((c for c in shuffled(candidates, rng) if catalog.has_pool(native, c)), None)


def select_pair_to_native(holdings: Iterable[CoinHolding], catalog: PoolCatalog, wallet_address: str,
                          native: str = APTOS_COIN, rng=random) -> Tuple[str, str]:
    candidates = [c for c in contracts_with_balance(holdings) if c != native]
    coin_x = _first_with_native_pool(candidates, catalog, native, rng)
    if coin_x is None:
        raise InsufficientFundsError(f"Not enough balance at wallet {wallet_address}")
    log.info(f"native balance is small. Choosing {coin_name(coin_x)} - {coin_name(native)} pool")
    return coin_x, native


def select_any_pair(holdings: Iterable[CoinHolding], catalog: PoolCatalog, wallet_address: str,
                    native: str = APTOS_COIN, rng=random) -> Tuple[str, str]:
    pool = catalog.pick_random(rng)
    log.info(f"randomly chosen pool {coin_name(pool.coin_x)}/{coin_name(pool.coin_y)} ({pool.curve}, v{pool.contract})")
    coin_x, coin_y = pool.coins
    held: List[str] = contracts_with_balance(holdings, only=pool.coins)

    if not held:
        dest = _first_with_native_pool(pool.coins, catalog, native, rng)
        if dest is None:
            raise NoPoolFoundError(
                f"No pool found for {native} - {coin_x}/{coin_y} token contracts (wallet {wallet_address})"
            )
        return native, dest
    if len(held) == 1:
        if held[0] != coin_x:
            return coin_y, coin_x
        return coin_x, coin_y
    a, b = shuffled(held, rng)
    return a, b


def select_pair(holdings: Sequence[CoinHolding], native_minimum: int, catalog: PoolCatalog,
                wallet_address: str, native: str = APTOS_COIN, rng=random) -> Tuple[str, str]:
    """(source, destination) for one swap turn."""
    if balance_of(holdings, native) < native_minimum:
        return select_pair_to_native(holdings, catalog, wallet_address, native, rng)
    return select_any_pair(holdings, catalog, wallet_address, native, rng)


def select_amount(holdings: Sequence[CoinHolding], source: str, native_minimum: int,
                  percent_range: Tuple[int, int], wallet_address: str,
                  native: str = APTOS_COIN, rng=random) -> int:
    """
    Share of the spendable balance to swap, rounded down to whole smallest units.
    The native coin keeps ``native_minimum`` in reserve.
    """
    balance = balance_of(holdings, source)
    spendable = balance - native_minimum if source == native else balance
    if spendable <= 0:
        raise InsufficientFundsError(
            f"{fmt_amount(balance, APTOS_DECIMALS) if source == native else balance} "
            f"{coin_name(source)} balance is not enough for swap at {wallet_address}"
        )
    amount = spendable * random_int(percent_range, rng) // 100
    if amount <= 0:
        raise InsufficientFundsError(f"Swap amount rounds to zero for {coin_name(source)} at {wallet_address}")
    return amount


@dataclass
class WarmupContext:
    config: WarmupConfig
    catalog: PoolCatalog
    balances: BalanceSource
    client: RestClient
    sequencer: TxSequencer


async def decide(ctx: WarmupContext, address: str, native_minimum: int, rng=random) -> SwapDecision:
    # indexer calls are blocking requests; keep them off the loop so signals stay responsive
    holdings = await asyncio.to_thread(ctx.balances.wallet_coins, address)
    source, destination = select_pair(holdings, native_minimum, ctx.catalog, address, rng=rng)
    # balances are re-read for the amount; a previous turn may have moved them
    holdings = await asyncio.to_thread(ctx.balances.wallet_coins, address)
    amount = select_amount(holdings, source, native_minimum, ctx.config.swap_percent, address, rng=rng)
    return SwapDecision(source, destination, amount)


async def swap(wallet: Account, decision: SwapDecision, ctx: WarmupContext, rng=random) -> None:
    address = str(wallet.address())
    log.info(f"swapping {decision.amount} {coin_name(decision.source)} to {coin_name(decision.destination)}")
    if not await asyncio.to_thread(ctx.balances.coin_store_registered, address, decision.destination):
        log.info(f"registering {coin_name(decision.destination)} coin store for {short(address)}")
        await ctx.sequencer.submit(wallet, register_payload(decision.destination),
                                   ctx.config.register_delay, "after register")
    payload = await build_swap_payload(
        ctx.client, ctx.catalog, decision.source, decision.destination,
        decision.amount, ctx.config.slippage_percent, rng,
    )
    await ctx.sequencer.submit(wallet, payload, ctx.config.swap_delay, "after swap")


async def run_for_wallet(wallet: Account, ctx: WarmupContext, rng=random) -> SwapDecision:
    address = str(wallet.address())
    native_minimum = random_int(ctx.config.aptos_balance, rng)
    log.info(
        f"starting warmup for {short(address)}. "
        f"Randomly chosen minimum native balance: {fmt_amount(native_minimum, APTOS_DECIMALS)} APT"
    )
    decision = await decide(ctx, address, native_minimum, rng)
    await swap(wallet, decision, ctx, rng)
    log.info(f"finished warmup for {short(address)}")
    return decision
