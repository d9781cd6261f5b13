# aptos_warmup/orchestrator.py
import argparse
import asyncio
import atexit
import json
import random
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from aptos_sdk.account import Account

from .balances import BalanceSource
from .chain import TxSequencer, get_client
from .config import DEFAULT_PROPERTIES, LOG_DIR, ConfigError, WarmupConfig, load_config
from .pools import load_catalog
from .strategy import WarmupContext, run_for_wallet
from .txlog import TxLog
from .util import current_datetime, get_logger, init_logging, on_error, random_int, run_suffix, short, shuffled
from .wallets import load_wallets, load_warmup_addresses

log = get_logger()


def build_schedule(addresses: Sequence[str], swaps_range: Tuple[int, int], rng=random) -> List[str]:
    """Each address repeated a random number of times, then the whole list shuffled."""
    working: List[str] = []
    for address in addresses:
        working.extend([address] * random_int(swaps_range, rng))
    return shuffled(working, rng)


def resolve_candidates(warmup_addresses: List[str], wallets: Dict[str, Account]) -> List[str]:
    if not warmup_addresses:
        log.info("No wallets provided in warm-up list. Using all wallets")
        return list(wallets)
    unknown = [a for a in warmup_addresses if a not in wallets]
    if unknown:
        log.warning(f"warm-up addresses without a loaded key: {', '.join(unknown)}")
    return warmup_addresses


async def run_schedule(schedule: List[str], wallets: Dict[str, Account], ctx: WarmupContext,
                       stop: Optional[asyncio.Event] = None, turn=run_for_wallet, rng=random) -> int:
    """Run turns in order; a failed turn is logged and skipped. Returns the number of turns started."""
    total = len(schedule)
    started = 0
    for i, address in enumerate(schedule, start=1):
        if stop is not None and stop.is_set():
            log.warning(f"stop requested, skipping remaining {total - i + 1} swaps")
            break
        started += 1
        log.info(f"processing {i}th swap out of {total} total.")
        try:
            wallet = wallets.get(address)
            if wallet is None:
                raise KeyError(f"no key loaded for {address}")
            await turn(wallet, ctx, rng)
        except Exception as e:
            on_error(log, f"Failed performing swap transaction for {address} wallet", e)
    return started


def _on_stop_signal(stop: asyncio.Event, sig: signal.Signals) -> None:
    if stop.is_set():
        raise KeyboardInterrupt
    log.warning(f"{sig.name} received: finishing the current swap, then writing the tx log")
    stop.set()


def _install_stop_handlers(stop: asyncio.Event) -> List[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_stop_signal, stop, sig)
            installed.append(sig)
        except NotImplementedError:
            # no loop signal support (Windows); Ctrl-C falls back to KeyboardInterrupt + atexit flush
            log.debug(f"signal handler for {sig.name} not installed")
    return installed


async def run(config: WarmupConfig, run_datetime: str, log_dir: Path = LOG_DIR, turn=run_for_wallet) -> TxLog:
    # startup errors propagate before the tx log exists, so a failed start never rewrites the csv
    catalog = load_catalog(network_id=config.network_id)
    wallets = load_wallets(config.sid_phrases_file)
    addresses = resolve_candidates(load_warmup_addresses(config.warmup_wallets_file), wallets)
    log.info(f"warm up wallets: {', '.join(short(a) for a in addresses)}")
    schedule = build_schedule(addresses, config.swaps_per_account)
    log.info(f"wallet addresses swap sequence: {[short(a) for a in schedule]}. Swaps amount: {len(schedule)}")
    client = await get_client(config.rpc)

    tx_log = TxLog(run_datetime, config.log_file_per_execution, log_dir)
    atexit.register(tx_log.flush)
    stop = asyncio.Event()
    installed = _install_stop_handlers(stop)
    try:
        ctx = WarmupContext(
            config=config,
            catalog=catalog,
            balances=BalanceSource(config.balance_api, config.rpc, timeout=config.http_timeout),
            client=client,
            sequencer=TxSequencer(
                client, tx_log, config.gas_amount, config.gas_price,
                wait_timeout=config.tx_wait_timeout,
            ),
        )
        await run_schedule(schedule, wallets, ctx, stop, turn=turn)
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
        await client.close()
        tx_log.flush()
        atexit.unregister(tx_log.flush)
    return tx_log


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="aptos-warmup", description="Randomized Liquidswap swaps across Aptos wallets")
    p.add_argument("--config", type=Path, default=DEFAULT_PROPERTIES,
                   help=f"properties file (default: {DEFAULT_PROPERTIES})")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 1

    run_datetime = current_datetime()
    init_logging(
        config.log_level, config.log_color, config.log_json, config.debug,
        log_file=LOG_DIR / f"execution{run_suffix(run_datetime, config.log_file_per_execution)}.logs",
    )
    log.info(f"Starting app with {json.dumps(config.public_view())} config")
    try:
        asyncio.run(run(config, run_datetime))
    except ConfigError as e:
        log.error(f"startup failed: {e}")
        return 1
    except KeyboardInterrupt:
        log.warning("interrupted")
        return 130
    return 0
