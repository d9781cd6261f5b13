"""Tests for the run schedule and the main loop."""
import asyncio
import os
import random
import signal
from collections import Counter
from unittest.mock import AsyncMock, MagicMock

import pytest

from aptos_warmup import orchestrator
from aptos_warmup.config import ConfigError
from aptos_warmup.orchestrator import _on_stop_signal, build_schedule, main, resolve_candidates, run, run_schedule
from aptos_warmup.strategy import InsufficientFundsError
from aptos_warmup.txlog import TxLogEntry


def test_schedule_repeats_each_wallet_count_times():
    schedule = build_schedule(["W1", "W2"], (2, 2), random.Random(0))
    assert Counter(schedule) == Counter(["W1", "W1", "W2", "W2"])


def test_schedule_is_a_permutation_and_interleaves():
    orders = {tuple(build_schedule(["W1", "W2"], (2, 2), random.Random(s))) for s in range(60)}
    assert all(sorted(o) == ["W1", "W1", "W2", "W2"] for o in orders)
    # all 6 distinct arrangements of the multiset show up
    assert len(orders) == 6


def test_schedule_counts_within_range():
    rng = random.Random(5)
    for _ in range(20):
        counts = Counter(build_schedule(["A", "B", "C"], (1, 4), rng))
        assert all(1 <= counts[a] <= 4 for a in "ABC")


def test_resolve_candidates_defaults_to_all_wallets():
    wallets = {"0x1": object(), "0x2": object()}
    assert resolve_candidates([], wallets) == ["0x1", "0x2"]
    assert resolve_candidates(["0x2"], wallets) == ["0x2"]


@pytest.mark.asyncio
async def test_failed_turn_does_not_stop_the_run():
    wallets = {"0xA": MagicMock(name="A"), "0xB": MagicMock(name="B")}
    turn = AsyncMock(side_effect=[InsufficientFundsError("empty"), None, RuntimeError("rpc"), None])

    started = await run_schedule(["0xA", "0xB", "0xA", "0xB"], wallets, MagicMock(), turn=turn)

    assert started == 4
    assert turn.await_count == 4
    assert [c.args[0] for c in turn.call_args_list] == [wallets["0xA"], wallets["0xB"], wallets["0xA"], wallets["0xB"]]


@pytest.mark.asyncio
async def test_unknown_address_is_skipped():
    wallets = {"0xA": MagicMock()}
    turn = AsyncMock()
    await run_schedule(["0xZ", "0xA"], wallets, MagicMock(), turn=turn)
    turn.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_takes_effect_between_turns():
    stop = asyncio.Event()
    wallets = {"0xA": MagicMock()}

    async def turn(wallet, ctx, rng):
        stop.set()

    started = await run_schedule(["0xA", "0xA", "0xA"], wallets, MagicMock(), stop=stop, turn=turn)
    assert started == 1


RUN_AT = "2026-10-19-12-00-00"
KEYS = ["0x" + "11" * 32, "0x" + "22" * 32]


@pytest.fixture
def exit_hooks(monkeypatch):
    """Registered atexit callables, kept out of the real interpreter hooks."""
    hooks = []
    monkeypatch.setattr(orchestrator.atexit, "register", hooks.append)
    monkeypatch.setattr(orchestrator.atexit, "unregister", lambda fn: hooks.remove(fn) if fn in hooks else None)
    return hooks


@pytest.fixture
def started(monkeypatch, config, fake_client):
    config.sid_phrases_file.write_text("\n".join(KEYS) + "\n")
    monkeypatch.setattr(orchestrator, "get_client", AsyncMock(return_value=fake_client))
    return config


async def logging_turn(wallet, ctx, rng):
    ctx.sequencer.tx_log.append(TxLogEntry(str(wallet.address()), "t", "success", "on-chain"))


@pytest.mark.asyncio
async def test_run_writes_tx_log_once(started, tmp_path, exit_hooks, fake_client):
    tx_log = await run(started, RUN_AT, log_dir=tmp_path, turn=logging_turn)

    csv_path = tmp_path / "execution.csv"
    rows = csv_path.read_text().splitlines()
    # header + 2 wallets x 2 swaps
    assert len(rows) == 5
    assert tx_log.flushed
    fake_client.close.assert_awaited_once()
    # the exit backstop is released and a late flush is a no-op
    assert exit_hooks == []
    assert tx_log.flush() is None
    assert csv_path.read_text().splitlines() == rows


@pytest.mark.asyncio
async def test_startup_failure_keeps_previous_tx_log(config, tmp_path, exit_hooks, monkeypatch):
    previous = tmp_path / "execution.csv"
    previous.write_text("previous run rows\n")
    get_client = AsyncMock()
    monkeypatch.setattr(orchestrator, "get_client", get_client)

    with pytest.raises(ConfigError):
        await run(config, RUN_AT, log_dir=tmp_path)

    for hook in exit_hooks:
        hook()
    assert previous.read_text() == "previous run rows\n"
    get_client.assert_not_awaited()


@pytest.mark.asyncio
async def test_unreachable_node_keeps_previous_tx_log(started, tmp_path, exit_hooks, monkeypatch):
    previous = tmp_path / "execution.csv"
    previous.write_text("previous run rows\n")
    monkeypatch.setattr(orchestrator, "get_client", AsyncMock(side_effect=ConnectionError("refused")))

    with pytest.raises(ConnectionError):
        await run(started, RUN_AT, log_dir=tmp_path)

    assert exit_hooks == []
    assert previous.read_text() == "previous run rows\n"


@pytest.mark.asyncio
async def test_interrupt_finishes_turn_and_writes_tx_log(started, tmp_path, exit_hooks):
    turns = []

    async def interrupted_turn(wallet, ctx, rng):
        turns.append(wallet)
        await logging_turn(wallet, ctx, rng)
        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.sleep(0.1)

    tx_log = await run(started, RUN_AT, log_dir=tmp_path, turn=interrupted_turn)

    assert len(turns) == 1
    assert len((tmp_path / "execution.csv").read_text().splitlines()) == 2
    assert tx_log.flushed
    assert exit_hooks == []


def test_second_signal_interrupts():
    stop = asyncio.Event()
    _on_stop_signal(stop, signal.SIGINT)
    assert stop.is_set()
    with pytest.raises(KeyboardInterrupt):
        _on_stop_signal(stop, signal.SIGTERM)


def test_main_config_error_exit_code(tmp_path):
    assert main(["--config", str(tmp_path / "absent.properties")]) == 1


def test_main_interrupt_exit_code(monkeypatch, tmp_path, config):
    monkeypatch.setattr(orchestrator, "load_config", lambda path: config)
    monkeypatch.setattr(orchestrator, "LOG_DIR", tmp_path)
    monkeypatch.setattr(orchestrator, "run", AsyncMock(side_effect=KeyboardInterrupt))
    assert main([]) == 130


def test_main_startup_error_exit_code(monkeypatch, tmp_path, config):
    monkeypatch.setattr(orchestrator, "load_config", lambda path: config)
    monkeypatch.setattr(orchestrator, "LOG_DIR", tmp_path)
    monkeypatch.setattr(orchestrator, "run", AsyncMock(side_effect=ConfigError("no wallets")))
    assert main([]) == 1
