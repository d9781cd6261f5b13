"""Shared pytest fixtures."""
import random
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
from aptos_sdk.account import Account
from aptos_sdk.transactions import RawTransaction

from aptos_warmup.balances import CoinHolding
from aptos_warmup.config import APTOS_COIN, WarmupConfig
from aptos_warmup.dex import register_payload
from aptos_warmup.pools import Pool, PoolCatalog
from aptos_warmup.txlog import TxLog

NATIVE = APTOS_COIN
USDC = "0xf22bede237a07e121b56d91a491eb7bcdfd1f5907926a9e58338f964a01b17fa::asset::USDC"
USDT = "0xf22bede237a07e121b56d91a491eb7bcdfd1f5907926a9e58338f964a01b17fa::asset::USDT"
WETH = "0xf22bede237a07e121b56d91a491eb7bcdfd1f5907926a9e58338f964a01b17fa::asset::WETH"
MOD = "0x6f986d146e4a90b828d8c12c14b6f4e003fdff11a8eecceceb63744363eaac01::mod_coin::MOD"
ORPHAN = "0x6a1fd8b7ea1e4f6f1b3e3e2e1b0a4cd1f1e0f9a8b7c6d5e4f3a2b1c0d9e8f7a6::orphan::ORPHAN"

APT = 10 ** 8


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def catalog() -> PoolCatalog:
    return PoolCatalog([
        Pool(USDC, NATIVE, "unstable", 0, 1),
        Pool(NATIVE, USDT, "unstable", 0, 1),
        Pool(USDC, USDT, "stable", 0, 1),
        Pool(WETH, USDC, "unstable", 0.5, 1),
    ])


@pytest.fixture
def holdings():
    def _build(**balances: int) -> List[CoinHolding]:
        names = {"native": NATIVE, "usdc": USDC, "usdt": USDT, "weth": WETH, "mod": MOD, "orphan": ORPHAN}
        return [CoinHolding(names[k], v, 8 if k == "native" else 6) for k, v in balances.items()]
    return _build


@pytest.fixture
def config(tmp_path: Path) -> WarmupConfig:
    return WarmupConfig(
        sid_phrases_file=tmp_path / "keys.txt",
        rpc="https://fullnode.example/v1",
        swap_delay=(5, 10),
        register_delay=(1, 2),
        swaps_per_account=(2, 2),
        aptos_balance=(APT // 2, APT // 2),
        swap_percent=(50, 50),
        slippage_percent=(1, 1),
        gas_amount=(2000, 4000),
        gas_price=(100, 120),
        warmup_wallets_file=tmp_path / "wallets.txt",
    )


@pytest.fixture
def wallet() -> Account:
    return Account.load_key("0x" + "11" * 32)


@pytest.fixture
def tx_log(tmp_path: Path) -> TxLog:
    return TxLog("2026-10-19-12-00-00", per_execution=False, log_dir=tmp_path)


@pytest.fixture
def raw_txn(wallet: Account) -> RawTransaction:
    return RawTransaction(wallet.address(), 7, register_payload(USDC), 200000, 100, 1_900_000_000, 1)


def chain_result(success: bool, **extra) -> dict:
    result = {
        "success": success,
        "timestamp": "1700000000000000",
        "vm_status": "Executed successfully" if success else "Move abort: EINSUFFICIENT_BALANCE",
        "hash": "0xabc123",
        "gas_used": "540",
        "max_gas_amount": "3000",
        "gas_unit_price": "100",
        "payload": {"function": "0x1::managed_coin::register", "arguments": []},
    }
    result.update(extra)
    return result


@pytest.fixture
def fake_client(raw_txn: RawTransaction) -> MagicMock:
    client = MagicMock()
    client.create_bcs_transaction = AsyncMock(return_value=raw_txn)
    client.simulate_transaction = AsyncMock(return_value=[chain_result(True)])
    client.submit_bcs_transaction = AsyncMock(return_value="0xabc123")
    client.transaction_pending = AsyncMock(side_effect=[True, False])
    client.transaction_by_hash = AsyncMock(return_value=chain_result(True))
    client.account_resource = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock(return_value=0)
