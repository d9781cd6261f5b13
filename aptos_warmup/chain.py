# aptos_warmup/chain.py
import asyncio
import random
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from aptos_sdk.account import Account
from aptos_sdk.async_client import RestClient
from aptos_sdk.transactions import RawTransaction, SignedTransaction, TransactionPayload

from .txlog import ON_CHAIN, SIMULATION, TxLog, TxLogEntry
from .util import get_logger, random_int, short, sleep_with_jitter

log = get_logger()


async def get_client(rpc: str) -> RestClient:
    assert rpc, "RPC required (.properties)"
    client = RestClient(rpc)
    info = await client.info()
    log.info(f"rpc {rpc} chain_id={info.get('chain_id')} ledger={info.get('ledger_version')}")
    return client


@dataclass(frozen=True)
class GasParams:
    max_gas_amount: int
    gas_unit_price: int


def draw_gas_params(gas_amount: Tuple[int, int], gas_price: Tuple[int, int], rng=random) -> GasParams:
    p = GasParams(random_int(gas_amount, rng), random_int(gas_price, rng))
    log.info(f"gas amount {p.max_gas_amount}, gas price {p.gas_unit_price}")
    return p


def with_gas(raw: RawTransaction, gas: GasParams) -> RawTransaction:
    return RawTransaction(
        raw.sender,
        raw.sequence_number,
        raw.payload,
        gas.max_gas_amount,
        gas.gas_unit_price,
        raw.expiration_timestamps_secs,
        raw.chain_id,
    )


class TxSequencer:
    """
    Simulate first; submit only what the simulation accepts, then wait for the chain result.
    Every call records exactly one TxLog entry. Only on-chain outcomes are followed by a delay.
    """

    def __init__(self, client: RestClient, tx_log: TxLog, gas_amount: Tuple[int, int],
                 gas_price: Tuple[int, int], wait_timeout: int = 60, poll_interval: float = 1.0,
                 sleep=sleep_with_jitter, rng=random):
        self.client = client
        self.tx_log = tx_log
        self.gas_amount = gas_amount
        self.gas_price = gas_price
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.rng = rng

    async def build(self, wallet: Account, payload: TransactionPayload) -> RawTransaction:
        raw = await self.client.create_bcs_transaction(wallet, payload)
        return with_gas(raw, draw_gas_params(self.gas_amount, self.gas_price, self.rng))

    async def wait_for_result(self, tx_hash: str) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout
        while await self.client.transaction_pending(tx_hash):
            if loop.time() >= deadline:
                raise TimeoutError(f"transaction {tx_hash} still pending after {self.wait_timeout}s")
            await asyncio.sleep(self.poll_interval)
        return await self.client.transaction_by_hash(tx_hash)

    def _record(self, entry: TxLogEntry) -> TxLogEntry:
        self.tx_log.append(entry)
        line = (
            f"tx {entry.tx_type} {entry.tx_status} wallet={short(entry.wallet_address)} "
            f"hash={short(entry.hash)} vm={entry.vm_status or '-'} gas={entry.gas_used or '-'}"
        )
        if entry.tx_status == "success":
            log.info(line)
        else:
            log.warning(f"{line} err={entry.error}" if entry.error else line)
        return entry

    async def submit(self, wallet: Account, payload: TransactionPayload,
                     delay_range: Tuple[int, int], reason: str = "after tx") -> TxLogEntry:
        address = str(wallet.address())
        stage, tx_hash = SIMULATION, ""
        try:
            raw = await self.build(wallet, payload)
            result = (await self.client.simulate_transaction(raw, wallet))[0]
            if result.get("success"):
                stage = ON_CHAIN
                signed = SignedTransaction(raw, wallet.sign_transaction(raw))
                tx_hash = await self.client.submit_bcs_transaction(signed)
                log.info(f"submitted {short(tx_hash)} for {short(address)}")
                result = await self.wait_for_result(tx_hash)
        except Exception as e:
            self._record(TxLogEntry.from_error(address, e, tx_hash, tx_type=stage))
            raise

        entry = self._record(TxLogEntry.from_result(address, result, simulation=stage == SIMULATION))
        if stage == ON_CHAIN:
            await self.sleep(delay_range, reason, self.rng)
        return entry
