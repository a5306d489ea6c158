"""Pytest configuration and fixtures for gasbump tests."""

import asyncio
import itertools
from typing import Any, Mapping, Optional

import pytest

from gasbump.client import ChainClient
from gasbump.escalation import EscalationConfig
from gasbump.resilience.retry import RetryConfig


class FakeChainClient(ChainClient):
    """In-memory ChainClient.

    ``receipts`` is consumed one entry per receipt lookup; once empty every
    lookup returns None. ``base_fees`` likewise feeds one base fee per latest
    block read, after which ``base_fee`` sticks. ``failures`` maps a method name to exceptions raised
    (in order) before that method starts succeeding.
    """

    def __init__(
        self,
        base_fee: Optional[int] = 100,
        fee_market: tuple[int, int] = (3_000_000_200, 3_000_000_000),
        receipts: Optional[list] = None,
        failures: Optional[dict[str, list[Exception]]] = None,
        send_failures: Optional[dict[int, Exception]] = None,
        known_transactions: bool = True,
        base_fees: Optional[list[int]] = None,
    ):
        self.base_fee = base_fee
        self.base_fees = list(base_fees or [])
        self.fee_market = fee_market
        self.receipts = list(receipts or [])
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.send_failures = send_failures or {}
        self.known_transactions = known_transactions
        self.sent: list[dict[str, Any]] = []
        self.receipt_lookups: list[str] = []
        self.calls: list[str] = []
        self._hashes = (f"0x{n:064x}" for n in itertools.count(1))
        self._transactions: dict[str, dict[str, Any]] = {}

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        pending = self.failures.get(name)
        if pending:
            raise pending.pop(0)

    async def send_transaction(self, params: Mapping[str, Any]) -> str:
        self.calls.append("send_transaction")
        index = len(self.sent)
        self.sent.append(dict(params))
        if index in self.send_failures:
            raise self.send_failures[index]
        tx_hash = next(self._hashes)
        tx = {"hash": tx_hash, "nonce": params.get("nonce", 7), "gas": 21000, "chainId": 1}
        tx.update(params)
        tx["input"] = params.get("data", "0x")
        self._transactions[tx_hash] = tx
        return tx_hash

    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        self._maybe_fail("get_transaction")
        if not self.known_transactions:
            return None
        return self._transactions.get(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        self._maybe_fail("get_transaction_receipt")
        self.receipt_lookups.append(tx_hash)
        if not self.receipts:
            return None
        receipt = self.receipts.pop(0)
        if receipt is None:
            return None
        return {"transactionHash": tx_hash, **receipt}

    async def get_latest_block(self) -> Optional[Mapping[str, Any]]:
        self._maybe_fail("get_latest_block")
        if self.base_fees:
            self.base_fee = self.base_fees.pop(0)
        block = {"number": 1}
        if self.base_fee is not None:
            block["baseFeePerGas"] = self.base_fee
        return block

    async def estimate_fee_market(self) -> tuple[int, int]:
        self._maybe_fail("estimate_fee_market")
        return self.fee_market

    async def get_gas_price(self) -> int:
        self._maybe_fail("get_gas_price")
        return 42

    async def get_balance(self, address: str) -> int:
        self._maybe_fail("get_balance")
        return 10**18

    async def get_block_number(self) -> int:
        self._maybe_fail("get_block_number")
        return 123


@pytest.fixture(autouse=True)
def use_test_environment(monkeypatch):
    """Ensure all tests use test environment variables."""
    monkeypatch.setenv("RPC_URL", "http://localhost:8545")
    monkeypatch.setenv("CHAIN_ID", "1337")
    monkeypatch.delenv("PRIVATE_KEY", raising=False)


@pytest.fixture
def sleeps(monkeypatch):
    """Replace asyncio.sleep with a recorder so nothing actually waits."""
    delays: list[float] = []

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


@pytest.fixture
def make_client():
    """Factory for FakeChainClient with custom behavior."""
    return FakeChainClient


@pytest.fixture
def fake_client():
    """Fake client whose receipts never appear."""
    return FakeChainClient()


@pytest.fixture
def fast_config():
    """Escalation config with compressed timings."""
    return EscalationConfig(
        max_attempts=3,
        wait_seconds=0,
        retry=RetryConfig(max_retries=5, initial_delay=0.0),
    )
