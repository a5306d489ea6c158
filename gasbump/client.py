"""Chain client interface and its web3.py implementation.

The escalation logic only talks to ``ChainClient``. Any RPC binding that
implements these coroutines can drive it; ``Web3ChainClient`` is the one
used in production.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from .errors import MissingChainField

logger = logging.getLogger(__name__)


class ChainClient(ABC):
    """Capabilities the submission layer needs from a node.

    Absent transactions, receipts and blocks are returned as ``None``.
    Any other failure is raised as the binding's own exception.
    """

    @abstractmethod
    async def send_transaction(self, params: Mapping[str, Any]) -> str:
        """Sign and broadcast a transaction, returning its hash. Not idempotent."""

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Fetch a transaction by hash."""

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Fetch a transaction receipt by hash."""

    @abstractmethod
    async def get_latest_block(self) -> Optional[Mapping[str, Any]]:
        """Fetch the latest block header."""

    @abstractmethod
    async def estimate_fee_market(self) -> tuple[int, int]:
        """Return a recommended ``(max_fee_per_gas, max_priority_fee_per_gas)``.

        Raises ``MissingChainField`` when the chain has no fee market.
        """

    @abstractmethod
    async def get_gas_price(self) -> int:
        """Return the legacy gas price."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Return the native balance of an address."""

    @abstractmethod
    async def get_block_number(self) -> int:
        """Return the latest block number."""


def get_address(private_key: str) -> str:
    """Derive the checksummed sender address for a private key."""
    return Account.from_key(private_key).address


def to_hex(value: Any) -> Optional[str]:
    """Render hashes and byte strings as ``0x`` hex; strings pass through."""
    if value is None or isinstance(value, str):
        return value
    return AsyncWeb3.to_hex(value)


class Web3ChainClient(ChainClient):
    """``ChainClient`` backed by ``AsyncWeb3`` and a local signing key."""

    def __init__(
        self,
        w3: AsyncWeb3,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
    ):
        """Initialize the client.

        Args:
            w3: Connected AsyncWeb3 instance
            private_key: Hex private key; required for sending
            chain_id: Chain ID to sign for (fetched from the node when omitted)
        """
        self.w3 = w3
        self.account = Account.from_key(private_key) if private_key else None
        self.chain_id = chain_id

    @classmethod
    def from_private_key(
        cls,
        rpc_url: str,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        request_timeout: float = 30.0,
    ) -> "Web3ChainClient":
        """Connect to ``rpc_url`` over HTTP."""
        w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout})
        )
        return cls(w3, private_key=private_key, chain_id=chain_id)

    @classmethod
    def from_settings(cls, settings) -> "Web3ChainClient":
        """Build a client from a ``Settings`` instance."""
        return cls.from_private_key(
            settings.rpc_url,
            private_key=settings.private_key,
            chain_id=settings.chain_id,
            request_timeout=settings.request_timeout,
        )

    @property
    def address(self) -> Optional[str]:
        return self.account.address if self.account else None

    async def send_transaction(self, params: Mapping[str, Any]) -> str:
        if self.account is None:
            raise ValueError("A private key is required to send transactions")

        tx = dict(params)
        tx.setdefault("from", self.account.address)
        tx.setdefault("type", 2)
        if "chainId" not in tx:
            tx["chainId"] = self.chain_id if self.chain_id is not None else await self.w3.eth.chain_id
        if "nonce" not in tx:
            tx["nonce"] = await self.w3.eth.get_transaction_count(self.account.address, "pending")
        if "gas" not in tx:
            tx["gas"] = await self.w3.eth.estimate_gas(tx)

        logger.debug(f"Signing tx nonce={tx['nonce']} chain_id={tx['chainId']} gas={tx['gas']}")
        signed = self.account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return to_hex(tx_hash)

    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        try:
            return await self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    async def get_latest_block(self) -> Optional[Mapping[str, Any]]:
        return await self.w3.eth.get_block("latest")

    async def estimate_fee_market(self) -> tuple[int, int]:
        # Same shape as web3's default EIP-1559 fill: 2 * base fee + tip
        priority_fee = await self.w3.eth.max_priority_fee
        block = await self.w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise MissingChainField("baseFeePerGas")
        return 2 * base_fee + priority_fee, priority_fee

    async def get_gas_price(self) -> int:
        return await self.w3.eth.gas_price

    async def get_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(AsyncWeb3.to_checksum_address(address))

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number
