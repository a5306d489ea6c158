"""Retried read accessors over a ``ChainClient``."""

from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from .client import ChainClient
from .errors import BlockchainError, TransientRPCFailure
from .resilience.retry import RetryConfig, with_backoff

T = TypeVar("T")


class ChainReader:
    """Idempotent chain reads with backoff.

    Each method retries the underlying call and raises
    ``TransientRPCFailure`` once the retries are used up.
    """

    def __init__(self, client: ChainClient, retry_config: Optional[RetryConfig] = None):
        self.client = client
        self.retry_config = retry_config or RetryConfig()

    async def _read(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await with_backoff(operation, config=self.retry_config, name=name)
        except BlockchainError:
            raise
        except Exception as e:
            raise TransientRPCFailure(f"failed to {name.replace('_', ' ')}: {e}", operation=name) from e

    async def get_gas_price(self) -> int:
        return await self._read("get_gas_price", self.client.get_gas_price)

    async def get_balance(self, address: str) -> int:
        return await self._read("get_balance", lambda: self.client.get_balance(address))

    async def get_block_number(self) -> int:
        return await self._read("get_block_number", self.client.get_block_number)

    async def get_transaction(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Fetch a transaction; ``None`` when the node does not know it."""
        return await self._read("get_transaction", lambda: self.client.get_transaction(tx_hash))

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Fetch a receipt; ``None`` while the transaction is unmined."""
        return await self._read(
            "get_transaction_receipt", lambda: self.client.get_transaction_receipt(tx_hash)
        )
