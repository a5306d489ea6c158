"""EIP-1559 fee estimation and escalation arithmetic."""

import logging
from dataclasses import dataclass
from typing import Optional

from .client import ChainClient
from .errors import BlockchainError, MissingChainField, TransientRPCFailure
from .resilience.retry import RetryConfig, with_backoff

logger = logging.getLogger(__name__)

GWEI = 10**9
DEFAULT_PRIORITY_FEE = 2 * GWEI  # Used when a transaction carries no tip
BASE_FEE_MULTIPLIER = 2  # Headroom for one base-fee doubling per wait window


@dataclass(frozen=True)
class FeeQuote:
    """A fee pair for one submission, in wei."""

    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    def __post_init__(self):
        if self.max_fee_per_gas < 0 or self.max_priority_fee_per_gas < 0:
            raise ValueError("Fees must be non-negative")

    def to_params(self) -> dict[str, int]:
        return {
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
        }


def bump_priority_fee(priority_fee: int, percentage: int) -> int:
    """Raise a priority fee by ``percentage``, rounding down to whole wei."""
    return priority_fee * (100 + percentage) // 100


def escalated_quote(
    base_fee: int,
    previous_priority_fee: Optional[int],
    percentage: int,
    default_priority_fee: int = DEFAULT_PRIORITY_FEE,
    previous_max_fee: Optional[int] = None,
) -> FeeQuote:
    """Compute the fee pair for the next escalation round.

    Args:
        base_fee: Current base fee from the latest block
        previous_priority_fee: Tip used by the previous submission, if any
        percentage: Tip increase per round
        default_priority_fee: Tip assumed when none was set
        previous_max_fee: Max fee of the previous submission, if any

    Returns:
        FeeQuote with the bumped tip and ``2 * base_fee + tip`` as max fee,
        never below ``previous_max_fee``
    """
    if previous_priority_fee is None:
        previous_priority_fee = default_priority_fee
    priority_fee = bump_priority_fee(previous_priority_fee, percentage)
    max_fee = BASE_FEE_MULTIPLIER * base_fee + priority_fee
    # A falling base fee must not lower the max fee of a replacement
    if previous_max_fee is not None:
        max_fee = max(max_fee, previous_max_fee)
    return FeeQuote(max_fee_per_gas=max_fee, max_priority_fee_per_gas=priority_fee)


class FeeEstimator:
    """Reads fee-market state from the chain, retrying each read."""

    def __init__(self, client: ChainClient, retry_config: Optional[RetryConfig] = None):
        self.client = client
        self.retry_config = retry_config or RetryConfig()

    async def estimate_fees(self) -> FeeQuote:
        """Ask the node for a recommended fee pair."""
        try:
            max_fee, priority_fee = await with_backoff(
                self.client.estimate_fee_market,
                config=self.retry_config,
                name="estimate_fee_market",
            )
        except BlockchainError:
            raise
        except Exception as e:
            raise TransientRPCFailure(
                f"failed to get max priority fee per gas: {e}",
                operation="estimate_fee_market",
            ) from e

        logger.info(f"max_fee_per_gas: {max_fee}, max_priority_fee_per_gas: {priority_fee}")
        return FeeQuote(max_fee_per_gas=max_fee, max_priority_fee_per_gas=priority_fee)

    async def base_fee(self) -> int:
        """Return the base fee of the latest block.

        Raises:
            TransientRPCFailure: The block could not be fetched
            MissingChainField: The block has no ``baseFeePerGas``
        """
        try:
            block = await with_backoff(
                self.client.get_latest_block,
                config=self.retry_config,
                name="get_latest_block",
            )
        except BlockchainError:
            raise
        except Exception as e:
            raise TransientRPCFailure(
                f"failed to get latest block: {e}", operation="get_latest_block"
            ) from e

        if block is None:
            raise TransientRPCFailure("latest block not found", operation="get_latest_block")

        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise MissingChainField("baseFeePerGas")
        return base_fee
