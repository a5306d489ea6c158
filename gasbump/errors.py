"""Error taxonomy for transaction submission.

Every failure surfaced by this package is a ``BlockchainError`` subclass
carrying one ``ErrorKind``, so callers can branch on either the class or
the kind.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    TRANSIENT_RPC_FAILURE = "TRANSIENT_RPC_FAILURE"  # Read call failed after retries
    SUBMISSION_FAILURE = "SUBMISSION_FAILURE"  # Send or re-send rejected
    NOT_FOUND_AFTER_ACCEPT = "NOT_FOUND_AFTER_ACCEPT"  # Accepted tx not visible
    ESCALATION_EXHAUSTED = "ESCALATION_EXHAUSTED"  # Stopped waiting for a receipt
    REVERTED = "REVERTED"  # Receipt with failure status
    MISSING_CHAIN_FIELD = "MISSING_CHAIN_FIELD"  # Block lacks a fee-market field
    UNKNOWN_RECEIPT_STATUS = "UNKNOWN_RECEIPT_STATUS"  # Receipt without a status


class BlockchainError(Exception):
    """Base class for all submission errors."""

    kind: ErrorKind

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class TransientRPCFailure(BlockchainError):
    """An idempotent read kept failing after every backoff retry."""

    kind = ErrorKind.TRANSIENT_RPC_FAILURE

    def __init__(self, message: str = "", operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class SubmissionFailure(BlockchainError):
    """The node rejected a send or a replacement send. Never retried."""

    kind = ErrorKind.SUBMISSION_FAILURE

    def __init__(self, message: str = "", tx_name: str = ""):
        super().__init__(message)
        self.tx_name = tx_name


class NotFoundAfterAccept(BlockchainError):
    """The node returned a hash but cannot find the transaction by it."""

    kind = ErrorKind.NOT_FOUND_AFTER_ACCEPT

    def __init__(self, tx_hash: str):
        super().__init__(f"Transaction not found: {tx_hash}")
        self.tx_hash = tx_hash


class EscalationExhausted(BlockchainError):
    """No receipt was observed within the configured rounds.

    The transaction may still be mined later; this only means we stopped
    waiting for it.
    """

    kind = ErrorKind.ESCALATION_EXHAUSTED

    def __init__(self, tx_name: str = "", attempts: Optional[list] = None):
        super().__init__(f"Max tx retries reached for {tx_name}")
        self.tx_name = tx_name
        self.attempts = attempts or []

    @property
    def last_tx_hash(self) -> Optional[str]:
        """Hash of the last submitted replacement, if any."""
        if not self.attempts:
            return None
        return self.attempts[-1].tx_hash


class TransactionReverted(BlockchainError):
    """A receipt was found with a non-success status."""

    kind = ErrorKind.REVERTED

    def __init__(self, tx_hash: str, tx_name: str = "", receipt: Any = None):
        super().__init__(f"{tx_name} failed with tx hash: {tx_hash}")
        self.tx_hash = tx_hash
        self.tx_name = tx_name
        self.receipt = receipt


class MissingChainField(BlockchainError):
    """A block lacks a field the fee market requires."""

    kind = ErrorKind.MISSING_CHAIN_FIELD

    def __init__(self, field: str):
        super().__init__(f"Block field not found: {field}")
        self.field = field


class UnknownReceiptStatus(BlockchainError):
    """A receipt exists but its status cannot be read."""

    kind = ErrorKind.UNKNOWN_RECEIPT_STATUS

    def __init__(self, tx_hash: str, receipt: Any = None):
        super().__init__(f"Receipt for {tx_hash} has no readable status")
        self.tx_hash = tx_hash
        self.receipt = receipt
