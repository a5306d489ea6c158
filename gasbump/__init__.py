"""gasbump: reliable EIP-1559 transaction submission with gas escalation."""

__version__ = "0.1.0"

from .client import ChainClient, Web3ChainClient
from .errors import BlockchainError, ErrorKind
from .escalation import EscalationConfig, EscalationSubmitter, submit_with_escalation
from .fees import FeeEstimator, FeeQuote
from .resilience.retry import RetryConfig, with_backoff

__all__ = [
    "ChainClient",
    "Web3ChainClient",
    "BlockchainError",
    "ErrorKind",
    "EscalationConfig",
    "EscalationSubmitter",
    "submit_with_escalation",
    "FeeEstimator",
    "FeeQuote",
    "RetryConfig",
    "with_backoff",
]
