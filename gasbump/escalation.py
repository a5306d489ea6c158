"""Gas escalation for EIP-1559 transactions.

A transaction is sent once with the node's recommended fees, then replaced
round by round with the same nonce and a higher tip until a receipt shows
up or the round budget runs out:

    SENT -> ESCALATING(1..N) -> CONFIRMED | REVERTED | EXHAUSTED

Reads (base fee, transaction, receipt) go through the backoff retrier.
Sends never do: a failed send ends the sequence with ``SubmissionFailure``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from .chain import ChainReader
from .client import ChainClient, to_hex
from .errors import (
    BlockchainError,
    EscalationExhausted,
    NotFoundAfterAccept,
    SubmissionFailure,
    TransactionReverted,
    UnknownReceiptStatus,
)
from .fees import DEFAULT_PRIORITY_FEE, FeeEstimator, FeeQuote, escalated_quote
from .monitoring.metrics import (
    escalation_outcomes_total,
    escalation_rounds,
    escalations_in_flight,
    submissions_total,
)
from .resilience.retry import RetryConfig

logger = logging.getLogger(__name__)


class EscalationState(str, Enum):
    """Lifecycle of one escalation sequence."""

    BUILT = "BUILT"  # Constructed, fees unset
    SENT = "SENT"  # Initial send accepted
    ESCALATING = "ESCALATING"  # Bump, wait, check loop
    CONFIRMED = "CONFIRMED"  # Receipt with success status
    REVERTED = "REVERTED"  # Receipt with failure status
    EXHAUSTED = "EXHAUSTED"  # No receipt within max_attempts rounds
    FAILED = "FAILED"  # Ended by a submission, RPC or receipt error


class ReceiptOutcome(str, Enum):
    """Result of the receipt lookup at the end of a round."""

    ABSENT = "ABSENT"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNKNOWN = "UNKNOWN"  # Receipt present, status unreadable
    LOOKUP_FAILED = "LOOKUP_FAILED"  # Receipt read failed after every retry


@dataclass
class EscalationConfig:
    """Configuration for the escalation loop."""

    max_attempts: int = 3  # Replacement rounds
    wait_seconds: float = 60.0  # Wait between a send and its receipt check
    bump_percentage: int = 10  # Tip increase per round
    default_priority_fee: int = DEFAULT_PRIORITY_FEE
    resubmit_when_pending: bool = True  # False skips bumps while still priced in
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be non-negative")
        if self.wait_seconds < 0:
            raise ValueError("wait_seconds must be non-negative")
        if self.bump_percentage < 0:
            raise ValueError("bump_percentage must be non-negative")


@dataclass(frozen=True)
class Attempt:
    """One escalation round."""

    number: int
    quote: FeeQuote
    tx_hash: str
    outcome: ReceiptOutcome
    resubmitted: bool = True


@dataclass
class PendingTransaction:
    """The logical transaction being escalated.

    ``nonce`` and the call payload never change; only the fee pair moves,
    and only upwards.
    """

    tx_hash: str
    nonce: int
    to: Optional[str]
    data: str
    value: int = 0
    gas: Optional[int] = None
    chain_id: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    access_list: list = field(default_factory=list)
    attempt: int = 0
    attempts: list[Attempt] = field(default_factory=list)
    state: EscalationState = EscalationState.SENT

    @classmethod
    def from_transaction(
        cls, tx: Mapping[str, Any], tx_hash: Optional[str] = None
    ) -> "PendingTransaction":
        """Build from a transaction as returned by ``eth_getTransactionByHash``."""
        return cls(
            tx_hash=tx_hash or to_hex(tx["hash"]),
            nonce=tx["nonce"],
            to=tx.get("to"),
            data=to_hex(tx.get("input") or "0x"),
            value=tx.get("value", 0),
            gas=tx.get("gas"),
            chain_id=tx.get("chainId"),
            max_fee_per_gas=tx.get("maxFeePerGas"),
            max_priority_fee_per_gas=tx.get("maxPriorityFeePerGas"),
            access_list=[dict(entry) for entry in tx.get("accessList") or []],
        )

    @property
    def quote(self) -> Optional[FeeQuote]:
        if self.max_fee_per_gas is None or self.max_priority_fee_per_gas is None:
            return None
        return FeeQuote(self.max_fee_per_gas, self.max_priority_fee_per_gas)

    def covers(self, base_fee: int) -> bool:
        """Whether the current fee pair can still be included at ``base_fee``."""
        quote = self.quote
        if quote is None:
            return False
        return quote.max_fee_per_gas >= base_fee + quote.max_priority_fee_per_gas

    def apply_quote(self, quote: FeeQuote) -> None:
        """Replace the fee pair; fees may only go up."""
        if self.max_fee_per_gas is not None and quote.max_fee_per_gas < self.max_fee_per_gas:
            raise ValueError(
                f"max_fee_per_gas would decrease: {self.max_fee_per_gas} -> {quote.max_fee_per_gas}"
            )
        if (
            self.max_priority_fee_per_gas is not None
            and quote.max_priority_fee_per_gas < self.max_priority_fee_per_gas
        ):
            raise ValueError(
                "max_priority_fee_per_gas would decrease: "
                f"{self.max_priority_fee_per_gas} -> {quote.max_priority_fee_per_gas}"
            )
        self.max_fee_per_gas = quote.max_fee_per_gas
        self.max_priority_fee_per_gas = quote.max_priority_fee_per_gas

    def record(self, attempt: Attempt) -> None:
        self.attempts.append(attempt)
        self.attempt = attempt.number

    def to_params(self) -> dict[str, Any]:
        """Parameters for a replacement send with the unchanged nonce."""
        params: dict[str, Any] = {
            "type": 2,
            "nonce": self.nonce,
            "data": self.data,
            "value": self.value,
        }
        if self.to is not None:
            params["to"] = self.to
        if self.gas is not None:
            params["gas"] = self.gas
        if self.chain_id is not None:
            params["chainId"] = self.chain_id
        if self.access_list:
            params["accessList"] = self.access_list
        if self.quote is not None:
            params.update(self.quote.to_params())
        return params


def receipt_outcome(receipt: Optional[Mapping[str, Any]]) -> ReceiptOutcome:
    """Classify a receipt lookup result."""
    if receipt is None:
        return ReceiptOutcome.ABSENT
    try:
        status = int(receipt.get("status"))
    except (TypeError, ValueError):
        return ReceiptOutcome.UNKNOWN
    return ReceiptOutcome.SUCCESS if status == 1 else ReceiptOutcome.FAILURE


class EscalationSubmitter:
    """Sends a transaction and escalates its fees until it is mined.

    Usage:
        submitter = EscalationSubmitter(client)
        tx_hash = await submitter.submit({"to": recipient, "value": 1}, "transfer")

    One submitter can run many sequences concurrently; each sequence owns
    its ``PendingTransaction``. Nonce allocation across concurrent
    sequences is up to the caller.
    """

    def __init__(self, client: ChainClient, config: Optional[EscalationConfig] = None):
        """Initialize submitter.

        Args:
            client: Chain client used for every read and send
            config: Escalation configuration
        """
        self.client = client
        self.config = config or EscalationConfig()
        self.fees = FeeEstimator(client, self.config.retry)
        self.reader = ChainReader(client, self.config.retry)

    async def submit(self, tx_params: Mapping[str, Any], name: str) -> str:
        """Send a transaction with recommended fees, then escalate it.

        Args:
            tx_params: Transaction fields (``to``, ``data``, ``value``, ...)
            name: Label used in logs and errors

        Returns:
            Hash of the confirmed transaction

        Raises:
            SubmissionFailure: The initial send or a replacement was rejected
            NotFoundAfterAccept: The accepted transaction could not be fetched
            TransactionReverted: The transaction was mined and reverted
            EscalationExhausted: No receipt within ``max_attempts`` rounds
            TransientRPCFailure: A read failed after every retry
            MissingChainField: The chain has no base fee
            UnknownReceiptStatus: A receipt had no readable status
        """
        logger.debug(f"{name}: {EscalationState.BUILT.value}")
        quote = await self.fees.estimate_fees()
        params = {**tx_params, **quote.to_params()}

        try:
            tx_hash = await self.client.send_transaction(params)
        except Exception as e:
            submissions_total.inc(kind="initial", status="rejected")
            logger.error(f"{name} failed with error: {e}")
            raise SubmissionFailure(f"{name} failed with error: {e}", tx_name=name) from e

        submissions_total.inc(kind="initial", status="accepted")
        logger.info(f"{name} tx hash: {tx_hash}")

        tx = await self.reader.get_transaction(tx_hash)
        if tx is None:
            raise NotFoundAfterAccept(tx_hash)

        pending = PendingTransaction.from_transaction(tx, tx_hash=tx_hash)
        return await self.escalate(pending, name)

    async def escalate(self, pending: PendingTransaction, name: str) -> str:
        """Run the bump, wait, check loop for an already sent transaction."""
        escalations_in_flight.inc()
        try:
            tx_hash = await self._run(pending, name)
        except Exception as e:
            if pending.state not in (EscalationState.REVERTED, EscalationState.EXHAUSTED):
                pending.state = EscalationState.FAILED
            if isinstance(e, BlockchainError):
                outcome = e.kind.value.lower()
            else:
                outcome = "error"
                logger.error(f"{name} escalation stopped by unexpected error: {e!r}")
            escalation_outcomes_total.inc(outcome=outcome)
            raise
        else:
            escalation_outcomes_total.inc(outcome="confirmed")
            return tx_hash
        finally:
            escalations_in_flight.dec()
            escalation_rounds.observe(pending.attempt)

    async def _run(self, pending: PendingTransaction, name: str) -> str:
        config = self.config
        pending.state = EscalationState.ESCALATING

        while pending.attempt < config.max_attempts:
            number = pending.attempt + 1
            base_fee = await self.fees.base_fee()

            resubmit = config.resubmit_when_pending or not pending.covers(base_fee)
            if resubmit:
                quote = escalated_quote(
                    base_fee,
                    pending.max_priority_fee_per_gas,
                    config.bump_percentage,
                    config.default_priority_fee,
                    previous_max_fee=pending.max_fee_per_gas,
                )
                pending.apply_quote(quote)
                logger.info(
                    f"Bumping gas for {name} tx attempt: {number} with new "
                    f"max_fee_per_gas: {quote.max_fee_per_gas}, new "
                    f"max_priority_fee_per_gas: {quote.max_priority_fee_per_gas}"
                )
                pending.tx_hash = await self._resubmit(pending, name)
            else:
                quote = pending.quote
                logger.info(
                    f"{name} tx {pending.tx_hash} still covers base fee {base_fee}, "
                    f"waiting without resubmitting (attempt {number})"
                )

            await asyncio.sleep(config.wait_seconds)

            try:
                receipt = await self.reader.get_transaction_receipt(pending.tx_hash)
            except BlockchainError:
                outcome = ReceiptOutcome.LOOKUP_FAILED
                pending.record(Attempt(number, quote, pending.tx_hash, outcome, resubmit))
                raise
            outcome = receipt_outcome(receipt)
            pending.record(Attempt(number, quote, pending.tx_hash, outcome, resubmit))

            if outcome is ReceiptOutcome.ABSENT:
                logger.info(f"No receipt yet for {name} tx {pending.tx_hash}")
                continue

            tx_hash = to_hex(receipt.get("transactionHash")) or pending.tx_hash
            if outcome is ReceiptOutcome.UNKNOWN:
                logger.error(f"{name} receipt for {tx_hash} has no readable status")
                raise UnknownReceiptStatus(tx_hash, receipt)
            if outcome is ReceiptOutcome.FAILURE:
                pending.state = EscalationState.REVERTED
                logger.error(f"{name} failed with tx hash: {tx_hash}")
                raise TransactionReverted(tx_hash, tx_name=name, receipt=receipt)

            pending.state = EscalationState.CONFIRMED
            logger.info(f"{name} confirmed with tx hash: {tx_hash}")
            return tx_hash

        pending.state = EscalationState.EXHAUSTED
        logger.error(f"Max tx retries reached for {name} after {pending.attempt} attempts")
        raise EscalationExhausted(name, list(pending.attempts))

    async def _resubmit(self, pending: PendingTransaction, name: str) -> str:
        try:
            tx_hash = await self.client.send_transaction(pending.to_params())
        except Exception as e:
            submissions_total.inc(kind="replacement", status="rejected")
            logger.error(f"{name} re-submission failed with error: {e}")
            raise SubmissionFailure(
                f"{name} re-submission failed with error: {e}", tx_name=name
            ) from e

        submissions_total.inc(kind="replacement", status="accepted")
        logger.info(f"{name} replacement tx hash: {tx_hash}")
        return tx_hash


async def submit_with_escalation(
    client: ChainClient,
    tx_params: Mapping[str, Any],
    name: str,
    config: Optional[EscalationConfig] = None,
) -> str:
    """Send ``tx_params`` and escalate its fees until it is mined."""
    return await EscalationSubmitter(client, config).submit(tx_params, name)
