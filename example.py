"""Example script sending a self-transfer with gas escalation."""

import asyncio
import logging

from gasbump import BlockchainError, Web3ChainClient, submit_with_escalation
from gasbump.chain import ChainReader
from gasbump.config import settings
from gasbump.monitoring import MetricsServer

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Send 1 wei to ourselves and wait for it to be mined."""
    if not settings.private_key:
        logger.error("PRIVATE_KEY must be set")
        return

    metrics = MetricsServer(port=settings.metrics_port)
    metrics.start()

    client = Web3ChainClient.from_settings(settings)
    reader = ChainReader(client)

    logger.info(f"RPC: {settings.rpc_url} (chain {settings.chain_id})")
    logger.info(f"Sender: {client.address}")
    logger.info(f"Block number: {await reader.get_block_number()}")
    logger.info(f"Balance: {await reader.get_balance(client.address)} wei")

    try:
        tx_hash = await submit_with_escalation(
            client,
            {"to": client.address, "value": 1},
            "self-transfer",
            settings.escalation_config(),
        )
        logger.info(f"Confirmed: {tx_hash}")
    except BlockchainError as e:
        logger.error(f"Submission ended with {e.kind.value}: {e}")
    finally:
        metrics.stop()


if __name__ == "__main__":
    asyncio.run(main())
