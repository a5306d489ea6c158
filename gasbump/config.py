"""Configuration for gasbump."""

from typing import TYPE_CHECKING, Optional

from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from .escalation import EscalationConfig


class Settings(BaseSettings):
    """Application settings."""

    # Node connection
    rpc_url: str = "http://localhost:8545"
    chain_id: int = 1
    private_key: Optional[str] = None
    request_timeout: float = 30.0  # Seconds per HTTP request

    # Gas escalation
    max_gas_bump_attempts: int = 3
    gas_bump_wait_seconds: float = 60.0
    gas_bump_percentage: int = 10
    resubmit_when_pending: bool = True

    # Read retries
    rpc_max_retries: int = 5
    rpc_initial_delay: float = 1.0  # Seconds, doubled after each failure

    # Monitoring
    metrics_port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def escalation_config(self) -> "EscalationConfig":
        """Build the escalation configuration from these settings."""
        from .escalation import EscalationConfig
        from .resilience.retry import RetryConfig

        return EscalationConfig(
            max_attempts=self.max_gas_bump_attempts,
            wait_seconds=self.gas_bump_wait_seconds,
            bump_percentage=self.gas_bump_percentage,
            resubmit_when_pending=self.resubmit_when_pending,
            retry=RetryConfig(
                max_retries=self.rpc_max_retries,
                initial_delay=self.rpc_initial_delay,
            ),
        )


settings = Settings()
