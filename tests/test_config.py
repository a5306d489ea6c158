"""Tests for settings."""

from gasbump.config import Settings
from gasbump.escalation import EscalationConfig


class TestSettings:
    """Test Settings loading."""

    def test_reads_environment(self):
        """Test values come from environment variables."""
        settings = Settings()
        assert settings.rpc_url == "http://localhost:8545"
        assert settings.chain_id == 1337
        assert settings.private_key is None

    def test_defaults(self):
        """Test escalation defaults."""
        settings = Settings()
        assert settings.max_gas_bump_attempts == 3
        assert settings.gas_bump_wait_seconds == 60.0
        assert settings.gas_bump_percentage == 10
        assert settings.rpc_max_retries == 5
        assert settings.rpc_initial_delay == 1.0

    def test_escalation_config(self, monkeypatch):
        """Test overrides flow into EscalationConfig."""
        monkeypatch.setenv("MAX_GAS_BUMP_ATTEMPTS", "5")
        monkeypatch.setenv("GAS_BUMP_WAIT_SECONDS", "12")
        monkeypatch.setenv("RPC_MAX_RETRIES", "2")

        config = Settings().escalation_config()

        assert isinstance(config, EscalationConfig)
        assert config.max_attempts == 5
        assert config.wait_seconds == 12.0
        assert config.bump_percentage == 10
        assert config.retry.max_retries == 2
