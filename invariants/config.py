"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Checker settings loaded from environment variables and an env file."""

    model_config = SettingsConfigDict(
        env_prefix="INVARIANTS_",
        env_file="mainnet.env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ledger (events) REST API
    events_api: str = ""

    # Chain
    chain_id: int = 314
    lotus_archive_addr: str = ""
    lotus_archive_token: str = ""
    lotus_private_addr: str = ""
    lotus_private_token: str = ""

    # Termination estimator
    ado_addr: str = "https://ado.glif.link/rpc/v0"

    # Pool contracts
    infinity_pool_address: str = ""
    agent_factory_address: str = ""
    ifil_address: str = ""

    # Transport
    http_timeout_seconds: float = 60.0
    rpc_timeout_seconds: float = 120.0

    def lotus_endpoint(self, *, archive: bool) -> tuple[str, str]:
        """Return the (address, token) pair for the selected Lotus node."""
        if archive:
            return self.lotus_archive_addr, self.lotus_archive_token
        return self.lotus_private_addr, self.lotus_private_token


def load_settings(config: str | None = None) -> Settings:
    """Build settings reading ``<config>.env`` instead of the default env file."""
    if not config:
        return Settings()
    env_file = config if config.endswith(".env") else f"{config}.env"
    return Settings(_env_file=env_file)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
