"""Candela configuration management."""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("candela.config")

PRODUCTION = "production"


class CandelaSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Discord
    token: Optional[str] = Field(default=None, description="Discord bot token")

    # Routing — production serves every guild except the test guild,
    # any other mode serves only the test guild
    env: str = Field(default="development", description="Runtime mode ('production' or anything else)")
    test_guild: Optional[int] = Field(default=None, description="Designated test guild ID")

    # Control channel
    channel_name: str = Field(default="gym-membership", description="Reserved control channel name")
    history_limit: int = Field(default=100, ge=1, description="Messages scanned for the welcome check")
    confirm_by_dm: bool = Field(default=True, description="DM members after (un)subscribing")

    # Logging
    log_file: str = Field(default="~/candela.log", description="Log file path")
    debug: bool = Field(default=False, description="Debug mode")

    model_config = {"env_prefix": "CANDELA_", "env_file": ".env", "extra": "ignore"}

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() == PRODUCTION


@dataclass(frozen=True)
class CommunityGate:
    """Decides which guilds the control logic is active in.

    Exactly one of {production guilds} or {the test guild} is routed:
    production serves every guild except the test guild, test mode
    serves the test guild alone.
    """

    production: bool
    test_guild: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: CandelaSettings) -> "CommunityGate":
        return cls(production=settings.is_production, test_guild=settings.test_guild)

    def allows(self, guild) -> bool:
        """Return True if events from ``guild`` (object or ID) should be handled."""
        if guild is None:
            return False
        guild_id = guild if isinstance(guild, int) else getattr(guild, "id", None)
        is_test_guild = self.test_guild is not None and guild_id == self.test_guild
        return self.production != is_test_guild


def load_settings() -> CandelaSettings:
    """Load settings from environment."""
    settings = CandelaSettings()

    if not settings.is_production and settings.test_guild is None:
        logger.warning(
            f"Running in '{settings.env}' mode without CANDELA_TEST_GUILD — "
            "no guild will be routed."
        )

    return settings
