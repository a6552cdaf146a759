from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="COMMANDZONE_")

    app_name: str = "CommandZone"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/commandzone"

    scryfall_api_url: str = "https://api.scryfall.com"
    scryfall_user_agent: str = "CommandZone/1.0"
    catalog_timeout_seconds: float = 30.0

    # What happens when a commander is set while the Commander zone is occupied:
    # "displace" moves the old commander(s) to the fallback zone, "deny" refuses.
    commander_replacement: Literal["deny", "displace"] = "displace"
    fallback_zone_name: str = "Sideboard"


settings = Settings()


# =============================================================================
# DECK FORMAT CONSTANTS
# =============================================================================

DEFAULT_FORMAT = "commander"

# Zones seeded on every new deck, in display order
DEFAULT_ZONE_NAMES: tuple[str, ...] = (
    "Commander",
    "Creatures",
    "Instants",
    "Sorceries",
    "Artifacts",
    "Enchantments",
    "Planeswalkers",
    "Lands",
    "Maybe",
)

COMMANDER_ZONE_NAME = "Commander"

# A Commander zone never holds more than a partner pair
MAX_COMMANDERS = 2
