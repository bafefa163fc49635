"""
Configuration settings for the DeFi Event Generator.

Uses Pydantic Settings to load environment variables (and an optional `.env`
file) for the write credential, the store endpoint, logging, and the run
defaults for each generator preset.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, Literal, NamedTuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_PRIVATE_KEY = "0x" + "0" * 64
DEFAULT_RPC_URL = "https://mendoza.hoodi.arkiv.network/rpc"

PresetName = Literal["aave", "multi"]


class RunPreset(NamedTuple):
    """Positional run defaults bundled with a catalog."""

    catalog: str
    count: int
    delay_ms: int


PRESETS: Dict[str, RunPreset] = {
    "aave": RunPreset(catalog="aave", count=50, delay_ms=3000),
    "multi": RunPreset(catalog="multi", count=100, delay_ms=2000),
}


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing before a run can start."""


class Settings(BaseSettings):
    # Store access
    private_key: str = Field("", alias="PRIVATE_KEY")
    rpc_url: str = Field(DEFAULT_RPC_URL, alias="RPC_URL")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Generator defaults
    generator_preset: PresetName = Field("aave", alias="GENERATOR_PRESET")
    entity_ttl_blocks: int = Field(10_000, alias="ENTITY_TTL_BLOCKS", gt=0)
    write_timeout_seconds: float = Field(30.0, alias="WRITE_TIMEOUT_SECONDS", gt=0)
    write_retries: int = Field(0, alias="WRITE_RETRIES", ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def has_credential(self) -> bool:
        key = self.private_key.strip()
        return bool(key) and key.lower() != PLACEHOLDER_PRIVATE_KEY

    def require_credential(self) -> str:
        """
        Return the private key, or raise if it is unset or still the placeholder.
        """
        if not self.has_credential:
            raise ConfigurationError("Please set your PRIVATE_KEY in the environment or .env file")
        return self.private_key.strip()

    def masked_private_key(self) -> str:
        if not self.has_credential:
            return "<unset>"
        key = self.private_key.strip()
        return f"{key[:6]}...{key[-4:]}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


def resolve_preset(name: str) -> RunPreset:
    if name not in PRESETS:
        raise ValueError(f"Unknown preset '{name}'. Available: {', '.join(sorted(PRESETS))}")
    return PRESETS[name]


__all__ = [
    "ConfigurationError",
    "DEFAULT_RPC_URL",
    "PLACEHOLDER_PRIVATE_KEY",
    "PRESETS",
    "RunPreset",
    "Settings",
    "get_settings",
    "resolve_preset",
]
