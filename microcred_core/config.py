"""Registry configuration — environment-driven settings via pydantic-settings.

Every setting can be overridden with a ``MICROCRED_`` environment
variable (e.g. ``MICROCRED_MAX_SUPPLY=500``) or a ``.env`` file.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import DEFAULT_MAX_SUPPLY, FIRST_TOKEN_ID


class RegistrySettings(BaseSettings):
    """Deployment and runtime settings."""

    model_config = SettingsConfigDict(
        env_prefix="MICROCRED_",
        env_file=".env",
        extra="ignore",
    )

    # Registry
    max_supply: int = Field(default=DEFAULT_MAX_SUPPLY, ge=FIRST_TOKEN_ID)
    initial_block_height: int = Field(default=0, ge=0)

    # Observability
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    # Harness
    journal_path: Optional[str] = None


@lru_cache
def get_settings() -> RegistrySettings:
    return RegistrySettings()
