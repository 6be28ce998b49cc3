"""
Application settings and configuration management.

This module handles all environment variables, network budgets, and relay
configuration using Pydantic settings management for type safety and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from site_inspector.models.schemas import RelayEndpoint


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Fixed priority order; relays are only consulted once the direct request fails.
DEFAULT_RELAY_ENDPOINTS: tuple[RelayEndpoint, ...] = (
    RelayEndpoint(
        name="allorigins",
        base_url="https://api.allorigins.win/get",
        param="url",
        response_format="json",
        json_field="contents",
    ),
    RelayEndpoint(
        name="corsproxy",
        base_url="https://corsproxy.io/",
        param="url",
    ),
    RelayEndpoint(
        name="codetabs",
        base_url="https://api.codetabs.com/v1/proxy",
        param="quest",
    ),
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Budgets are expressed in seconds. The retrieval budget is a sub-budget
    of the overall pipeline timeout and is clamped to it on load.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Application Configuration
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Retrieval
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="USER_AGENT")
    request_timeout_seconds: float = Field(default=8.0, alias="REQUEST_TIMEOUT_SECONDS")
    retrieval_budget_seconds: float = Field(default=20.0, alias="RETRIEVAL_BUDGET_SECONDS")
    max_retrieval_attempts: int = Field(default=4, alias="MAX_RETRIEVAL_ATTEMPTS")
    relay_backoff_seconds: float = Field(default=0.5, alias="RELAY_BACKOFF_SECONDS")
    relay_endpoints: tuple[RelayEndpoint, ...] = Field(
        default=DEFAULT_RELAY_ENDPOINTS,
        alias="RELAY_ENDPOINTS",
    )

    # Pipeline
    pipeline_timeout_seconds: float = Field(default=30.0, alias="PIPELINE_TIMEOUT_SECONDS")
    max_components: int = Field(default=50, alias="MAX_COMPONENTS")
    max_linked_stylesheets: int = Field(default=5, alias="MAX_LINKED_STYLESHEETS")

    @field_validator(
        "request_timeout_seconds",
        "retrieval_budget_seconds",
        "pipeline_timeout_seconds",
        "relay_backoff_seconds",
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Reject negative budgets."""
        if v < 0:
            raise ValueError("Timeouts and backoff must not be negative")
        return v

    @field_validator("max_retrieval_attempts", "max_components")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Caps must allow at least one item."""
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @property
    def effective_retrieval_budget(self) -> float:
        """Retrieval sub-budget, never larger than the pipeline budget."""
        return min(self.retrieval_budget_seconds, self.pipeline_timeout_seconds)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
