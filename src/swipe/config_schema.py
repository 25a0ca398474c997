"""Pydantic configuration schema for the swipe inbox core.

This module defines the configuration schema that mirrors config.yaml.
Every section has defaults, so an empty file (or no file at all, for
library use) yields a working configuration.

Usage:
    from swipe.config_schema import AppConfig

    config = AppConfig(**yaml_data)
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Current schema version - increment when adding new required fields
CURRENT_SCHEMA_VERSION = 1


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level",
    )
    json_output: bool = Field(
        default=True,
        description="Emit JSON lines (False for human-readable console output)",
    )


class BufferConfig(BaseModel):
    """Adaptive buffer windowing configuration."""

    window_size: int = Field(
        default=30,
        ge=1,
        le=500,
        description="Max backing-queue entries projected into the active window",
    )
    trigger_threshold: int = Field(
        default=10,
        ge=0,
        description="Refill when the active window holds this many items or fewer",
    )
    batch_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Number of items a refill source should fetch per call",
    )
    group_threshold: int = Field(
        default=5,
        ge=2,
        description="Same-domain items in the window needed to collapse into a group",
    )

    @model_validator(mode="after")
    def validate_threshold_below_window(self) -> "BufferConfig":
        """A trigger at or above the window size would refill on every consume."""
        if self.trigger_threshold >= self.window_size:
            raise ValueError(
                f"trigger_threshold ({self.trigger_threshold}) must be smaller than "
                f"window_size ({self.window_size})"
            )
        return self


class ActionsConfig(BaseModel):
    """Action/undo orchestrator configuration."""

    undo_window_seconds: float = Field(
        default=30.0,
        gt=0,
        le=3600,
        description="How long an action stays reversible (seconds)",
    )
    unsubscribe_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        le=30,
        description="Timeout for each HTTP unsubscribe request",
    )
    unsubscribe_retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        le=10,
        description="Pause before the single HTTP unsubscribe retry",
    )
    provider_rate: float = Field(
        default=10.0,
        gt=0,
        description="Provider calls per second",
    )
    provider_capacity: int = Field(
        default=10,
        ge=1,
        description="Provider call burst capacity",
    )


class SafetyConfig(BaseModel):
    """Extensions to the built-in domain trust tiers.

    Entries are added to the built-in lists; built-in entries cannot be
    removed from configuration.
    """

    extra_never_domains: list[str] = Field(
        default_factory=list,
        description="Domains that must never be blocked or nuked",
    )
    extra_caution_domains: list[str] = Field(
        default_factory=list,
        description="Domains that require explicit confirmation",
    )
    extra_free_domains: list[str] = Field(
        default_factory=list,
        description="Domains that are freely actionable",
    )

    @field_validator("extra_never_domains", "extra_caution_domains", "extra_free_domains")
    @classmethod
    def normalize_domains(cls, v: list[str]) -> list[str]:
        """Lowercase domains and strip leading '@' / '*.' wildcards."""
        normalized = []
        for domain in v:
            cleaned = domain.strip().lower().lstrip("@")
            if cleaned.startswith("*."):
                cleaned = cleaned[2:]
            if not cleaned or "@" in cleaned or " " in cleaned:
                raise ValueError(f"Invalid domain entry: {domain!r}")
            normalized.append(cleaned)
        return normalized


class AppConfig(BaseModel):
    """Root configuration model."""

    schema_version: int = Field(
        default=CURRENT_SCHEMA_VERSION,
        ge=1,
        description="Config schema version",
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    buffer: BufferConfig = Field(default_factory=BufferConfig)
    actions: ActionsConfig = Field(default_factory=ActionsConfig)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
