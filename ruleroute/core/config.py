"""Configuration management for the rule routing engine.

Every option is validated and clamped once here, at the boundary. Scoring
and selection code downstream trusts the values it receives.

Environment variables use the ``RULEROUTE_`` prefix, e.g.::

    RULEROUTE_ROUTING_MODE=keyword
    RULEROUTE_BUNDLE_TOKEN_BUDGET_TOTAL=6000
"""

import math
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ruleroute.core.exceptions import ValidationError
from ruleroute.core.models import RoutingConfig, RoutingMode, SelectionMode


# =============================================================================
# Numeric helpers
# =============================================================================


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def clamp_int(value: Any, fallback: int, minimum: int, maximum: int) -> int:
    """Round half up and clamp to [minimum, maximum]; non-numeric -> fallback."""
    number = _to_float(value)
    if number is None:
        return fallback
    return min(max(math.floor(number + 0.5), minimum), maximum)


def clamp_float(value: Any, fallback: float, minimum: float, maximum: float) -> float:
    """Clamp to [minimum, maximum]; non-numeric -> fallback."""
    number = _to_float(value)
    if number is None:
        return fallback
    return min(max(number, minimum), maximum)


# =============================================================================
# Settings
# =============================================================================

TOTAL_BUDGET_MIN = 100
TOTAL_BUDGET_MAX = 50000


class RuleEngineSettings(BaseSettings):
    """Recognized options for rule selection, routing and bundle budgets."""

    model_config = SettingsConfigDict(
        env_prefix="RULEROUTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Selection
    selection_mode: SelectionMode = SelectionMode.SCORE
    recommend_max: int = 5
    warn_threshold: int = 10
    summary_enabled: bool = True
    summary_min_count: int = 8

    # Budget split
    bundle_token_budget_total: int = 3000
    bundle_budget_global_workspace_pct: float = 0.15
    bundle_budget_global_user_pct: float = 0.1

    # Routing
    routing_enabled: bool = True
    routing_mode: RoutingMode = RoutingMode.HYBRID
    routing_top_k: int = 5
    routing_min_score: float = 0.2

    # Diagnostics
    include_routing_debug: bool = False
    log_level: str = "INFO"

    # Seed file for the default in-memory store (HTTP app)
    rules_file: Optional[str] = None

    @field_validator("recommend_max", "warn_threshold", "summary_min_count", mode="before")
    @classmethod
    def _clamp_counts(cls, value: Any, info: ValidationInfo) -> int:
        return clamp_int(value, cls.model_fields[info.field_name].default, 1, 1000)

    @field_validator("bundle_token_budget_total", mode="before")
    @classmethod
    def _clamp_total_budget(cls, value: Any) -> int:
        return clamp_int(value, 3000, TOTAL_BUDGET_MIN, TOTAL_BUDGET_MAX)

    @field_validator(
        "bundle_budget_global_workspace_pct",
        "bundle_budget_global_user_pct",
        "routing_min_score",
        mode="before",
    )
    @classmethod
    def _clamp_fractions(cls, value: Any, info: ValidationInfo) -> float:
        return clamp_float(value, cls.model_fields[info.field_name].default, 0.0, 1.0)

    @field_validator("routing_top_k", mode="before")
    @classmethod
    def _clamp_top_k(cls, value: Any) -> int:
        return clamp_int(value, 5, 1, 100)

    @field_validator("selection_mode", mode="before")
    @classmethod
    def _known_selection_mode(cls, value: Any) -> SelectionMode:
        if isinstance(value, SelectionMode):
            return value
        try:
            return SelectionMode(str(value).strip().lower())
        except ValueError:
            return SelectionMode.SCORE

    @field_validator("routing_mode", mode="before")
    @classmethod
    def _known_routing_mode(cls, value: Any) -> RoutingMode:
        if isinstance(value, RoutingMode):
            return value
        try:
            return RoutingMode(str(value).strip().lower())
        except ValueError:
            return RoutingMode.HYBRID

    def routing_config(self, query: Optional[str] = None) -> RoutingConfig:
        """Routing parameters shared by both scope selections."""
        return RoutingConfig(
            enabled=self.routing_enabled,
            mode=self.routing_mode,
            query=(query or "").strip(),
            top_k=self.routing_top_k,
            min_score=self.routing_min_score,
        )


@lru_cache()
def get_settings() -> RuleEngineSettings:
    """Get cached settings instance."""
    return RuleEngineSettings()


def load_settings(path: Union[str, Path]) -> RuleEngineSettings:
    """Load settings overrides from YAML on top of env/defaults."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValidationError(
            "settings file must contain a mapping",
            context={"path": str(path)},
        )
    return RuleEngineSettings(**data)
