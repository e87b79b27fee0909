"""
API dependencies.

Lazy singletons for the rule service, overridable through FastAPI's
dependency_overrides in tests.
"""

from typing import Optional

from ruleroute.core.config import get_settings
from ruleroute.core.logging_config import get_logger
from ruleroute.rules.service import RuleBundleService
from ruleroute.rules.store import InMemoryRuleStore

logger = get_logger(__name__)

_rule_service: Optional[RuleBundleService] = None


def get_rule_service() -> RuleBundleService:
    """Get or create the rule service (in-memory store, optionally seeded)."""
    global _rule_service
    if _rule_service is None:
        settings = get_settings()
        if settings.rules_file:
            store = InMemoryRuleStore.from_yaml(settings.rules_file)
            logger.info(f"Seeded rule store from {settings.rules_file}")
        else:
            store = InMemoryRuleStore()
        _rule_service = RuleBundleService(store, settings)
    return _rule_service


def reset_rule_service() -> None:
    global _rule_service
    _rule_service = None
