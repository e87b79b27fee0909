"""
External collaborators of the rule engine.

The engine only reads enabled rules and reports which ones were routed.
Persistence, authorization and audit delivery sit behind the interfaces
below. InMemoryRuleStore backs the CLI, the HTTP app defaults and tests.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import yaml

from ruleroute.core.config import clamp_int
from ruleroute.core.exceptions import RuleNotFoundError, ValidationError
from ruleroute.core.logging_config import get_logger
from ruleroute.core.models import Rule, RuleScope, RuleSummary
from ruleroute.rules.normalizer import apply_rule_update, normalize_rule_input
from ruleroute.rules.scorer import utc_now
from ruleroute.rules.summary import order_rules_for_summary

logger = get_logger(__name__)

MAX_USAGE_COUNT = 10**9


# =============================================================================
# Interfaces
# =============================================================================


class UsageTracker(ABC):
    """Receives the batched "rules were routed" write."""

    @abstractmethod
    def increment_usage(self, rule_ids: list[str], routed_at: datetime) -> None:
        """Add 1 to usage_count and set last_routed_at for each id. At-least-once."""


class RuleStore(UsageTracker):
    """Read side of rule persistence used by the bundle service."""

    @abstractmethod
    def list_enabled_rules(
        self,
        workspace_id: str,
        scope: RuleScope,
        user_id: Optional[str] = None,
    ) -> list[Rule]:
        """Enabled rules for a scope, pinned/severity/priority/recency order."""

    @abstractmethod
    def get_latest_summary(
        self,
        workspace_id: str,
        scope: RuleScope,
        user_id: Optional[str] = None,
    ) -> Optional[str]:
        """Persisted summary text, if any."""

    @abstractmethod
    def save_summary(self, summary: RuleSummary) -> RuleSummary:
        """Create or overwrite the summary for (scope, workspace, user)."""


class AccessGuard(ABC):
    """Authorization checks made before the engine is invoked."""

    @abstractmethod
    def check_scope(
        self,
        workspace_id: str,
        scope: RuleScope,
        actor_user_id: Optional[str],
        target_user_id: Optional[str] = None,
    ) -> None:
        """Raise AccessDeniedError if the actor may not use this scope."""


class AuditSink(ABC):
    """Records summarize/write actions. Delivery is someone else's problem."""

    @abstractmethod
    def record(self, action: str, target: dict[str, Any]) -> None:
        ...


class AllowAllGuard(AccessGuard):
    def check_scope(self, workspace_id, scope, actor_user_id, target_user_id=None) -> None:
        return None


class LoggingAuditSink(AuditSink):
    """Audit sink that only writes to the log."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def record(self, action: str, target: dict[str, Any]) -> None:
        self.events.append((action, dict(target)))
        logger.info(f"AUDIT | {action} | {target}")


# =============================================================================
# In-memory store
# =============================================================================


def _summary_key(scope: RuleScope, workspace_id: str, user_id: Optional[str]) -> tuple:
    scope = RuleScope(scope)
    return (scope, workspace_id, user_id if scope == RuleScope.USER else None)


class InMemoryRuleStore(RuleStore):
    """
    Dict-backed rule store.

    Thread-safe; every read returns immutable Rule snapshots.
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None, default_workspace_id: str = "default"):
        self.default_workspace_id = default_workspace_id
        self._lock = threading.Lock()
        self._rules: dict[str, Rule] = {}
        self._summaries: dict[tuple, RuleSummary] = {}
        for rule in rules or []:
            self._rules[rule.id] = rule

    # --- write path -------------------------------------------------------

    def add_rule(
        self,
        raw: Mapping[str, Any],
        workspace_id: str,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Rule:
        """
        Normalize and store a new rule.

        Seed data may carry id, usage_count, updated_at and last_routed_at.

        Raises:
            ValidationError: Missing title/content, or a user rule without a user
        """
        now = now or utc_now()
        payload = normalize_rule_input(raw, "create")
        owner = None
        if payload.scope == RuleScope.USER:
            owner = payload.user_id or user_id
            if not owner:
                raise ValidationError("user_id is required for user-scope rules")

        rule = Rule(
            id=str(raw.get("id") or uuid.uuid4().hex),
            scope=payload.scope,
            workspace_id=workspace_id,
            user_id=owner,
            title=payload.title,
            content=payload.content,
            category=payload.category,
            priority=payload.priority,
            severity=payload.severity,
            pinned=payload.pinned,
            enabled=payload.enabled,
            tags=payload.tags,
            usage_count=clamp_int(raw.get("usage_count"), 0, 0, MAX_USAGE_COUNT),
            last_routed_at=raw.get("last_routed_at"),
            created_at=raw.get("created_at") or now,
            updated_at=raw.get("updated_at") or now,
        )
        with self._lock:
            self._rules[rule.id] = rule
        return rule

    def update_rule(self, rule_id: str, raw: Mapping[str, Any], now: Optional[datetime] = None) -> Rule:
        with self._lock:
            existing = self._rules.get(rule_id)
            if existing is None:
                raise RuleNotFoundError(rule_id)
            updated = apply_rule_update(existing, raw, now or utc_now())
            self._rules[rule_id] = updated
        return updated

    def get_rule(self, rule_id: str) -> Rule:
        with self._lock:
            rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    # --- RuleStore --------------------------------------------------------

    def list_rules(
        self,
        workspace_id: str,
        scope: RuleScope,
        user_id: Optional[str] = None,
        include_disabled: bool = False,
    ) -> list[Rule]:
        scope = RuleScope(scope)
        with self._lock:
            rules = list(self._rules.values())

        matched = [
            rule for rule in rules
            if rule.workspace_id == workspace_id
            and rule.scope == scope
            and (scope == RuleScope.WORKSPACE or rule.user_id == user_id)
            and (include_disabled or rule.enabled)
        ]
        return order_rules_for_summary(matched)

    def list_enabled_rules(self, workspace_id, scope, user_id=None) -> list[Rule]:
        return self.list_rules(workspace_id, scope, user_id)

    def increment_usage(self, rule_ids: list[str], routed_at: datetime) -> None:
        with self._lock:
            for rule_id in set(rule_ids):
                rule = self._rules.get(rule_id)
                if rule is None:
                    continue
                self._rules[rule_id] = rule.model_copy(update={
                    "usage_count": rule.usage_count + 1,
                    "last_routed_at": routed_at,
                })

    def get_latest_summary(self, workspace_id, scope, user_id=None) -> Optional[str]:
        with self._lock:
            summary = self._summaries.get(_summary_key(scope, workspace_id, user_id))
        return summary.summary_text if summary else None

    def save_summary(self, summary: RuleSummary) -> RuleSummary:
        saved = summary.model_copy(update={"updated_at": summary.updated_at or utc_now()})
        with self._lock:
            self._summaries[_summary_key(summary.scope, summary.workspace_id, summary.user_id)] = saved
        return saved

    # --- loading ----------------------------------------------------------

    @classmethod
    def from_yaml(cls, path: Union[str, Path], workspace_id: Optional[str] = None) -> "InMemoryRuleStore":
        """
        Load rules from a YAML file::

            workspace_id: acme
            rules:
              - title: Commit policy
                content: Every commit message should include rollback notes.
                tags: [commit, policy]
              - scope: user
                user_id: alice
                title: Prefer small PRs
                content: Keep pull requests under 400 lines.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if isinstance(data, list):
            data = {"rules": data}
        if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
            raise ValidationError("rules file must contain a list of rules", context={"path": str(path)})

        workspace = workspace_id or str(data.get("workspace_id") or "default")
        store = cls(default_workspace_id=workspace)
        for raw in data.get("rules") or []:
            if not isinstance(raw, dict):
                raise ValidationError("each rule must be a mapping", context={"path": str(path)})
            store.add_rule(raw, workspace)
        logger.debug(f"Loaded {len(data.get('rules') or [])} rules from {path}")
        return store
