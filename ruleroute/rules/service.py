"""
Rule bundle service.

Fetches access-filtered rules from a RuleStore, runs the bundle builder and
handles summary preview/replace. The engine below this layer stays pure.
"""

from datetime import datetime
from typing import Optional

from ruleroute.core.config import RuleEngineSettings, get_settings
from ruleroute.core.logging_config import get_logger
from ruleroute.core.models import RuleBundle, RuleScope, RuleSummary, SummaryMode
from ruleroute.rules.bundle_builder import build_rule_bundle
from ruleroute.rules.scorer import utc_now
from ruleroute.rules.store import AccessGuard, AllowAllGuard, AuditSink, LoggingAuditSink, RuleStore
from ruleroute.rules.summary import build_rules_summary_text

logger = get_logger(__name__)


class RuleBundleService:
    """Builds context rule bundles and scope summaries for a workspace."""

    def __init__(
        self,
        store: RuleStore,
        settings: Optional[RuleEngineSettings] = None,
        access_guard: Optional[AccessGuard] = None,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.access_guard = access_guard or AllowAllGuard()
        self.audit_sink = audit_sink or LoggingAuditSink()

    def build_bundle(
        self,
        workspace_id: str,
        user_id: str,
        query: Optional[str] = None,
        context_hint: Optional[str] = None,
        total_budget: Optional[int] = None,
        include_routing_debug: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> RuleBundle:
        """
        Build the bundle for one user in one workspace.

        Raises:
            AccessDeniedError: If the guard rejects either scope
        """
        self.access_guard.check_scope(workspace_id, RuleScope.WORKSPACE, user_id)
        self.access_guard.check_scope(workspace_id, RuleScope.USER, user_id, user_id)

        workspace_rules = self.store.list_enabled_rules(workspace_id, RuleScope.WORKSPACE)
        user_rules = self.store.list_enabled_rules(workspace_id, RuleScope.USER, user_id)

        return build_rule_bundle(
            workspace_rules,
            user_rules,
            self.settings,
            query=query,
            context_hint=context_hint,
            total_budget=total_budget,
            include_routing_debug=include_routing_debug,
            workspace_summary=self.store.get_latest_summary(workspace_id, RuleScope.WORKSPACE),
            user_summary=self.store.get_latest_summary(workspace_id, RuleScope.USER, user_id),
            usage_tracker=self.store,
            now=now,
        )

    def summarize(
        self,
        workspace_id: str,
        scope: RuleScope,
        user_id: Optional[str] = None,
        mode: SummaryMode = SummaryMode.PREVIEW,
        actor_user_id: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RuleSummary:
        """
        Digest a scope's enabled rules.

        In replace mode the digest overwrites the stored summary for
        (scope, workspace, user) and an audit event is recorded.
        """
        scope = RuleScope(scope)
        target_user_id = (user_id or actor_user_id) if scope == RuleScope.USER else None
        self.access_guard.check_scope(workspace_id, scope, actor_user_id, target_user_id)

        rules = self.store.list_enabled_rules(workspace_id, scope, target_user_id)
        summary = RuleSummary(
            scope=scope,
            workspace_id=workspace_id,
            user_id=target_user_id,
            summary_text=build_rules_summary_text(scope, rules),
            source_rule_ids=[rule.id for rule in rules],
        )
        if SummaryMode(mode) == SummaryMode.PREVIEW:
            return summary

        saved = self.store.save_summary(summary.model_copy(update={"updated_at": now or utc_now()}))
        self.audit_sink.record(
            "global_rules.summarized",
            {
                "scope": scope.value,
                "workspace_id": workspace_id,
                "user_id": target_user_id,
                "actor_user_id": actor_user_id,
                "source_rule_count": len(saved.source_rule_ids),
                "reason": (reason or "").strip() or None,
            },
        )
        logger.info(f"Saved {scope.value} rules summary for {workspace_id} ({len(rules)} rules)")
        return saved
