"""
Rule bundle assembly across the workspace and user scopes.

The total budget is split by the configured percentages, each scope runs the
same selector with the same routing parameters, and the results are merged
into one RuleBundle with a debug block. When routing was active the selected
rules are reported to a usage tracker in one batched call.
"""

import math
from datetime import datetime
from typing import Iterable, Optional

from ruleroute.core.config import TOTAL_BUDGET_MAX, TOTAL_BUDGET_MIN, RuleEngineSettings, clamp_int
from ruleroute.core.logging_config import get_logger, log_usage_write
from ruleroute.core.models import (
    BudgetAllocation,
    BundleDebug,
    BundleRouting,
    Rule,
    RuleBundle,
    RuleScope,
    SelectionResult,
)
from ruleroute.rules.scorer import utc_now
from ruleroute.rules.selector import select_rules_with_settings
from ruleroute.rules.store import UsageTracker
from ruleroute.rules.summary import build_rules_summary_text, order_rules_for_summary

logger = get_logger(__name__)

MIN_WORKSPACE_BUDGET = 50
MIN_USER_BUDGET = 30


def allocate_budget(settings: RuleEngineSettings, total_budget: Optional[int] = None) -> BudgetAllocation:
    """Split the total token budget between workspace and user rules."""
    requested = settings.bundle_token_budget_total if total_budget is None else total_budget
    total = clamp_int(requested, settings.bundle_token_budget_total, TOTAL_BUDGET_MIN, TOTAL_BUDGET_MAX)
    return BudgetAllocation(
        total_budget=total,
        workspace_budget=max(
            MIN_WORKSPACE_BUDGET,
            math.floor(total * settings.bundle_budget_global_workspace_pct),
        ),
        user_budget=max(
            MIN_USER_BUDGET,
            math.floor(total * settings.bundle_budget_global_user_pct),
        ),
    )


def resolve_query(query: Optional[str] = None, context_hint: Optional[str] = None) -> str:
    """Explicit query wins; otherwise the context hint (e.g. current file path)."""
    for candidate in (query, context_hint):
        text = str(candidate or "").strip()
        if text:
            return text
    return ""


def _scope_summary(
    selection: SelectionResult,
    settings: RuleEngineSettings,
    scope: RuleScope,
    rules: list[Rule],
    persisted: Optional[str],
) -> Optional[str]:
    if not (selection.used_summary and settings.summary_enabled):
        return None
    if persisted:
        return persisted
    return build_rules_summary_text(scope, order_rules_for_summary(rules))


def _mark_used(tracker: Optional[UsageTracker], rule_ids: list[str], now: datetime) -> None:
    # Best-effort counter: lost or duplicated increments are acceptable.
    if tracker is None:
        return
    try:
        tracker.increment_usage(rule_ids, routed_at=now)
        log_usage_write(logger, len(rule_ids))
    except Exception as e:
        logger.warning(f"Usage update failed for {len(rule_ids)} rules: {e}")


def build_rule_bundle(
    workspace_rules: Iterable[Rule],
    user_rules: Iterable[Rule],
    settings: RuleEngineSettings,
    *,
    query: Optional[str] = None,
    context_hint: Optional[str] = None,
    total_budget: Optional[int] = None,
    include_routing_debug: Optional[bool] = None,
    workspace_summary: Optional[str] = None,
    user_summary: Optional[str] = None,
    usage_tracker: Optional[UsageTracker] = None,
    now: Optional[datetime] = None,
) -> RuleBundle:
    """
    Build the two-scope rule bundle.

    Args:
        workspace_rules: Workspace-scope rules, already access-filtered
        user_rules: The requesting user's rules, already access-filtered
        settings: Engine settings (selection, budgets, routing)
        query: Explicit query text for routing
        context_hint: Fallback routing text when query is empty
        total_budget: Overrides settings.bundle_token_budget_total
        include_routing_debug: Expose per-rule score breakdowns (default from settings)
        workspace_summary: Persisted workspace summary, preferred over a fresh digest
        user_summary: Persisted user summary, preferred over a fresh digest
        usage_tracker: Receives one increment_usage() call for routed bundles
        now: Reference time for recency and last_routed_at

    Returns:
        RuleBundle with rules, summaries, routing info, warnings and debug block
    """
    now = now or utc_now()
    workspace_enabled = [rule for rule in workspace_rules if rule.enabled]
    user_enabled = [rule for rule in user_rules if rule.enabled]

    allocation = allocate_budget(settings, total_budget)
    q_used = resolve_query(query, context_hint)
    workspace_selection = select_rules_with_settings(
        workspace_enabled, allocation.workspace_budget, settings, RuleScope.WORKSPACE, q_used, now
    )
    user_selection = select_rules_with_settings(
        user_enabled, allocation.user_budget, settings, RuleScope.USER, q_used, now
    )

    selected_rule_ids = [rule.id for rule in workspace_selection.selected] + [
        rule.id for rule in user_selection.selected
    ]
    selected_set = set(selected_rule_ids)
    dropped_rule_ids = [
        rule.id for rule in workspace_enabled + user_enabled if rule.id not in selected_set
    ]

    score_breakdown = []
    for selection in (workspace_selection, user_selection):
        if selection.routing is not None:
            score_breakdown.extend(selection.routing.score_breakdown)

    if include_routing_debug is None:
        include_routing_debug = settings.include_routing_debug

    if settings.routing_enabled and q_used and selected_rule_ids:
        _mark_used(usage_tracker, selected_rule_ids, now)

    logger.debug(
        f"BUNDLE | workspace={len(workspace_selection.selected)}/{len(workspace_enabled)} | "
        f"user={len(user_selection.selected)}/{len(user_enabled)} | q_used={bool(q_used)}"
    )

    return RuleBundle(
        workspace_rules=workspace_selection.selected,
        user_rules=user_selection.selected,
        workspace_summary=_scope_summary(
            workspace_selection, settings, RuleScope.WORKSPACE, workspace_enabled, workspace_summary
        ),
        user_summary=_scope_summary(
            user_selection, settings, RuleScope.USER, user_enabled, user_summary
        ),
        routing=BundleRouting(
            mode=settings.routing_mode,
            q_used=q_used or None,
            selected_rule_ids=selected_rule_ids,
            dropped_rule_ids=dropped_rule_ids,
            score_breakdown=score_breakdown if include_routing_debug else None,
        ),
        warnings=workspace_selection.warnings + user_selection.warnings,
        debug=BundleDebug(
            workspace_budget_tokens=allocation.workspace_budget,
            user_budget_tokens=allocation.user_budget,
            workspace_selected_count=len(workspace_selection.selected),
            user_selected_count=len(user_selection.selected),
            workspace_omitted_count=workspace_selection.omitted_count,
            user_omitted_count=user_selection.omitted_count,
            selection_mode=settings.selection_mode,
            routing_enabled=settings.routing_enabled,
            routing_mode=settings.routing_mode,
            routing_top_k=settings.routing_top_k,
            routing_min_score=settings.routing_min_score,
            q_used=q_used or None,
        ),
    )
