"""
Budget-aware rule selection for one scope.

Greedy, tiered packing:

1. Pinned rules - always included, even past the budget (warned).
2. High-severity rules - included unless they overflow the budget and a
   pinned rule already guarantees non-empty output.
3. Everything else - routed candidates first (best routing score first),
   then the selection-mode ordering; each rule is included whole if it
   still fits, otherwise skipped.

Selection never raises. Empty input gives an empty result; pressure shows up
as warnings and omitted counts.
"""

from datetime import datetime
from typing import Iterable, Optional

from ruleroute.core.config import RuleEngineSettings, clamp_int
from ruleroute.core.logging_config import get_logger, log_selection
from ruleroute.core.models import (
    RoutingConfig,
    RoutingOutcome,
    RoutingScoreBreakdown,
    Rule,
    RuleScope,
    RuleSeverity,
    SelectedRule,
    SelectionMode,
    SelectionResult,
    SelectionWarning,
    WarningLevel,
)
from ruleroute.rules.router import pick_routed_ids, route_rules
from ruleroute.rules.scorer import score_rule, selection_sort_key, utc_now
from ruleroute.rules.token_estimator import estimate_rule_tokens

logger = get_logger(__name__)

MAX_BUDGET_TOKENS = 50000

REASON_PINNED = "pinned"
REASON_HIGH_SEVERITY = "high_severity"
REASON_BUDGET_FALLBACK = "budget_fallback"
REASON_OMITTED_BUDGET = "omitted_budget"
SUMMARY_REASON = "rule_count_or_budget"

DEFAULT_REASONS: dict[SelectionMode, str] = {
    SelectionMode.SCORE: "score",
    SelectionMode.RECENT: "recent",
    SelectionMode.PRIORITY_ONLY: "priority",
}


def routing_reason(routing: RoutingConfig) -> str:
    return f"routing_{routing.mode.value}"


def _selected(rule: Rule, token_estimate: int, reason: str, score: float) -> SelectedRule:
    return SelectedRule(
        id=rule.id,
        title=rule.title,
        content=rule.content,
        category=rule.category,
        priority=rule.priority,
        severity=rule.severity,
        pinned=rule.pinned,
        token_estimate=token_estimate,
        selected_reason=reason,
        score=score,
    )


def _count_warnings(enabled_count: int, recommend_max: int, warn_threshold: int) -> list[SelectionWarning]:
    warnings: list[SelectionWarning] = []
    if not enabled_count:
        return warnings

    if enabled_count > recommend_max:
        warnings.append(SelectionWarning(
            level=WarningLevel.INFO,
            message=f"Recommended: keep <= {recommend_max} core rules for better context focus.",
        ))
    if enabled_count >= warn_threshold:
        warnings.append(SelectionWarning(
            level=WarningLevel.WARN,
            message=(
                f"{enabled_count} active rules may reduce context clarity. "
                "Consider summarize/compression."
            ),
        ))
    return warnings


def select_rules(
    rules: Iterable[Rule],
    budget_tokens: int,
    *,
    scope: RuleScope = RuleScope.WORKSPACE,
    selection_mode: SelectionMode = SelectionMode.SCORE,
    recommend_max: int = 5,
    warn_threshold: int = 10,
    summary_enabled: bool = True,
    summary_min_count: int = 8,
    routing: Optional[RoutingConfig] = None,
    now: Optional[datetime] = None,
) -> SelectionResult:
    """
    Pack one scope's rules into a token budget.

    Args:
        rules: Rule snapshots; disabled rules are ignored
        budget_tokens: Token ceiling for non-pinned content, clamped to [0, 50000]
        scope: Scope label, used only for diagnostics
        selection_mode: Ordering for rules not picked by routing
        recommend_max: Above this many enabled rules, emit an info warning
        warn_threshold: At or above this many enabled rules, emit a warn warning
        summary_enabled: Whether omissions may fall back to a summary
        summary_min_count: Minimum enabled rules before a summary is used
        routing: Routing parameters; routing runs only if enabled with a non-empty query
        now: Reference time for recency; fixed for deterministic output

    Returns:
        SelectionResult with selected rules in inclusion order
    """
    now = now or utc_now()
    budget = clamp_int(budget_tokens, 0, 0, MAX_BUDGET_TOKENS)
    enabled = [rule for rule in rules if rule.enabled]
    warnings = _count_warnings(len(enabled), recommend_max, warn_threshold)

    selected: list[SelectedRule] = []
    selected_ids: set[str] = set()
    spent = 0

    # Tier 1: pinned
    pinned = [rule for rule in enabled if rule.pinned]
    for rule in pinned:
        tokens = estimate_rule_tokens(rule)
        selected.append(_selected(rule, tokens, REASON_PINNED, score_rule(rule, now)))
        selected_ids.add(rule.id)
        spent += tokens

    if spent > budget:
        warnings.append(SelectionWarning(
            level=WarningLevel.WARN,
            message=(
                f"Pinned rules exceed the global budget ({spent}/{budget} tokens). "
                "Consider consolidating pinned rules."
            ),
        ))

    # Tier 2: high severity
    high_dropped = 0
    high_overflow = False
    for rule in enabled:
        if rule.pinned or rule.severity != RuleSeverity.HIGH:
            continue
        tokens = estimate_rule_tokens(rule)
        if spent + tokens > budget:
            if pinned:
                high_dropped += 1
                continue
            high_overflow = True
        selected.append(_selected(rule, tokens, REASON_HIGH_SEVERITY, score_rule(rule, now)))
        selected_ids.add(rule.id)
        spent += tokens

    if high_dropped:
        warnings.append(SelectionWarning(
            level=WarningLevel.WARN,
            message=(
                f"{high_dropped} high-severity rules could not fit budget after pinned rules "
                "and were compressed into summary."
            ),
        ))
    if high_overflow:
        warnings.append(SelectionWarning(
            level=WarningLevel.WARN,
            message=(
                f"High-severity rules exceed the global budget ({spent}/{budget} tokens). "
                "Consider pinning the essential ones."
            ),
        ))

    # Tier 3: routed candidates, then default ordering
    remaining = [rule for rule in enabled if rule.id not in selected_ids]
    q_used = (routing.query if routing else "").strip()
    routing_active = bool(routing and routing.enabled and q_used)

    breakdown_by_id: dict[str, RoutingScoreBreakdown] = {}
    routed_ids: set[str] = set()
    if routing_active:
        breakdowns = route_rules(remaining, q_used, routing.mode, scope, now)
        breakdown_by_id = {score.rule_id: score for score in breakdowns}
        routed_ids = set(pick_routed_ids(breakdowns, routing.top_k, routing.min_score))

    ordered = sorted(remaining, key=selection_sort_key(selection_mode, now))
    routed_first = sorted(
        (rule for rule in ordered if rule.id in routed_ids),
        key=lambda rule: breakdown_by_id[rule.id].final,
        reverse=True,
    )
    fallback = [rule for rule in ordered if rule.id not in routed_ids]

    default_reason = DEFAULT_REASONS.get(selection_mode, "score")
    for rule in routed_first + fallback:
        tokens = estimate_rule_tokens(rule)
        breakdown = breakdown_by_id.get(rule.id)
        if spent + tokens > budget:
            if breakdown is not None:
                breakdown.reason = REASON_OMITTED_BUDGET
            continue

        is_routed = rule.id in routed_ids
        reason = routing_reason(routing) if is_routed else default_reason
        if breakdown is not None:
            breakdown.selected = True
            breakdown.reason = reason if is_routed else REASON_BUDGET_FALLBACK

        score = breakdown.final if breakdown is not None else score_rule(rule, now)
        selected.append(_selected(rule, tokens, reason, score))
        selected_ids.add(rule.id)
        spent += tokens

    omitted_count = len(enabled) - len(selected)
    used_summary = bool(summary_enabled and len(enabled) >= summary_min_count and omitted_count > 0)

    log_selection(logger, scope.value, len(selected), omitted_count, budget, spent)

    outcome = None
    if routing_active:
        outcome = RoutingOutcome(
            mode=routing.mode,
            q_used=q_used,
            selected_rule_ids=[rule.id for rule in selected],
            dropped_rule_ids=[rule.id for rule in enabled if rule.id not in selected_ids],
            score_breakdown=list(breakdown_by_id.values()),
        )

    return SelectionResult(
        selected=selected,
        omitted_count=omitted_count,
        warnings=warnings,
        used_summary=used_summary,
        summary_reason=SUMMARY_REASON if used_summary else None,
        routing=outcome,
    )


def select_rules_with_settings(
    rules: Iterable[Rule],
    budget_tokens: int,
    settings: RuleEngineSettings,
    scope: RuleScope = RuleScope.WORKSPACE,
    query: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SelectionResult:
    """select_rules() with selection and routing options taken from settings."""
    return select_rules(
        rules,
        budget_tokens,
        scope=scope,
        selection_mode=settings.selection_mode,
        recommend_max=settings.recommend_max,
        warn_threshold=settings.warn_threshold,
        summary_enabled=settings.summary_enabled,
        summary_min_count=settings.summary_min_count,
        routing=settings.routing_config(query),
        now=now,
    )
