"""Deterministic digest of a scope's rules, used when too many are omitted."""

from typing import Iterable

from ruleroute.core.models import Rule, RuleScope, RuleSeverity
from ruleroute.rules.scorer import as_utc
from ruleroute.rules.token_estimator import summarize_inline

MAX_SUMMARY_RULES = 20
SUMMARY_CONTENT_CHARS = 180

SUMMARY_HEADERS = {
    RuleScope.WORKSPACE: "Workspace Global Rules Summary",
    RuleScope.USER: "User Global Rules Summary",
}

_SEVERITY_RANK = {
    RuleSeverity.HIGH: 0,
    RuleSeverity.MEDIUM: 1,
    RuleSeverity.LOW: 2,
}


def order_rules_for_summary(rules: Iterable[Rule]) -> list[Rule]:
    """Listing order: pinned first, severity high->low, priority asc, newest first."""
    return sorted(
        rules,
        key=lambda rule: (
            not rule.pinned,
            _SEVERITY_RANK[rule.severity],
            rule.priority,
            -as_utc(rule.updated_at).timestamp(),
        ),
    )


def format_summary_line(rule: Rule) -> str:
    flags = [rule.category.value, rule.severity.value, f"p{rule.priority}"]
    if rule.pinned:
        flags.append("pinned")
    return f"- [{'|'.join(flags)}] {rule.title}: {summarize_inline(rule.content, SUMMARY_CONTENT_CHARS)}"


def build_rules_summary_text(scope: RuleScope, rules: Iterable[Rule]) -> str:
    """
    Render up to 20 rules as one line each under a scope header.

    No ranking happens here; callers pass rules in the order they want shown.
    """
    lines = [format_summary_line(rule) for rule in list(rules)[:MAX_SUMMARY_RULES]]
    body = "\n".join(lines) or "- No active rules."
    return f"{SUMMARY_HEADERS[RuleScope(scope)]}\n{body}"
