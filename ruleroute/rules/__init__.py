"""
Global rule selection and routing.

Public API:
- build_rule_bundle(): Two-scope bundle under a split token budget
- select_rules(): Tiered, budget-aware selection for one scope
- route_rules(): Query relevance breakdown per rule
- build_rules_summary_text(): Deterministic scope digest
- normalize_rule_input(): Write-path clamping and validation

Usage:
    from ruleroute.rules import InMemoryRuleStore, RuleBundleService

    store = InMemoryRuleStore.from_yaml("rules.yaml")
    bundle = RuleBundleService(store).build_bundle("acme", "alice", query="commit policy")
    print(bundle.to_context_block())
"""

from .token_estimator import (
    estimate_tokens,
    estimate_rule_tokens,
    summarize_inline,
)

from .normalizer import (
    normalize_rule_input,
    normalize_tags,
    apply_rule_update,
)

from .scorer import (
    score_rule,
    selection_sort_key,
)

from .router import (
    tokenize_for_routing,
    cosine_similarity,
    keyword_overlap,
    route_rules,
    pick_routed_ids,
)

from .selector import (
    select_rules,
    select_rules_with_settings,
)

from .summary import (
    build_rules_summary_text,
    order_rules_for_summary,
)

from .store import (
    AccessGuard,
    AllowAllGuard,
    AuditSink,
    InMemoryRuleStore,
    LoggingAuditSink,
    RuleStore,
    UsageTracker,
)

from .bundle_builder import (
    allocate_budget,
    resolve_query,
    build_rule_bundle,
)

from .service import RuleBundleService

__all__ = [
    # Tokens
    "estimate_tokens",
    "estimate_rule_tokens",
    "summarize_inline",
    # Normalization
    "normalize_rule_input",
    "normalize_tags",
    "apply_rule_update",
    # Scoring and routing
    "score_rule",
    "selection_sort_key",
    "tokenize_for_routing",
    "cosine_similarity",
    "keyword_overlap",
    "route_rules",
    "pick_routed_ids",
    # Selection
    "select_rules",
    "select_rules_with_settings",
    # Summary
    "build_rules_summary_text",
    "order_rules_for_summary",
    # Collaborators
    "AccessGuard",
    "AllowAllGuard",
    "AuditSink",
    "InMemoryRuleStore",
    "LoggingAuditSink",
    "RuleStore",
    "UsageTracker",
    # Bundle
    "allocate_budget",
    "resolve_query",
    "build_rule_bundle",
    "RuleBundleService",
]
