"""Tests for two-scope bundle assembly."""

import pytest

from conftest import content_for_tokens
from ruleroute.core.config import RuleEngineSettings
from ruleroute.core.models import RoutingMode, RuleScope
from ruleroute.rules.bundle_builder import allocate_budget, build_rule_bundle, resolve_query
from ruleroute.rules.store import UsageTracker


class RecordingTracker(UsageTracker):
    def __init__(self):
        self.calls = []

    def increment_usage(self, rule_ids, routed_at):
        self.calls.append((list(rule_ids), routed_at))


class FailingTracker(UsageTracker):
    def increment_usage(self, rule_ids, routed_at):
        raise RuntimeError("database unavailable")


@pytest.fixture
def settings():
    return RuleEngineSettings(_env_file=None)


@pytest.fixture
def scoped_rules(make_rule):
    workspace = [
        make_rule(id="ws-commit", title="Commit policy", tags=["commit"]),
        make_rule(id="ws-naming", title="Naming style", content="Use kebab-case filenames."),
    ]
    user = [make_rule(id="user-tone", scope="user", user_id="alice", title="Answer tone")]
    return workspace, user


# =============================================================================
# Budget split and query resolution
# =============================================================================


@pytest.mark.parametrize(
    "total, expected",
    [
        (None, (3000, 450, 300)),
        (100, (100, 50, 30)),
        (10, (100, 50, 30)),
        (99999, (50000, 7500, 5000)),
        ("not-a-number", (3000, 450, 300)),
    ],
)
def test_allocate_budget(settings, total, expected):
    allocation = allocate_budget(settings, total)
    assert (allocation.total_budget, allocation.workspace_budget, allocation.user_budget) == expected


def test_allocate_budget_uses_configured_percentages():
    settings = RuleEngineSettings(
        _env_file=None,
        bundle_token_budget_total=1000,
        bundle_budget_global_workspace_pct=0.5,
        bundle_budget_global_user_pct=0.25,
    )
    allocation = allocate_budget(settings)
    assert (allocation.workspace_budget, allocation.user_budget) == (500, 250)


@pytest.mark.parametrize(
    "query, hint, expected",
    [
        ("commit policy", "src/app.py", "commit policy"),
        ("   ", "src/app.py", "src/app.py"),
        (None, None, ""),
        ("", "  ", ""),
    ],
)
def test_resolve_query(query, hint, expected):
    assert resolve_query(query, hint) == expected


# =============================================================================
# Bundle contents
# =============================================================================


def test_bundle_splits_scopes(settings, scoped_rules, now):
    workspace, user = scoped_rules
    bundle = build_rule_bundle(workspace, user, settings, now=now)

    assert {rule.id for rule in bundle.workspace_rules} == {"ws-commit", "ws-naming"}
    assert [rule.id for rule in bundle.user_rules] == ["user-tone"]
    assert bundle.routing.q_used is None
    assert bundle.routing.dropped_rule_ids == []
    assert bundle.debug.workspace_budget_tokens == 450
    assert bundle.debug.user_budget_tokens == 300
    assert bundle.debug.workspace_selected_count == 2
    assert bundle.debug.user_selected_count == 1
    assert bundle.debug.routing_mode == RoutingMode.HYBRID


def test_context_hint_drives_routing(settings, scoped_rules, now):
    workspace, user = scoped_rules
    bundle = build_rule_bundle(workspace, user, settings, context_hint="commit", now=now)

    assert bundle.routing.q_used == "commit"
    assert bundle.debug.q_used == "commit"
    assert bundle.workspace_rules[0].id == "ws-commit"
    assert bundle.workspace_rules[0].selected_reason == "routing_hybrid"


def test_score_breakdown_only_in_debug(settings, scoped_rules, now):
    workspace, user = scoped_rules

    plain = build_rule_bundle(workspace, user, settings, query="commit", now=now)
    debug = build_rule_bundle(workspace, user, settings, query="commit", include_routing_debug=True, now=now)

    assert plain.routing.score_breakdown is None
    assert {score.rule_id for score in debug.routing.score_breakdown} == {"ws-commit", "ws-naming", "user-tone"}
    assert {score.scope for score in debug.routing.score_breakdown} == {RuleScope.WORKSPACE, RuleScope.USER}


def test_disabled_rules_never_reported(settings, make_rule, now):
    rules = [make_rule(id="on"), make_rule(id="off", enabled=False)]
    bundle = build_rule_bundle(rules, [], settings, query="deterministic", now=now)

    assert bundle.routing.selected_rule_ids == ["on"]
    assert bundle.routing.dropped_rule_ids == []


def test_summary_generated_when_rules_are_omitted(settings, make_rule, now):
    rules = [
        make_rule(id=f"r{i}", title=f"Rule {i}", content=content_for_tokens(100, f"Rule {i}"))
        for i in range(10)
    ]
    bundle = build_rule_bundle(rules, [], settings, now=now)

    assert len(bundle.workspace_rules) == 4
    assert bundle.debug.workspace_omitted_count == 6
    assert bundle.workspace_summary.startswith("Workspace Global Rules Summary\n")
    assert bundle.user_summary is None


def test_persisted_summary_preferred(settings, make_rule, now):
    rules = [
        make_rule(id=f"r{i}", title=f"Rule {i}", content=content_for_tokens(100, f"Rule {i}"))
        for i in range(10)
    ]
    bundle = build_rule_bundle(rules, [], settings, workspace_summary="Stored digest", now=now)

    assert bundle.workspace_summary == "Stored digest"


def test_persisted_summary_unused_without_pressure(settings, scoped_rules, now):
    workspace, user = scoped_rules
    bundle = build_rule_bundle(workspace, user, settings, workspace_summary="Stored digest", now=now)

    assert bundle.workspace_summary is None


def test_warnings_from_both_scopes(settings, make_rule, now):
    workspace = [make_rule(id=f"w{i}") for i in range(6)]
    user = [make_rule(id=f"u{i}", scope="user", user_id="alice") for i in range(6)]
    bundle = build_rule_bundle(workspace, user, settings, now=now)

    assert len([w for w in bundle.warnings if w.level == "info"]) == 2


# =============================================================================
# Usage tracking
# =============================================================================


def test_usage_recorded_once_for_routed_bundle(settings, scoped_rules, now):
    workspace, user = scoped_rules
    tracker = RecordingTracker()
    bundle = build_rule_bundle(workspace, user, settings, query="commit", usage_tracker=tracker, now=now)

    assert len(tracker.calls) == 1
    rule_ids, routed_at = tracker.calls[0]
    assert rule_ids == bundle.routing.selected_rule_ids
    assert routed_at == now


def test_usage_not_recorded_without_query(settings, scoped_rules, now):
    workspace, user = scoped_rules
    tracker = RecordingTracker()
    build_rule_bundle(workspace, user, settings, usage_tracker=tracker, now=now)

    assert tracker.calls == []


def test_usage_not_recorded_when_routing_disabled(scoped_rules, now):
    workspace, user = scoped_rules
    settings = RuleEngineSettings(_env_file=None, routing_enabled=False)
    tracker = RecordingTracker()
    bundle = build_rule_bundle(workspace, user, settings, query="commit", usage_tracker=tracker, now=now)

    assert tracker.calls == []
    assert bundle.routing.q_used == "commit"
    assert all(not rule.selected_reason.startswith("routing_") for rule in bundle.workspace_rules)


def test_usage_failure_does_not_fail_bundle(settings, scoped_rules, now):
    workspace, user = scoped_rules
    bundle = build_rule_bundle(
        workspace, user, settings, query="commit", usage_tracker=FailingTracker(), now=now
    )

    assert bundle.routing.selected_rule_ids


# =============================================================================
# Rendering
# =============================================================================


def test_context_block(settings, make_rule, now):
    workspace = [make_rule(id="sec", title="Secrets", content="Never log tokens.", severity="high", pinned=True)]
    bundle = build_rule_bundle(workspace, [], settings, now=now)

    assert bundle.to_context_block() == (
        "## Global Rules\n"
        "\n"
        "### Workspace\n"
        "- [policy|high|p3|pinned] Secrets: Never log tokens."
    )


def test_context_block_without_rules(settings, now):
    bundle = build_rule_bundle([], [], settings, now=now)
    assert bundle.to_context_block() == "## Global Rules\n- No active rules."
