"""Unit tests for query-driven rule routing."""

import math
from datetime import timedelta

import pytest

from ruleroute.core.models import RoutingMode, RuleScope
from ruleroute.rules.router import (
    cosine_similarity,
    keyword_overlap,
    pick_routed_ids,
    route_rules,
    tokenize_for_routing,
)


def test_tokenize_strips_punctuation_and_short_tokens():
    tokens = tokenize_for_routing("Hello, World! a I'm_ok foo-bar")
    assert tokens == ["hello", "world", "m_ok", "foo-bar"]


def test_tokenize_caps_at_512():
    assert len(tokenize_for_routing("token " * 600)) == 512


def test_cosine_similarity_uses_term_frequency():
    assert cosine_similarity(["a1", "b2"], ["a1", "b2"]) == pytest.approx(1.0)
    assert cosine_similarity(["a1"], ["b2"]) == 0
    assert cosine_similarity([], ["a1"]) == 0
    # q = {a1:1}, d = {a1:2, b2:1} -> 2 / sqrt(1 * 5)
    assert cosine_similarity(["a1"], ["a1", "a1", "b2"]) == pytest.approx(2 / math.sqrt(5))


def test_keyword_overlap_uses_sets():
    assert keyword_overlap(["aa", "aa", "bb"], ["aa"]) == pytest.approx(0.5)
    assert keyword_overlap(["aa"], []) == 0


def test_migrate_database_schema_scenario(make_rule, now):
    rule = make_rule(id="migrations", title="Migrate", content="database schema changes reviewed")

    [breakdown] = route_rules([rule], "migrate database schema", RoutingMode.HYBRID, RuleScope.WORKSPACE, now)

    assert breakdown.keyword == pytest.approx(1.0)
    assert 0 < breakdown.semantic < 1
    assert breakdown.semantic == pytest.approx(3 / math.sqrt(15), abs=1e-6)
    assert breakdown.priority == pytest.approx(0.6)
    assert breakdown.recency == pytest.approx(1.0)
    assert breakdown.length_penalty == pytest.approx(8 / 800)
    expected = 0.65 * (3 / math.sqrt(15)) + 0.35 * 1.0 + 0.6 * 0.2 + 1.0 * 0.12 - 0.01 * 0.08
    assert breakdown.final == pytest.approx(expected, abs=1e-5)
    assert breakdown.selected is False


def test_mode_weights(make_rule, now):
    rule = make_rule(title="Migrate", content="database schema changes reviewed")
    query = "migrate database schema"

    [semantic] = route_rules([rule], query, RoutingMode.SEMANTIC, now=now)
    [keyword] = route_rules([rule], query, RoutingMode.KEYWORD, now=now)
    base = 0.6 * 0.2 + 0.12 - 0.01 * 0.08

    assert semantic.final == pytest.approx(semantic.semantic + base, abs=1e-5)
    assert keyword.final == pytest.approx(1.0 + base, abs=1e-5)


def test_recency_and_length_penalty(make_rule, now):
    old = make_rule(updated_at=now - timedelta(days=21), content="y" * 10000)
    [breakdown] = route_rules([old], "anything", now=now)

    assert breakdown.recency == pytest.approx(math.exp(-1), abs=1e-6)
    assert breakdown.length_penalty == pytest.approx(0.6)


def test_empty_query_yields_no_breakdowns(make_rule, now):
    assert route_rules([make_rule()], "", now=now) == []
    assert route_rules([make_rule()], "! ? a", now=now) == []


def test_route_is_deterministic(make_rule, now):
    rules = [
        make_rule(id="a", title="Commit policy", tags=["commit"]),
        make_rule(id="b", title="Security baseline", tags=["security"]),
    ]
    first = route_rules(rules, "commit security", now=now)
    second = route_rules(rules, "commit security", now=now)
    assert [b.model_dump() for b in first] == [b.model_dump() for b in second]


def _breakdowns(make_rule, now):
    rules = [
        make_rule(id="r1", title="Commit policy", tags=["commit", "policy"], priority=1),
        make_rule(id="r2", title="Commit standards", tags=["commit"], priority=2),
        make_rule(id="r3", title="Commit lint", tags=["lint"], priority=3),
        make_rule(id="r4", title="Naming style", content="Use kebab-case.", priority=5),
    ]
    return route_rules(rules, "commit policy", RoutingMode.HYBRID, now=now)


def test_pick_routed_ids_orders_by_final(make_rule, now):
    breakdowns = _breakdowns(make_rule, now)
    routed = pick_routed_ids(breakdowns, top_k=2, min_score=0.0)

    finals = {b.rule_id: b.final for b in breakdowns}
    assert routed[0] == "r1"
    assert len(routed) == 2
    assert finals[routed[0]] >= finals[routed[1]]


@pytest.mark.parametrize("low, high", [(0.0, 0.3), (0.3, 0.6), (0.6, 1.0)])
def test_raising_min_score_never_adds_candidates(make_rule, now, low, high):
    breakdowns = _breakdowns(make_rule, now)
    assert len(pick_routed_ids(breakdowns, 10, high)) <= len(pick_routed_ids(breakdowns, 10, low))


@pytest.mark.parametrize("small, large", [(1, 2), (2, 3), (3, 100)])
def test_raising_top_k_never_removes_candidates(make_rule, now, small, large):
    breakdowns = _breakdowns(make_rule, now)
    assert len(pick_routed_ids(breakdowns, large, 0.2)) >= len(pick_routed_ids(breakdowns, small, 0.2))


def test_top_k_has_a_floor_of_one(make_rule, now):
    breakdowns = _breakdowns(make_rule, now)
    assert len(pick_routed_ids(breakdowns, 0, 0.0)) == 1
