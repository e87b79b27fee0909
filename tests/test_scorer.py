"""Unit tests for context-free rule scoring and selection-mode ordering."""

from datetime import datetime, timedelta

import pytest

from ruleroute.core.models import SelectionMode
from ruleroute.rules.scorer import age_days, score_rule, selection_sort_key


def test_score_components(make_rule, now):
    rule = make_rule(priority=3, usage_count=0, content="x" * 400)
    # (6-3)*2 + 10 recency + 0 usage - 100/250
    assert score_rule(rule, now) == pytest.approx(6 + 10 - 0.4)


def test_lower_priority_number_scores_higher(make_rule, now):
    assert score_rule(make_rule(priority=1), now) > score_rule(make_rule(priority=5), now)


def test_recency_decays_to_zero(make_rule, now):
    fresh = make_rule(updated_at=now)
    month_old = make_rule(updated_at=now - timedelta(days=30))
    ancient = make_rule(updated_at=now - timedelta(days=300))

    assert score_rule(fresh, now) - score_rule(month_old, now) == pytest.approx(10)
    assert score_rule(month_old, now) == pytest.approx(score_rule(ancient, now))


def test_usage_is_capped(make_rule, now):
    base = score_rule(make_rule(usage_count=0), now)
    assert score_rule(make_rule(usage_count=100), now) - base == pytest.approx(5)
    assert score_rule(make_rule(usage_count=10_000), now) - base == pytest.approx(5)


def test_age_days_is_never_negative(now):
    assert age_days(now + timedelta(days=2), now) == 0
    assert age_days(now - timedelta(hours=36), now) == pytest.approx(1.5)


def test_naive_timestamps_are_utc(now):
    naive = datetime(2026, 2, 18)
    assert age_days(naive, now) == pytest.approx(1)


def test_sort_key_recent(make_rule, now):
    rules = [
        make_rule(id="old", updated_at=now - timedelta(days=5)),
        make_rule(id="new", updated_at=now),
    ]
    ordered = sorted(rules, key=selection_sort_key(SelectionMode.RECENT, now))
    assert [r.id for r in ordered] == ["new", "old"]


def test_sort_key_priority_only_breaks_ties_by_recency(make_rule, now):
    rules = [
        make_rule(id="p2", priority=2),
        make_rule(id="p1-old", priority=1, updated_at=now - timedelta(days=3)),
        make_rule(id="p1-new", priority=1, updated_at=now),
    ]
    ordered = sorted(rules, key=selection_sort_key(SelectionMode.PRIORITY_ONLY, now))
    assert [r.id for r in ordered] == ["p1-new", "p1-old", "p2"]


def test_sort_key_score(make_rule, now):
    rules = [
        make_rule(id="low", priority=5),
        make_rule(id="high", priority=1),
    ]
    ordered = sorted(rules, key=selection_sort_key(SelectionMode.SCORE, now))
    assert [r.id for r in ordered] == ["high", "low"]
