"""
Context-free rule scoring.

Used for default ordering when no query is available or routing is off.
Higher is better; ties break on most recently updated.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from ruleroute.core.config import clamp_int
from ruleroute.core.models import Rule, SelectionMode
from ruleroute.rules.token_estimator import estimate_tokens

SECONDS_PER_DAY = 24 * 60 * 60

# Router uses 800.
LENGTH_PENALTY_DIVISOR = 250


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def age_days(updated_at: datetime, now: Optional[datetime] = None) -> float:
    """Days since updated_at, never negative."""
    now = as_utc(now or utc_now())
    delta = (now - as_utc(updated_at)).total_seconds() / SECONDS_PER_DAY
    return max(delta, 0.0)


def score_rule(rule: Rule, now: Optional[datetime] = None) -> float:
    """Priority + recency + usage - length penalty."""
    priority_weight = (6 - clamp_int(rule.priority, 3, 1, 5)) * 2
    recency_weight = max(0.0, 10 - age_days(rule.updated_at, now) / 3)
    usage_weight = min(max(rule.usage_count or 0, 0), 100) * 0.05
    length_penalty = estimate_tokens(rule.content) / LENGTH_PENALTY_DIVISOR
    return priority_weight + recency_weight + usage_weight - length_penalty


def _updated_ts(rule: Rule) -> float:
    return as_utc(rule.updated_at).timestamp()


def selection_sort_key(
    mode: SelectionMode,
    now: Optional[datetime] = None,
) -> Callable[[Rule], tuple]:
    """
    Sort key (ascending) implementing a selection mode's ordering.

    - recent: updated_at desc
    - priority_only: priority asc, then updated_at desc
    - score: score desc, then updated_at desc
    """
    if mode == SelectionMode.RECENT:
        return lambda rule: (-_updated_ts(rule),)
    if mode == SelectionMode.PRIORITY_ONLY:
        return lambda rule: (rule.priority, -_updated_ts(rule))
    return lambda rule: (-score_rule(rule, now), -_updated_ts(rule))
