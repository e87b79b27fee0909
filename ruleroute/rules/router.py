"""
Query-driven rule routing.

Scores rules against a query with two cheap lexical signals:

- semantic: cosine similarity of term-frequency vectors (a bag-of-words
  stand-in for embeddings)
- keyword: fraction of distinct query tokens present in the rule

The mode decides the blend; priority, recency and a length penalty are added
on top. The full breakdown is returned for every rule so callers can explain
why a rule was or wasn't routed.
"""

import math
import re
from collections import Counter
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ruleroute.core.config import clamp_int
from ruleroute.core.logging_config import get_logger
from ruleroute.core.models import Rule, RoutingMode, RoutingScoreBreakdown, RuleScope
from ruleroute.rules.scorer import age_days, utc_now
from ruleroute.rules.token_estimator import estimate_tokens

logger = get_logger(__name__)

MAX_ROUTING_TOKENS = 512
MIN_TOKEN_LENGTH = 2

RECENCY_HALF_LIFE_DAYS = 21
LENGTH_PENALTY_DIVISOR = 800
LENGTH_PENALTY_CAP = 0.6

PRIORITY_WEIGHT = 0.2
RECENCY_WEIGHT = 0.12
LENGTH_PENALTY_WEIGHT = 0.08

# mode -> (semantic weight, keyword weight)
MODE_WEIGHTS: dict[RoutingMode, tuple[float, float]] = {
    RoutingMode.SEMANTIC: (1.0, 0.0),
    RoutingMode.KEYWORD: (0.0, 1.0),
    RoutingMode.HYBRID: (0.65, 0.35),
}

_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9_\-\s]+")


def tokenize_for_routing(text: str) -> list[str]:
    """Lowercase, strip punctuation, drop 1-char tokens, cap at 512."""
    cleaned = _NON_TOKEN_CHARS.sub(" ", (text or "").lower())
    tokens = [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]
    return tokens[:MAX_ROUTING_TOKENS]


def rule_routing_text(rule: Rule) -> str:
    return f"{rule.title} {rule.content} {' '.join(rule.tags)}"


def cosine_similarity(query_tokens: Sequence[str], document_tokens: Sequence[str]) -> float:
    if not query_tokens or not document_tokens:
        return 0.0

    left = Counter(query_tokens)
    right = Counter(document_tokens)
    dot = sum(count * right[token] for token, count in left.items() if token in right)
    left_norm = sum(count * count for count in left.values())
    right_norm = sum(count * count for count in right.values())
    if left_norm == 0 or right_norm == 0:
        return 0.0
    return dot / math.sqrt(left_norm * right_norm)


def keyword_overlap(query_tokens: Sequence[str], rule_tokens: Sequence[str]) -> float:
    if not query_tokens or not rule_tokens:
        return 0.0

    query_set = set(query_tokens)
    rule_set = set(rule_tokens)
    return len(query_set & rule_set) / max(len(query_set), 1)


def routing_weights(mode: RoutingMode) -> tuple[float, float]:
    return MODE_WEIGHTS.get(mode, MODE_WEIGHTS[RoutingMode.HYBRID])


def compute_breakdown(
    rule: Rule,
    query_tokens: Sequence[str],
    mode: RoutingMode,
    scope: RuleScope,
    now: Optional[datetime] = None,
) -> RoutingScoreBreakdown:
    """Score one rule against pre-tokenized query text."""
    rule_tokens = tokenize_for_routing(rule_routing_text(rule))
    semantic = cosine_similarity(query_tokens, rule_tokens)
    keyword = keyword_overlap(query_tokens, rule_tokens)
    priority = (6 - clamp_int(rule.priority, 3, 1, 5)) / 5
    recency = math.exp(-age_days(rule.updated_at, now) / RECENCY_HALF_LIFE_DAYS)
    length_penalty = min(estimate_tokens(rule.content) / LENGTH_PENALTY_DIVISOR, LENGTH_PENALTY_CAP)

    semantic_weight, keyword_weight = routing_weights(mode)
    final = (
        semantic * semantic_weight
        + keyword * keyword_weight
        + priority * PRIORITY_WEIGHT
        + recency * RECENCY_WEIGHT
        - length_penalty * LENGTH_PENALTY_WEIGHT
    )

    return RoutingScoreBreakdown(
        rule_id=rule.id,
        scope=scope,
        semantic=round(semantic, 6),
        keyword=round(keyword, 6),
        priority=round(priority, 6),
        recency=round(recency, 6),
        length_penalty=round(length_penalty, 6),
        final=round(final, 6),
    )


def route_rules(
    rules: Iterable[Rule],
    query_text: str,
    mode: RoutingMode = RoutingMode.HYBRID,
    scope: RuleScope = RuleScope.WORKSPACE,
    now: Optional[datetime] = None,
) -> list[RoutingScoreBreakdown]:
    """
    Breakdown for every rule, in input order.

    Returns an empty list when the query has no usable tokens.
    """
    query_tokens = tokenize_for_routing(query_text)
    if not query_tokens:
        return []

    now = now or utc_now()
    breakdowns = [compute_breakdown(rule, query_tokens, mode, scope, now) for rule in rules]
    logger.debug(
        f"ROUTE | scope={scope.value} | mode={mode.value} | "
        f"query_tokens={len(query_tokens)} | rules={len(breakdowns)}"
    )
    return breakdowns


def pick_routed_ids(
    breakdowns: Sequence[RoutingScoreBreakdown],
    top_k: int,
    min_score: float,
) -> list[str]:
    """Ids scoring at least min_score, best first, at most top_k (minimum 1)."""
    eligible = [score for score in breakdowns if score.final >= min_score]
    eligible.sort(key=lambda score: score.final, reverse=True)
    return [score.rule_id for score in eligible[: max(1, int(top_k))]]
