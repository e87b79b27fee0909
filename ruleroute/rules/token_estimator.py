"""Approximate LLM token cost from character length (1 token ~ 4 chars)."""

import math
import re

from ruleroute.core.models import Rule

_WHITESPACE = re.compile(r"\s+")


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def estimate_tokens(text: str) -> int:
    """Estimated token cost of text. Never less than 1."""
    normalized = _collapse(text)
    if not normalized:
        return 1
    return max(1, math.ceil(len(normalized) / 4))


def estimate_rule_tokens(rule: Rule) -> int:
    """Cost of injecting a whole rule (title line plus content)."""
    return estimate_tokens(f"{rule.title}\n{rule.content}")


def summarize_inline(text: str, max_chars: int = 140) -> str:
    """Single-line preview of text, cut with an ellipsis past max_chars."""
    normalized = _collapse(text)
    if not normalized:
        return "-"
    if len(normalized) <= max_chars:
        return normalized
    return normalized[: max(max_chars - 3, 1)].rstrip() + "..."
