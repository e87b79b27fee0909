"""
Rule input normalization for the write path.

Raw payloads (API bodies, YAML files) are clamped into canonical form before
they reach the store:

- priority: integer in [1, 5], default 3
- severity: low | medium | high, default medium
- category: policy | security | style | process | other, default policy
- tags: lowercase, whitespace -> hyphen, deduped, <= 64 chars each, <= 100 total
- title <= 200 chars, content <= 10,000 chars (both trimmed)
"""

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ruleroute.core.config import clamp_int
from ruleroute.core.exceptions import ValidationError
from ruleroute.core.models import (
    NormalizedRuleInput,
    Rule,
    RuleCategory,
    RuleScope,
    RuleSeverity,
)

MAX_TITLE_CHARS = 200
MAX_CONTENT_CHARS = 10000
MAX_TAG_CHARS = 64
MAX_TAGS = 100

_TAG_SPLIT = re.compile(r"[,\n]")
_WHITESPACE = re.compile(r"\s+")


def _enum_or_default(enum_cls, value: Any, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def normalize_scope(value: Any) -> RuleScope:
    return _enum_or_default(RuleScope, value, RuleScope.WORKSPACE)


def normalize_category(value: Any) -> RuleCategory:
    return _enum_or_default(RuleCategory, value, RuleCategory.POLICY)


def normalize_severity(value: Any) -> RuleSeverity:
    return _enum_or_default(RuleSeverity, value, RuleSeverity.MEDIUM)


def normalize_priority(value: Any) -> int:
    return clamp_int(3 if value is None else value, 3, 1, 5)


def normalize_title(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:MAX_TITLE_CHARS]


def normalize_content(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:MAX_CONTENT_CHARS]


def normalize_tags(value: Any) -> list[str]:
    """Accepts a list or a comma/newline separated string."""
    if isinstance(value, (list, tuple, set)):
        source = list(value)
    elif isinstance(value, str):
        source = _TAG_SPLIT.split(value)
    else:
        source = []

    tags: list[str] = []
    seen: set[str] = set()
    for item in source:
        tag = _WHITESPACE.sub("-", str(item or "").strip().lower())
        if not tag or len(tag) > MAX_TAG_CHARS or tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
    return tags[:MAX_TAGS]


def normalize_rule_input(raw: Mapping[str, Any], mode: str = "create") -> NormalizedRuleInput:
    """
    Clamp a raw rule payload into canonical form.

    Args:
        raw: Untrusted field mapping
        mode: "create" requires non-empty title and content; "update" does not

    Raises:
        ValidationError: On create, when title or content is empty after trimming
    """
    user_id = raw.get("user_id")
    normalized = NormalizedRuleInput(
        scope=normalize_scope(raw.get("scope")),
        user_id=user_id.strip() if isinstance(user_id, str) else "",
        title=normalize_title(raw.get("title")),
        content=normalize_content(raw.get("content")),
        category=normalize_category(raw.get("category")),
        priority=normalize_priority(raw.get("priority")),
        severity=normalize_severity(raw.get("severity")),
        pinned=raw.get("pinned") is True,
        enabled=raw.get("enabled") is not False,
        tags=normalize_tags(raw.get("tags")),
    )

    if mode == "create":
        if not normalized.title:
            raise ValidationError("title is required")
        if not normalized.content:
            raise ValidationError("content is required")

    return normalized


def apply_rule_update(rule: Rule, raw: Mapping[str, Any], now: datetime) -> Rule:
    """Overwrite only the fields present in raw; empty title/content keep the old value."""
    payload = normalize_rule_input(raw, "update")
    changes: dict[str, Any] = {"updated_at": now}

    if payload.title:
        changes["title"] = payload.title
    if payload.content:
        changes["content"] = payload.content
    if "category" in raw:
        changes["category"] = payload.category
    if "priority" in raw:
        changes["priority"] = payload.priority
    if "severity" in raw:
        changes["severity"] = payload.severity
    if isinstance(raw.get("pinned"), bool):
        changes["pinned"] = payload.pinned
    if isinstance(raw.get("enabled"), bool):
        changes["enabled"] = payload.enabled
    if "tags" in raw:
        changes["tags"] = payload.tags

    return rule.model_copy(update=changes)
