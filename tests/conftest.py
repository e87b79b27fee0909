# conftest.py
# Puts the repository root on sys.path so tests import ruleroute and the
# scripts/ CLI without an editable install, and provides rule factories.

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from ruleroute.core.models import Rule  # noqa: E402

NOW = datetime(2026, 2, 19, tzinfo=timezone.utc)


def content_for_tokens(tokens: int, title: str = "Rule") -> str:
    """Content that makes estimate_rule_tokens() come out at exactly `tokens`."""
    return "x" * (tokens * 4 - len(title) - 1)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_rule():
    """Factory for Rule snapshots with sensible defaults."""

    def _make(**overrides) -> Rule:
        data = {
            "id": "rule-1",
            "title": "Default Rule",
            "content": "Always keep code deterministic and observable.",
            "updated_at": NOW,
        }
        data.update(overrides)
        return Rule(**data)

    return _make
