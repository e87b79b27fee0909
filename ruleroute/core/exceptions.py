"""Custom exceptions for the rule routing engine."""

from typing import Any, Optional


class RuleRouteError(Exception):
    """Base exception for ruleroute."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(RuleRouteError):
    """Malformed or missing rule fields (not Pydantic)."""

    pass


class RuleNotFoundError(RuleRouteError):
    """Rule id is unknown to the store."""

    def __init__(
        self,
        rule_id: str,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(f"global rule not found: {rule_id}", context)
        self.rule_id = rule_id


class AccessDeniedError(RuleRouteError):
    """
    Caller may not read or manage rules in the requested scope.

    Raised by access guards before the engine is invoked.
    """

    def __init__(
        self,
        message: str,
        scope: str,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.scope = scope
