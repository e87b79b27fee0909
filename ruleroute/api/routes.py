"""
Rules Router - API endpoints for global rule bundles.

Provides endpoints to:
- Build a two-scope rule bundle for a query
- Preview or replace a scope summary
- Score ad-hoc rules against a query (routing diagnostics)
- Inspect effective engine settings
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ruleroute.core.exceptions import AccessDeniedError, RuleNotFoundError, RuleRouteError, ValidationError
from ruleroute.core.models import (
    Rule,
    RoutingMode,
    RoutingScoreBreakdown,
    RuleBundle,
    RuleScope,
    RuleSummary,
    SummaryMode,
)
from ruleroute.api.dependencies import get_rule_service
from ruleroute.rules.router import pick_routed_ids, route_rules
from ruleroute.rules.service import RuleBundleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rules", tags=["rules"])


# =============================================================================
# Request/Response Models
# =============================================================================


class BundleRequest(BaseModel):
    """Request body for building a rule bundle."""
    workspace_id: str
    user_id: str
    query: Optional[str] = None
    context_hint: Optional[str] = None
    total_budget: Optional[int] = None
    include_routing_debug: Optional[bool] = None


class SummarizeRequest(BaseModel):
    """Request body for summarizing a scope."""
    workspace_id: str
    scope: RuleScope = RuleScope.WORKSPACE
    user_id: Optional[str] = None
    mode: SummaryMode = SummaryMode.PREVIEW
    actor_user_id: Optional[str] = None
    reason: Optional[str] = None


class RoutePreviewRequest(BaseModel):
    """Rules and query to score without touching the store."""
    rules: list[Rule] = Field(default_factory=list)
    query: str
    mode: RoutingMode = RoutingMode.HYBRID
    scope: RuleScope = RuleScope.WORKSPACE
    top_k: int = Field(default=5, ge=1, le=100)
    min_score: float = Field(default=0.2, ge=0.0, le=1.0)


class RoutePreviewResponse(BaseModel):
    routed_rule_ids: list[str]
    score_breakdown: list[RoutingScoreBreakdown]


def _to_http_error(error: RuleRouteError) -> HTTPException:
    if isinstance(error, AccessDeniedError):
        return HTTPException(status_code=403, detail=error.message)
    if isinstance(error, RuleNotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/bundle", response_model=RuleBundle)
async def build_bundle(
    request: BundleRequest,
    service: RuleBundleService = Depends(get_rule_service),
):
    """
    Build the global rules bundle for a user.

    Raises:
        403: If the access guard rejects the workspace or user scope
    """
    try:
        return service.build_bundle(
            request.workspace_id,
            request.user_id,
            query=request.query,
            context_hint=request.context_hint,
            total_budget=request.total_budget,
            include_routing_debug=request.include_routing_debug,
        )
    except RuleRouteError as e:
        logger.warning(f"Bundle request failed: {e.message}")
        raise _to_http_error(e)


@router.post("/summarize", response_model=RuleSummary)
async def summarize_rules(
    request: SummarizeRequest,
    service: RuleBundleService = Depends(get_rule_service),
):
    """Preview a scope summary, or replace the stored one."""
    try:
        return service.summarize(
            request.workspace_id,
            request.scope,
            user_id=request.user_id,
            mode=request.mode,
            actor_user_id=request.actor_user_id,
            reason=request.reason,
        )
    except RuleRouteError as e:
        logger.warning(f"Summarize request failed: {e.message}")
        raise _to_http_error(e)


@router.post("/route", response_model=RoutePreviewResponse)
async def preview_routing(request: RoutePreviewRequest):
    """Score the given rules against a query. Nothing is persisted."""
    breakdowns = route_rules(request.rules, request.query, request.mode, request.scope)
    return RoutePreviewResponse(
        routed_rule_ids=pick_routed_ids(breakdowns, request.top_k, request.min_score),
        score_breakdown=breakdowns,
    )


@router.get("/settings")
async def get_engine_settings(service: RuleBundleService = Depends(get_rule_service)):
    """Effective selection, budget and routing settings."""
    return service.settings.model_dump(mode="json")
