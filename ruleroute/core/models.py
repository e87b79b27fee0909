"""Pydantic models for the rule routing engine."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class RuleScope(str, Enum):
    """Where a rule applies."""

    WORKSPACE = "workspace"
    USER = "user"


class RuleCategory(str, Enum):
    POLICY = "policy"
    SECURITY = "security"
    STYLE = "style"
    PROCESS = "process"
    OTHER = "other"


class RuleSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SelectionMode(str, Enum):
    """Default ordering for rules that routing did not pick."""

    SCORE = "score"
    RECENT = "recent"
    PRIORITY_ONLY = "priority_only"


class RoutingMode(str, Enum):
    """How query relevance blends cosine and keyword overlap."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class WarningLevel(str, Enum):
    INFO = "info"
    WARN = "warn"


class SummaryMode(str, Enum):
    PREVIEW = "preview"
    REPLACE = "replace"


# =============================================================================
# Rules
# =============================================================================

class Rule(BaseModel):
    """Immutable snapshot of a stored rule, as read by the engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    scope: RuleScope = RuleScope.WORKSPACE
    workspace_id: Optional[str] = None
    user_id: Optional[str] = None
    title: str
    content: str
    category: RuleCategory = RuleCategory.POLICY
    priority: int = Field(default=3, ge=1, le=5)
    severity: RuleSeverity = RuleSeverity.MEDIUM
    pinned: bool = False
    enabled: bool = True
    tags: list[str] = Field(default_factory=list)
    usage_count: int = Field(default=0, ge=0)
    last_routed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: datetime


class NormalizedRuleInput(BaseModel):
    """Write-path rule fields after clamping and trimming."""

    scope: RuleScope = RuleScope.WORKSPACE
    user_id: str = ""
    title: str = ""
    content: str = ""
    category: RuleCategory = RuleCategory.POLICY
    priority: int = 3
    severity: RuleSeverity = RuleSeverity.MEDIUM
    pinned: bool = False
    enabled: bool = True
    tags: list[str] = Field(default_factory=list)


class RuleSummary(BaseModel):
    """Condensed digest of a scope's rules. One per (scope, workspace, user)."""

    scope: RuleScope
    workspace_id: str
    user_id: Optional[str] = None
    summary_text: str
    source_rule_ids: list[str] = Field(default_factory=list)
    updated_at: Optional[datetime] = None


# =============================================================================
# Selection
# =============================================================================

class SelectedRule(BaseModel):
    """A rule that made it into a bundle, with the reason it did."""

    id: str
    title: str
    content: str
    category: RuleCategory
    priority: int
    severity: RuleSeverity
    pinned: bool
    token_estimate: int
    selected_reason: str
    score: Optional[float] = None


class RoutingScoreBreakdown(BaseModel):
    """Per-rule routing diagnostics. Only exposed when debug is requested."""

    rule_id: str
    scope: RuleScope
    semantic: float
    keyword: float
    priority: float
    recency: float
    length_penalty: float
    final: float
    selected: bool = False
    reason: str = ""


class SelectionWarning(BaseModel):
    level: WarningLevel
    message: str


class RoutingConfig(BaseModel):
    """Routing parameters for one selection run."""

    enabled: bool = False
    mode: RoutingMode = RoutingMode.HYBRID
    query: str = ""
    top_k: int = 5
    min_score: float = 0.2


class RoutingOutcome(BaseModel):
    mode: RoutingMode
    q_used: str
    selected_rule_ids: list[str] = Field(default_factory=list)
    dropped_rule_ids: list[str] = Field(default_factory=list)
    score_breakdown: list[RoutingScoreBreakdown] = Field(default_factory=list)


class SelectionResult(BaseModel):
    """Output of one scope's selection run. Transient."""

    selected: list[SelectedRule] = Field(default_factory=list)
    omitted_count: int = 0
    warnings: list[SelectionWarning] = Field(default_factory=list)
    used_summary: bool = False
    summary_reason: Optional[str] = None
    routing: Optional[RoutingOutcome] = None


# =============================================================================
# Bundle
# =============================================================================

class BudgetAllocation(BaseModel):
    total_budget: int
    workspace_budget: int
    user_budget: int


class BundleRouting(BaseModel):
    mode: RoutingMode
    q_used: Optional[str] = None
    selected_rule_ids: list[str] = Field(default_factory=list)
    dropped_rule_ids: list[str] = Field(default_factory=list)
    score_breakdown: Optional[list[RoutingScoreBreakdown]] = None


class BundleDebug(BaseModel):
    workspace_budget_tokens: int
    user_budget_tokens: int
    workspace_selected_count: int
    user_selected_count: int
    workspace_omitted_count: int
    user_omitted_count: int
    selection_mode: SelectionMode
    routing_enabled: bool
    routing_mode: RoutingMode
    routing_top_k: int
    routing_min_score: float
    q_used: Optional[str] = None


class RuleBundle(BaseModel):
    """Rules (and optional summaries) assembled for one context injection."""

    workspace_rules: list[SelectedRule] = Field(default_factory=list)
    user_rules: list[SelectedRule] = Field(default_factory=list)
    workspace_summary: Optional[str] = None
    user_summary: Optional[str] = None
    routing: BundleRouting
    warnings: list[SelectionWarning] = Field(default_factory=list)
    debug: BundleDebug

    def to_context_block(self) -> str:
        """Format as a context block for LLM consumption."""
        lines = ["## Global Rules"]

        for heading, rules, summary in (
            ("Workspace", self.workspace_rules, self.workspace_summary),
            ("User", self.user_rules, self.user_summary),
        ):
            if not rules and not summary:
                continue
            lines.append("")
            lines.append(f"### {heading}")
            for rule in rules:
                flags = [rule.category.value, rule.severity.value, f"p{rule.priority}"]
                if rule.pinned:
                    flags.append("pinned")
                lines.append(f"- [{'|'.join(flags)}] {rule.title}: {rule.content}")
            if summary:
                lines.append("")
                lines.append(summary)

        if len(lines) == 1:
            lines.append("- No active rules.")
        return "\n".join(lines)
