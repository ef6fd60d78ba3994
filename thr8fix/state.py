"""Pydantic models and enums for the remediation pipeline."""

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, value) -> Optional["Severity"]:
        """Case-insensitive lookup. Unknown or empty values map to None."""
        if isinstance(value, cls):
            return value
        if not value:
            return None
        wanted = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class Priority(str, Enum):
    IMMEDIATE = "Immediate"
    SHORT_TERM = "Short-term"
    MEDIUM_TERM = "Medium-term"
    LONG_TERM = "Long-term"

    @classmethod
    def parse(cls, value) -> Optional["Priority"]:
        if isinstance(value, cls):
            return value
        if not value:
            return None
        wanted = str(value).strip().lower().replace(" ", "-").replace("_", "-")
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    Priority.IMMEDIATE: 4,
    Priority.SHORT_TERM: 3,
    Priority.MEDIUM_TERM: 2,
    Priority.LONG_TERM: 1,
}


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class StopReason(str, Enum):
    COMPLETE = "complete"
    TRUNCATED = "truncated"
    OTHER = "other"


class Route(str, Enum):
    PR = "pr"
    ISSUE = "issue"
    SKIP = "skip"


class FindingState(str, Enum):
    PENDING = "pending"
    PR_ATTEMPT = "pr-attempt"
    ISSUE_ATTEMPT = "issue-attempt"
    SKIP = "skip"
    PR_CREATED = "pr-created"
    PR_FALLBACK_TO_ISSUE = "pr-fallback-to-issue"
    ISSUE_CREATED = "issue-created"
    SKIPPED = "skipped"
    # dedup hits: the artifact already existed, nothing was written
    PR_EXISTS = "pr-exists"
    ISSUE_EXISTS = "issue-exists"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Threat model
# ---------------------------------------------------------------------------

def _scalar_as_str(v):
    """Numeric ids (``"id": 1``) become strings."""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


def _none_as_text(v):
    return "" if v is None else _scalar_as_str(v)


def _id_list(v):
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return [_scalar_as_str(x) for x in v if x is not None]
    return v


def _keep_valid(model, items, kind: str):
    """Validate records one by one so a single malformed entry is dropped, not fatal."""
    if items is None:
        return []
    if not isinstance(items, list):
        return items
    kept = []
    for i, item in enumerate(items):
        try:
            kept.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"[INPUT] Dropping malformed {kind} #{i} ({e.error_count()} error(s))")
    return kept


class Vulnerability(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    severity: Optional[Severity] = None

    @field_validator("severity", mode="before")
    @classmethod
    def _parse_severity(cls, v):
        return Severity.parse(v)

    _id = field_validator("id", mode="before")(_scalar_as_str)
    _text = field_validator("title", "description", mode="before")(_none_as_text)


class Risk(BaseModel):
    risk_id: str = ""
    title: str = ""
    pasta_level: Optional[str] = None
    business_impact: Optional[str] = None
    mitigation_complexity: Optional[str] = None
    linked_vulnerabilities: list[str] = []

    _id = field_validator("risk_id", mode="before")(_scalar_as_str)
    _text = field_validator("title", mode="before")(_none_as_text)
    _links = field_validator("linked_vulnerabilities", mode="before")(_id_list)


class Recommendation(BaseModel):
    priority: Optional[Priority] = None
    action: str = ""
    addresses: list[str] = []

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, v):
        return Priority.parse(v)

    _text = field_validator("action", mode="before")(_none_as_text)
    _links = field_validator("addresses", mode="before")(_id_list)


class AttackSurface(BaseModel):
    name: str = ""
    vulnerabilities: list[Vulnerability] = []

    @field_validator("vulnerabilities", mode="before")
    @classmethod
    def _drop_malformed(cls, v):
        return _keep_valid(Vulnerability, v, "vulnerability")


class ThreatModel(BaseModel):
    attack_surfaces: list[AttackSurface] = []
    risk_analysis: list[Risk] = []
    tactical_recommendations: list[Recommendation] = []

    @field_validator("attack_surfaces", mode="before")
    @classmethod
    def _surfaces(cls, v):
        return _keep_valid(AttackSurface, v, "attack surface")

    @field_validator("risk_analysis", mode="before")
    @classmethod
    def _risks(cls, v):
        return _keep_valid(Risk, v, "risk")

    @field_validator("tactical_recommendations", mode="before")
    @classmethod
    def _recommendations(cls, v):
        return _keep_valid(Recommendation, v, "recommendation")

    def vulnerabilities(self) -> list[Vulnerability]:
        return [v for surface in self.attack_surfaces for v in surface.vulnerabilities]


class ScannedFile(BaseModel):
    path: str
    content: str = ""

    _text = field_validator("content", mode="before")(_none_as_text)


# ---------------------------------------------------------------------------
# Fix proposals and LLM completions
# ---------------------------------------------------------------------------

class FixFile(BaseModel):
    path: str
    original_content: str = ""
    fixed_content: str


class FixProposal(BaseModel):
    confidence: Confidence = Confidence.LOW
    explanation: str = ""
    files: list[FixFile] = []
    notes: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _parse_confidence(cls, v):
        try:
            return Confidence(str(v).strip().lower())
        except ValueError:
            return Confidence.LOW


class Completion(BaseModel):
    text: str = ""
    stop_reason: StopReason = StopReason.COMPLETE


class CompletionRequest(BaseModel):
    system: str
    messages: list[dict]
    max_output_tokens: int = 8192


# ---------------------------------------------------------------------------
# Artifacts, policy and results
# ---------------------------------------------------------------------------

class ArtifactRef(BaseModel):
    number: int
    title: str = ""
    url: str = ""


class CreateResult(BaseModel):
    created: bool
    artifact: ArtifactRef


class LabelStatus(str, Enum):
    EXISTING = "existing"
    CREATED = "created"
    # another creator won the race between our lookup and our create
    CONFLICT = "conflict"


class RemediationPolicy(BaseModel):
    create_issues: bool = True
    auto_fix: bool = False
    pr_severities: set[Severity] = {Severity.CRITICAL, Severity.HIGH}
    elevated_priorities: set[Priority] = {Priority.IMMEDIATE}
    require_recommendation_for_pr: bool = True

    @field_validator("pr_severities", mode="before")
    @classmethod
    def _parse_pr_severities(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        parsed = {Severity.parse(s) for s in v}
        parsed.discard(None)
        return parsed


class RemediationError(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vuln_id: str = Field(alias="vulnId")
    error: str


class RemediationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    issues_created: list[ArtifactRef] = Field(default_factory=list, alias="issuesCreated")
    prs_created: list[ArtifactRef] = Field(default_factory=list, alias="prsCreated")
    errors: list[RemediationError] = []
    outcomes: dict[str, FindingState] = {}
