"""
Core data models for the Orphan Engine.

This module defines the Pydantic models used throughout the system
for scopes, subjects, access bindings, classification verdicts and
remediation outcomes.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class SubjectKind(str, Enum):
    """Kinds of principal a binding can reference."""
    USER = "User"
    GROUP = "Group"
    SERVICE_IDENTITY = "ServiceIdentity"
    UNKNOWN = "Unknown"


class Verdict(str, Enum):
    """Classification verdict for a single binding."""
    LIVE = "Live"
    ORPHANED = "Orphaned"
    INDETERMINATE = "Indeterminate"
    FAILED = "Failed"


class RemediationMode(str, Enum):
    """How a remediation plan is carried out."""
    DRY_RUN = "DryRun"
    EXECUTE = "Execute"


class Scope(BaseModel):
    """Container (e.g. an Azure subscription) that bindings are enumerated within."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque provider identifier of the scope")
    display_name: str = Field("", description="Human-readable name of the scope")

    def __str__(self) -> str:
        return f"{self.display_name} ({self.id})" if self.display_name else self.id


class SubjectReference(BaseModel):
    """Principal referenced by a binding, as reported by the provider."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Directory object identifier")
    kind: SubjectKind = SubjectKind.UNKNOWN
    display_name: str = Field("", description="Display name reported by the provider")


class Binding(BaseModel):
    """One authorization grant: a subject holding a role over a scope."""
    model_config = ConfigDict(frozen=True)

    binding_id: str = Field(..., description="Provider-assigned binding identifier")
    subject: SubjectReference
    role_name: str = Field(..., description="Name of the granted role")
    scope: Scope
    scope_path: str = Field("", description="Resource path the grant applies to")

    @model_validator(mode="before")
    @classmethod
    def _default_scope_path(cls, data: Any) -> Any:
        # Grants made directly on the scope carry no separate path
        if isinstance(data, dict) and not data.get("scope_path"):
            scope = data.get("scope")
            scope_id = scope.get("id") if isinstance(scope, dict) else getattr(scope, "id", "")
            data = {**data, "scope_path": scope_id or ""}
        return data

    @property
    def key(self) -> Tuple[str, str, str]:
        """Natural key of the grant: (subject id, role name, scope id)."""
        return (self.subject.id, self.role_name, self.scope.id)

    def sort_key(self) -> Tuple[str, str, str, str]:
        """Ordering used for reports and exports: scope first, then subject."""
        return (self.scope.display_name, self.scope.id, self.subject.id, self.role_name)


class ClassificationResult(BaseModel):
    """Verdict reached for a binding in a single run."""
    binding: Binding
    verdict: Verdict
    reason: str = ""
    error: Optional[str] = None

    @property
    def orphaned(self) -> bool:
        return self.verdict == Verdict.ORPHANED


class RemediationOutcome(BaseModel):
    """Result of removing (or simulating removal of) one orphaned binding."""
    binding: Binding
    attempted: bool = False
    succeeded: bool = False
    error: Optional[str] = None
    completed_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_consistency(self) -> "RemediationOutcome":
        if self.succeeded and (not self.attempted or self.error):
            raise ValueError("A successful outcome must be attempted and carry no error")
        return self


class RemediationPlan(BaseModel):
    """Ordered set of bindings scheduled for removal."""
    items: List[Binding] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def __len__(self) -> int:
        return len(self.items)


class ScopeReport(BaseModel):
    """Per-scope result of enumeration and classification."""
    scope: Scope
    skipped: bool = False
    error: Optional[str] = None
    classifications: List[ClassificationResult] = Field(default_factory=list)

    @property
    def binding_count(self) -> int:
        return len(self.classifications)

    @property
    def orphaned(self) -> List[Binding]:
        return [c.binding for c in self.classifications if c.orphaned]


class RunSummary(BaseModel):
    """Structured result of a complete sweep run, consumed by reporters."""
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    scopes: List[ScopeReport] = Field(default_factory=list)
    orphaned: List[Binding] = Field(default_factory=list)
    indeterminate: List[ClassificationResult] = Field(default_factory=list)
    remediation_mode: Optional[RemediationMode] = None
    confirmation_declined: bool = False
    outcomes: List[RemediationOutcome] = Field(default_factory=list)
    export_path: Optional[str] = None
    errors: List[str] = Field(default_factory=list)

    @property
    def skipped_scopes(self) -> List[ScopeReport]:
        return [s for s in self.scopes if s.skipped]

    @property
    def total_bindings(self) -> int:
        return sum(s.binding_count for s in self.scopes)

    @property
    def succeeded_count(self) -> int:
        return len([o for o in self.outcomes if o.succeeded])

    @property
    def failed_count(self) -> int:
        return len([o for o in self.outcomes if o.attempted and not o.succeeded])


class AuditRecord(BaseModel):
    """Audit record for every remediation action taken or simulated."""
    id: str = Field(..., description="Unique audit record ID")
    timestamp: datetime = Field(default_factory=utcnow)
    run_id: str = Field(..., description="ID of the sweep run that produced this record")
    action: str = Field(..., description="remove or would_remove")
    binding_id: str
    subject_id: str
    subject_kind: SubjectKind
    display_name: str = ""
    role_name: str
    scope_id: str
    scope_path: str
    attempted: bool
    success: bool = Field(..., description="Whether the action succeeded")
    error_message: Optional[str] = Field(None, description="Error details if failed")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("action")
    @classmethod
    def validate_action(cls, v: str) -> str:
        if v not in ("remove", "would_remove"):
            raise ValueError(f"Unsupported audit action: {v}")
        return v


# Type aliases for convenience
Bindings = List[Binding]
ClassificationResults = List[ClassificationResult]
RemediationOutcomes = List[RemediationOutcome]
