"""
Typed data model for ProviderTrust.

Every artifact produced by a verification run (security assessment, address
assessment, evidence, scoring result, enrichment) is an immutable pydantic
model so that persisted state can be re-validated when read back.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


def utc_now() -> datetime:
    """Current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


class ProviderTrustError(Exception):
    """Base exception for ProviderTrust."""


class RecordValidationError(ProviderTrustError):
    """Raised when a raw provider record fails boundary validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class AdapterError(ProviderTrustError):
    """Raised by evidence adapters when a registry lookup fails."""


class EnrichmentError(ProviderTrustError):
    """Raised by enrichers when the collaborator fails or misbehaves."""


class ProvenanceType(str, Enum):
    """How a piece of evidence was obtained, ordered by decreasing trust."""

    LIVE_API = "LIVE_API"
    CACHED_VALID = "CACHED_VALID"
    STALE_LIVE = "STALE_LIVE"
    SIMULATION = "SIMULATION"
    USER_INPUT = "USER_INPUT"


class LicenseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


class VerificationStatus(str, Enum):
    """Verdict produced by the scoring engine."""

    VERIFIED = "VERIFIED"
    FLAGGED = "FLAGGED"
    BLOCKED = "BLOCKED"
    UNVERIFIED = "UNVERIFIED"


class WorkflowStatus(str, Enum):
    """Persisted status of a provider record."""

    PROCESSING = "Processing"
    READY = "Ready"
    FLAGGED = "Flagged"
    BLOCKED = "Blocked"
    UNVERIFIED = "Unverified"


class Agent(str, Enum):
    """Emitter of a progress event."""

    ORCHESTRATOR = "ORCHESTRATOR"
    SECURITY = "SECURITY"
    VALIDATOR = "VALIDATOR"
    ACQUISITION = "ACQUISITION"
    JUDGE = "JUDGE"
    ENRICHMENT = "ENRICHMENT"
    SYSTEM = "SYSTEM"


class EventLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ProviderRecord(BaseModel):
    """Claimed provider identity submitted by an operator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    identifier: StrictStr
    name: StrictStr
    address: StrictStr
    input_source: Optional[StrictStr] = None
    specialties: List[StrictStr] = Field(default_factory=list)


class EvidenceDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str = ""
    name: str = ""
    address: str = ""
    license_status: LicenseStatus
    specialties: List[str] = Field(default_factory=list)


class EvidenceRecord(BaseModel):
    """Evidence returned by an acquisition adapter, tagged with its provenance."""

    model_config = ConfigDict(frozen=True)

    provenance: ProvenanceType
    observed_at: datetime = Field(default_factory=utc_now)
    details: EvidenceDetails


class AddressAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    inferred_country: Optional[str] = None
    confidence: int = Field(..., ge=0, le=100)
    issues: List[str] = Field(default_factory=list)
    normalized_address: str = ""


class SecurityAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: bool
    reasons: List[str] = Field(default_factory=list)


class ScoringResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity_score: int = Field(..., ge=0, le=100)
    trust_level: float = Field(..., ge=0.0, le=1.0)
    is_fatal: bool = False
    discrepancies: List[str] = Field(default_factory=list)
    final_status: VerificationStatus


class EnrichmentData(BaseModel):
    model_config = ConfigDict(frozen=True)

    bio: str
    education_summary: str = ""
    generated_at: datetime = Field(default_factory=utc_now)


class ProgressEvent(BaseModel):
    """Advisory progress event emitted by a workflow stage."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    agent: Agent
    message: str
    level: EventLevel = EventLevel.INFO
    timestamp: datetime = Field(default_factory=utc_now)


class ProviderState(BaseModel):
    """Persisted per-record state, accumulated stage by stage."""

    model_config = ConfigDict(extra="ignore")

    provider_id: str
    record: Optional[ProviderRecord] = None
    status: WorkflowStatus = WorkflowStatus.PROCESSING
    security_check: Optional[SecurityAssessment] = None
    address_verification: Optional[AddressAssessment] = None
    evidence: Optional[EvidenceRecord] = None
    scoring: Optional[ScoringResult] = None
    enrichment: Optional[EnrichmentData] = None
    audit_log: List[str] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
