from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssistanceProfile(str, Enum):
    HUMAN_ONLY = "human-only"
    AI_ASSISTED = "AI-assisted"
    AI_GENERATED = "AI-generated"


class HumanThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_duration_ms: int = 30_000
    min_entropy: float = 0.3  # minimum input variation
    min_temporal_coherence: float = 0.2
    max_input_rate: float = 20.0  # events per second
    min_event_interval_ms: int = 50  # machine-speed input floor


class ProcessMetrics(BaseModel):
    session_start: Optional[str] = None
    session_end: Optional[str] = None
    duration_ms: int
    entropy: float = Field(ge=0.0, le=1.0)
    temporal_coherence: float = Field(ge=0.0, le=1.0)
    event_count: int
    timing_variance_ms: float = 0.0  # population stddev of intervals
    avg_interval_ms: float = 0.0
    min_interval_ms: int = 0
    max_interval_ms: int = 0
    meets_thresholds: bool = False


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ProcessMetricsSummary(_WireModel):
    duration: int
    entropy: float
    temporal_coherence: float = Field(alias="temporalCoherence")
    input_events: int = Field(alias="inputEvents")
    meets_thresholds: bool = Field(alias="meetsThresholds")

    @classmethod
    def from_metrics(cls, m: ProcessMetrics) -> "ProcessMetricsSummary":
        return cls(
            duration=m.duration_ms,
            entropy=m.entropy,
            temporal_coherence=m.temporal_coherence,
            input_events=m.event_count,
            meets_thresholds=m.meets_thresholds,
        )


class CitationPosition(_WireModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class ContentAddress(_WireModel):
    type: str  # ipfs | arweave
    value: str
    url: str


class Citation(_WireModel):
    text: str
    source: str
    source_type: str = Field(alias="sourceType")
    position: CitationPosition
    other_type: Optional[str] = Field(default=None, alias="otherType")
    content_address: Optional[ContentAddress] = Field(default=None, alias="contentAddress")


class Attestation(_WireModel):
    content_hash: str = Field(alias="hash")
    did: str
    timestamp: str
    signature: str
    process_digest: Optional[str] = Field(default=None, alias="processDigest")
    compound_hash: Optional[str] = Field(default=None, alias="compoundHash")
    authored_on_device: Optional[str] = Field(default=None, alias="authoredOnDevice")
    environment_attestation: list[str] = Field(default_factory=list, alias="environmentAttestation")
    assistance_profile: AssistanceProfile = Field(alias="assistanceProfile")
    process_metrics: Optional[ProcessMetricsSummary] = Field(default=None, alias="processMetrics")
    derived_from: Optional[list[Citation]] = Field(default=None, alias="derivedFrom")
    content_uri: Optional[str] = Field(default=None, alias="contentUri")


class Receipt(BaseModel):
    model_config = ConfigDict(extra="allow")

    receipt_hash: Optional[str] = None
    hash: Optional[str] = None
    proof_hash: Optional[str] = None

    def proof_reference(self) -> Optional[str]:
        return self.receipt_hash or self.hash or self.proof_hash


class VerificationResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    valid: bool = False
    signer: Optional[str] = None
    did: Optional[str] = None
    timestamp: Optional[str] = None
    merkle_proof: Optional[list[str]] = None
    merkle_root: Optional[str] = None
    merkle_index: Optional[int] = None
    batch_id: Optional[str] = None
    batch_size: Optional[int] = None
    pending_count: Optional[int] = None
    error: Optional[str] = None
    proof: Optional[dict[str, Any]] = None

    @field_validator("batch_id", mode="before")
    @classmethod
    def _batch_id_str(cls, v):
        return None if v is None else str(v)

    @property
    def signer_id(self) -> Optional[str]:
        return self.signer or self.did


class ClaimMetadata(BaseModel):
    """The claim-side evidence a verdict needs, independent of where it came from."""

    has_process_digest: bool = False
    has_entropy_proof: bool = False
    environment: list[str] = Field(default_factory=list)

    def environment_says(self, mode: str) -> bool:
        needle = mode.lower()
        return any(needle in e.lower() for e in self.environment)

    @classmethod
    def from_claim_document(cls, doc: Optional[dict[str, Any]]) -> "ClaimMetadata":
        if not doc:
            return cls()
        env = doc.get("pav:environmentAttestation") or []
        if isinstance(env, str):
            env = [env]
        return cls(
            has_process_digest=bool(doc.get("pav:processDigest")),
            has_entropy_proof=bool(doc.get("pav:entropyProof")),
            environment=[str(e) for e in env],
        )

    @classmethod
    def from_attestation(cls, att: Attestation) -> "ClaimMetadata":
        return cls(
            has_process_digest=bool(att.process_digest),
            has_entropy_proof=att.process_metrics is not None,
            environment=list(att.environment_attestation),
        )


class NodeInfo(BaseModel):
    id: str
    name: str
    url: str
    operator: str = "Unknown"
    verified: bool = False
    primary: bool = False

    @field_validator("url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")


class NodeStatus(NodeInfo):
    status: str = "unknown"
    active: bool = False
    latest_hash: Optional[str] = None
    timestamp: Optional[str] = None
    total_proofs: Optional[int] = None
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


class ProofQuery(BaseModel):
    did: Optional[str] = None
    tier: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    sort: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)
    offset: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def to_params(self) -> dict[str, str]:
        params = {}
        for k, v in self.model_dump(by_alias=True, exclude_none=True).items():
            if k == "tier" and v == "all":
                continue
            params[k] = str(v)
        return params
