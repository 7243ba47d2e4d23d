from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..api.models import ClaimMetadata, VerificationResult


class VerdictType(str, Enum):
    HUMAN_AUTHORED = "human-authored"
    HUMAN_APPROVED = "human-approved"
    AI_ASSISTED = "ai-assisted"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class Verdict:
    type: VerdictType
    explanation: str


def classify(result: VerificationResult, claim: Optional[ClaimMetadata] = None) -> Verdict:
    """Derive the authorship verdict from verification evidence.

    Rules are evaluated in priority order and the first match is returned. An invalid
    result is always indeterminate, whatever the claim metadata says.
    """
    if not result.valid:
        return Verdict(VerdictType.INDETERMINATE, "Proof not found or invalid")

    claim = claim or ClaimMetadata()
    if claim.has_process_digest and claim.has_entropy_proof and claim.environment_says("human-only"):
        return Verdict(
            VerdictType.HUMAN_AUTHORED,
            "Verified human work with process evidence and human-only attestation",
        )

    if result.signer_id:
        if claim.environment_says("ai-assisted"):
            return Verdict(VerdictType.AI_ASSISTED, "Human-approved work with AI assistance disclosed")
        if claim.has_process_digest or claim.has_entropy_proof:
            return Verdict(VerdictType.HUMAN_APPROVED, "Verified human signature with process evidence")
        return Verdict(VerdictType.HUMAN_APPROVED, "Verified human signature (limited process evidence)")

    return Verdict(
        VerdictType.INDETERMINATE,
        "Proof is valid but lacks sufficient evidence to determine authorship type",
    )
