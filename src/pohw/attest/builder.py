from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from ..api.models import (
    AssistanceProfile,
    Attestation,
    Citation,
    HumanThresholds,
    ProcessMetrics,
    ProcessMetricsSummary,
)
from ..clock import now_iso
from ..errors import InvalidInput, NoIdentity
from ..identity.keys import Identity, sign_claim
from ..process.environment import authored_on_device, environment_attestation
from ..process.tracker import DEFAULT_THRESHOLDS, meets_thresholds, process_digest
from ..receipts.digest import compound_digest, normalize_hash

# Below all three of these a session is treated as pasted/generated output
GENERATED_MAX_ENTROPY = 0.1
GENERATED_MAX_DURATION_MS = 5_000
GENERATED_MAX_EVENTS = 5

_DISCLOSED = (AssistanceProfile.AI_ASSISTED, AssistanceProfile.AI_GENERATED)


def _as_profile(value: Union[str, AssistanceProfile, None]) -> Optional[AssistanceProfile]:
    if value is None or value == "":
        return None
    try:
        return AssistanceProfile(value)
    except ValueError:
        raise InvalidInput(f"Unknown assistance profile: {value!r}") from None


def resolve_assistance_profile(
    metrics: Optional[ProcessMetrics],
    declared: Union[str, AssistanceProfile, None] = None,
    thresholds: HumanThresholds = DEFAULT_THRESHOLDS,
) -> AssistanceProfile:
    """Pick the assistance profile for a claim; first matching rule wins.

    An explicit AI disclosure is never overridden by timing heuristics. With no timing
    data at all the declaration (or ``human-only``) is taken at face value. The threshold
    gate is evaluated on the metric values; a stored ``meets_thresholds`` flag is ignored.
    """
    profile = _as_profile(declared)
    if profile in _DISCLOSED:
        return profile
    if metrics is not None:
        if meets_thresholds(metrics, thresholds):
            return AssistanceProfile.HUMAN_ONLY
        if (
            metrics.entropy < GENERATED_MAX_ENTROPY
            and metrics.duration_ms < GENERATED_MAX_DURATION_MS
            and metrics.event_count < GENERATED_MAX_EVENTS
        ):
            return AssistanceProfile.AI_GENERATED
        return AssistanceProfile.AI_ASSISTED
    return profile or AssistanceProfile.HUMAN_ONLY


def build_claim(
    content_digest: str,
    identifier: str,
    timestamp: str,
    proc_digest: Optional[str] = None,
) -> dict[str, str]:
    claim = {"hash": content_digest, "did": identifier, "timestamp": timestamp}
    if proc_digest:
        claim["processDigest"] = proc_digest
        claim["compoundHash"] = compound_digest(content_digest, proc_digest)
    return claim


def build_attestation(
    content_digest: str,
    identity: Optional[Identity],
    metrics: Optional[ProcessMetrics] = None,
    user_declared_profile: Union[str, AssistanceProfile, None] = None,
    citations: Optional[Iterable[Citation]] = None,
    content_uri: Optional[str] = None,
    timestamp: Optional[str] = None,
    thresholds: HumanThresholds = DEFAULT_THRESHOLDS,
) -> Attestation:
    """Assemble and sign the wire attestation for one piece of content.

    Only the claim subset (hash, did, timestamp, processDigest, compoundHash) is signed;
    environment, profile, metrics summary, citations and content URI ride along unsigned.
    """
    if identity is None:
        raise NoIdentity()
    content_digest = normalize_hash(content_digest)
    if metrics is not None:
        # the summary carries the gate result for these numbers, not a caller-supplied flag
        metrics = metrics.model_copy(update={"meets_thresholds": meets_thresholds(metrics, thresholds)})
    proc_digest = process_digest(metrics) if metrics is not None else None
    claim = build_claim(content_digest, identity.identifier, timestamp or now_iso(), proc_digest)
    signature = sign_claim(identity, claim)

    profile = resolve_assistance_profile(metrics, user_declared_profile, thresholds)
    if metrics is not None and not metrics.meets_thresholds:
        logging.info("Process metrics below human thresholds; assistance profile %s", profile.value)

    cited = list(citations) if citations else None
    return Attestation(
        content_hash=claim["hash"],
        did=claim["did"],
        timestamp=claim["timestamp"],
        signature=signature,
        process_digest=claim.get("processDigest"),
        compound_hash=claim.get("compoundHash"),
        authored_on_device=authored_on_device(),
        environment_attestation=environment_attestation(profile, metrics, thresholds),
        assistance_profile=profile,
        process_metrics=ProcessMetricsSummary.from_metrics(metrics) if metrics is not None else None,
        derived_from=cited or None,
        content_uri=content_uri,
    )
