from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from ..api.models import ClaimMetadata, VerificationResult
from ..client.registry import RegistryClient
from ..errors import InvalidInput, MerkleMismatch, NotFound
from ..receipts.digest import normalize_hash
from ..receipts.merkle import compute_root
from .verdict import Verdict, classify

MAX_PARALLEL_VERIFICATIONS = 8


def assert_inclusion(result: VerificationResult, leaf: str) -> None:
    """Recompute the batch root from ``leaf`` and the proof path.

    Raises ``MerkleMismatch`` if it disagrees with ``result.merkle_root``, or if only one
    of root and proof is present. Results that carry neither (still pending batching)
    have nothing to check.
    """
    has_root = bool(result.merkle_root)
    has_proof = result.merkle_proof is not None
    if not has_root and not has_proof:
        return
    if has_root != has_proof:
        missing = "merkle_proof" if has_root else "merkle_root"
        raise MerkleMismatch(f"Incomplete inclusion evidence: {missing} is missing")
    try:
        computed = compute_root(leaf, result.merkle_proof, result.merkle_index)
        expected = normalize_hash(result.merkle_root)
    except InvalidInput as e:
        raise MerkleMismatch(f"Malformed Merkle proof: {e}") from e
    if computed != expected:
        raise MerkleMismatch(f"Recomputed root {computed} != claimed root {expected}")


def check_merkle(result: VerificationResult, leaf: str) -> VerificationResult:
    """Return ``result`` unchanged, or an invalid copy when its inclusion proof fails."""
    if not result.valid:
        return result
    try:
        assert_inclusion(result, leaf)
    except MerkleMismatch as e:
        logging.warning("Merkle inclusion check failed for %s: %s", leaf, e)
        return result.model_copy(update={"valid": False, "error": MerkleMismatch.kind})
    return result


@dataclass(frozen=True)
class VerificationReport:
    content_hash: str
    result: VerificationResult
    verdict: Verdict
    claim: Optional[dict[str, Any]] = None
    anchors: Optional[dict[str, Any]] = None


class Verifier:
    """Interprets registry answers for a content hash without trusting its ``valid`` flag."""

    def __init__(self, client: RegistryClient):
        self.client = client

    def verify(self, content_hash: str) -> VerificationResult:
        leaf = normalize_hash(content_hash)
        try:
            result = self.client.verify(leaf)
        except NotFound:
            return VerificationResult(valid=False, error=NotFound.kind)
        return check_merkle(result, leaf)

    def verify_many(self, hashes: Iterable[str]) -> dict[str, VerificationResult]:
        """Verify independent hashes concurrently.

        A network error on any hash is re-raised here, after the pool has drained.
        """
        leaves = [normalize_hash(h) for h in hashes]
        if not leaves:
            return {}
        with ThreadPoolExecutor(max_workers=min(MAX_PARALLEL_VERIFICATIONS, len(leaves))) as pool:
            results = list(pool.map(self.verify, leaves))
        return dict(zip(leaves, results))

    def _optional(self, fetch, *args) -> Optional[dict[str, Any]]:
        try:
            return fetch(*args)
        except NotFound:
            return None

    def report(self, content_hash: str) -> VerificationReport:
        leaf = normalize_hash(content_hash)
        result = self.verify(leaf)
        claim_doc = anchors = None
        if result.valid:
            claim_doc = self._optional(self.client.get_claim, leaf)
            if result.batch_id:
                anchors = self._optional(self.client.get_batch_anchors, result.batch_id)
        verdict = classify(result, ClaimMetadata.from_claim_document(claim_doc))
        return VerificationReport(
            content_hash=leaf,
            result=result,
            verdict=verdict,
            claim=claim_doc,
            anchors=anchors,
        )
