"""In-memory registry node for local development and tests.

Implements the registry wire contract closely enough to exercise the client stack end to
end: attestations are queued, sealed into SHA-256 Merkle batches once ``batch_size``
leaves are pending, and served back through verify/proof/proofs/claim/status. There is
no persistence and no ledger anchoring (every batch reports an empty anchor list).
"""
from __future__ import annotations

import logging
import re
import threading
from typing import Any, Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from ..api.models import Attestation
from ..clock import now_iso
from ..errors import InvalidInput
from ..receipts.digest import digest_bytes, hash_bytes, normalize_hash
from ..receipts.jcs import canonicalize_json
from ..receipts.merkle import build_merkle_tree, inclusion_proof

DEFAULT_BATCH_SIZE = 4

_DID_RE = re.compile(r"^did:pohw:[0-9a-f]{16}$")
_SIG_RE = re.compile(r"^[0-9a-f]{128}$")


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


class _Store:
    def __init__(self, batch_size: int):
        self.batch_size = batch_size
        self.lock = threading.Lock()
        self.records: dict[str, list[dict[str, Any]]] = {}
        self.pending: list[dict[str, Any]] = []
        self.batches: dict[str, dict[str, Any]] = {}
        self.latest_hash: Optional[str] = None
        self.total = 0

    def add(self, record: dict[str, Any]) -> None:
        with self.lock:
            self.records.setdefault(record["hash"], []).append(record)
            self.pending.append(record)
            self.latest_hash = record["hash"]
            self.total += 1
            if len(self.pending) >= self.batch_size:
                self._seal()

    def _seal(self) -> None:
        batch_id = str(len(self.batches) + 1)
        members = self.pending
        self.pending = []
        leaves = [digest_bytes(r["hash"]) for r in members]
        levels = build_merkle_tree(leaves)
        root = "0x" + levels[-1][0].hex()
        for i, r in enumerate(members):
            r["batch_id"] = batch_id
            r["merkle_index"] = i
            r["merkle_proof"] = inclusion_proof(i, leaves)
            r["merkle_root"] = root
        self.batches[batch_id] = {"root": root, "size": len(members), "sealed_at": now_iso()}
        logging.info("Sealed batch %s with %d leaves, root %s", batch_id, len(members), root)

    def seal_pending(self) -> None:
        with self.lock:
            if self.pending:
                self._seal()


def _record_from(att: Attestation) -> dict[str, Any]:
    record = att.to_wire()
    record["hash"] = normalize_hash(att.content_hash)
    record["submitted_at"] = now_iso()
    record["tier"] = att.assistance_profile.value
    record["receipt_hash"] = hash_bytes(canonicalize_json(record))
    return record


def _merkle_fields(record: dict[str, Any], store: _Store) -> dict[str, Any]:
    if "batch_id" not in record:
        return {"pending_count": len(store.pending)}
    return {
        "merkle_proof": record["merkle_proof"],
        "merkle_root": record["merkle_root"],
        "merkle_index": record["merkle_index"],
        "batch_id": record["batch_id"],
        "batch_size": store.batches[record["batch_id"]]["size"],
    }


def _claim_document(record: dict[str, Any]) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "@context": {"pav": "http://purl.org/pav/", "pohw": "https://proofofhumanwork.org/ns#"},
        "@type": "pohw:Claim",
        "pohw:hash": record["hash"],
        "pav:createdBy": record["did"],
        "pav:createdOn": record["timestamp"],
        "pav:signature": record["signature"],
        "pav:environmentAttestation": record.get("environmentAttestation", []),
        "pohw:assistanceProfile": record["assistanceProfile"],
    }
    if record.get("authoredOnDevice"):
        doc["pav:authoredOnDevice"] = record["authoredOnDevice"]
    if record.get("processDigest"):
        doc["pav:processDigest"] = record["processDigest"]
        doc["pohw:compoundHash"] = record.get("compoundHash")
    metrics = record.get("processMetrics")
    if metrics:
        doc["pav:entropyProof"] = f"zkp:entropy>{metrics['entropy']:.3f}"
        doc["pav:temporalCoherence"] = f"zkp:coherence>{metrics['temporalCoherence']:.3f}"
    if record.get("derivedFrom"):
        doc["pav:derivedFrom"] = [c["source"] for c in record["derivedFrom"]]
    if record.get("merkle_proof") is not None:
        doc["pav:merkleInclusion"] = ", ".join(record["merkle_proof"])
    return doc


def create_app(batch_size: int = DEFAULT_BATCH_SIZE, prefix: str = "/pohw") -> FastAPI:
    app = FastAPI(title="PoHW Registry Node (development)")
    store = _Store(batch_size)
    app.state.store = store

    def _lookup(content_hash: str) -> tuple[Optional[str], Optional[JSONResponse]]:
        try:
            key = normalize_hash(content_hash)
        except InvalidInput as e:
            return None, _error(400, str(e))
        if key not in store.records:
            return None, _error(404, "Proof not found")
        return key, None

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.post(f"{prefix}/attest")
    def attest(att: Attestation):
        try:
            normalize_hash(att.content_hash)
        except InvalidInput as e:
            return _error(400, str(e))
        if not _DID_RE.match(att.did):
            return _error(400, f"Malformed DID: {att.did}")
        if not _SIG_RE.match(att.signature):
            return _error(400, "Signature must be 64 bytes of lowercase hex")
        if bool(att.process_digest) != bool(att.compound_hash):
            return _error(400, "processDigest and compoundHash must be submitted together")
        record = _record_from(att)
        store.add(record)
        return {
            "receipt_hash": record["receipt_hash"],
            "hash": record["hash"],
            "status": "batched" if "batch_id" in record else "pending",
        }

    @app.get(f"{prefix}/verify/{{content_hash}}")
    def verify(content_hash: str):
        key, err = _lookup(content_hash)
        if err:
            return err
        record = store.records[key][0]
        return {
            "valid": True,
            "signer": record["did"],
            "timestamp": record["timestamp"],
            **_merkle_fields(record, store),
        }

    @app.get(f"{prefix}/proof/{{content_hash}}")
    def proof(content_hash: str):
        key, err = _lookup(content_hash)
        if err:
            return err
        record = store.records[key][0]
        return {**record, **_merkle_fields(record, store)}

    @app.get(f"{prefix}/proofs/{{content_hash}}")
    def proofs(
        content_hash: str,
        did: Optional[str] = None,
        tier: Optional[str] = None,
        from_: Optional[str] = Query(default=None, alias="from"),
        to: Optional[str] = None,
        sort: str = "oldest",
        limit: int = Query(default=50, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
    ):
        key, err = _lookup(content_hash)
        if err:
            return err
        items = list(store.records[key])
        if did:
            items = [r for r in items if r["did"] == did]
        if tier and tier != "all":
            items = [r for r in items if r["tier"] == tier]
        # ISO-8601 UTC strings of equal shape compare chronologically
        if from_:
            items = [r for r in items if r["timestamp"] >= from_]
        if to:
            items = [r for r in items if r["timestamp"] <= to]
        items.sort(key=lambda r: r["timestamp"], reverse=(sort == "newest"))
        return {
            "hash": key,
            "total": len(items),
            "limit": limit,
            "offset": offset,
            "proofs": items[offset:offset + limit],
        }

    @app.get(f"{prefix}/claim/{{content_hash}}")
    def claim(content_hash: str):
        key, err = _lookup(content_hash)
        if err:
            return err
        return _claim_document(store.records[key][0])

    @app.get(f"{prefix}/status")
    def status():
        return {
            "status": "active",
            "node": "pohw-devnode",
            "latest_hash": store.latest_hash,
            "timestamp": now_iso(),
            "total_proofs": store.total,
            "pending": len(store.pending),
            "batches": len(store.batches),
        }

    @app.get(f"{prefix}/batch/{{batch_id}}/anchors")
    def anchors(batch_id: str):
        batch = store.batches.get(batch_id)
        if batch is None:
            return _error(404, f"Unknown batch {batch_id}")
        return {"batch_id": batch_id, "merkle_root": batch["root"], "anchors": []}

    return app


app = create_app()
