from __future__ import annotations

import contextlib
import logging
import time
from typing import Any, Iterator, Optional

import httpx
from pydantic import ValidationError

from ..api.models import Attestation, ProofQuery, Receipt, VerificationResult
from ..errors import NetworkFailure, NotFound, RegistryRejected, Timeout
from ..receipts.digest import normalize_hash, strip_prefix
from ..settings import settings


@contextlib.contextmanager
def translate_errors(url: str) -> Iterator[None]:
    """Map transport exceptions onto the NetworkFailure/Timeout kinds."""
    try:
        yield
    except httpx.TimeoutException as e:
        raise Timeout(f"Registry at {url} timed out: {e}") from e
    except httpx.HTTPError as e:
        raise NetworkFailure(f"Cannot reach registry at {url}: {e}") from e


def raise_for_registry(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    if resp.status_code == 404:
        raise NotFound(f"Not found in registry: {resp.request.url.path}")
    error = None
    try:
        body = resp.json()
        if isinstance(body, dict):
            error = body.get("error") or body.get("detail")
    except ValueError:
        error = resp.text or None
    raise RegistryRejected(resp.status_code, str(error) if error is not None else None)


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError as e:
        raise RegistryRejected(resp.status_code, f"Registry returned non-JSON body: {e}") from e
    if not isinstance(body, dict):
        raise RegistryRejected(resp.status_code, "Registry returned a non-object JSON body")
    return body


class RegistryClient:
    """Blocking client for one registry node's wire contract.

    The underlying ``httpx.Client`` may be supplied (tests pass a FastAPI TestClient);
    every call carries its own timeout so no request can block indefinitely.
    """

    def __init__(
        self,
        registry_url: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        api_prefix: Optional[str] = None,
    ):
        self.registry_url = (registry_url or settings.registry_url).rstrip("/")
        self.api_prefix = settings.api_prefix if api_prefix is None else api_prefix
        self._owns_http = http is None
        self._http = http or httpx.Client()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "RegistryClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def set_registry_url(self, url: str) -> None:
        self.registry_url = url.rstrip("/")
        logging.info("Registry URL updated to %s", self.registry_url)

    def _url(self, path: str) -> str:
        return f"{self.registry_url}{self.api_prefix}{path}"

    def _get(self, path: str, timeout: float, params: Optional[dict[str, str]] = None) -> httpx.Response:
        url = self._url(path)
        with translate_errors(self.registry_url):
            resp = self._http.get(url, params=params, timeout=timeout, headers={"Accept": "application/json"})
        raise_for_registry(resp)
        return resp

    def submit_attestation(self, attestation: Attestation) -> Receipt:
        body = attestation.to_wire()
        logging.info(
            "Submitting attestation hash=%s did=%s registry=%s",
            attestation.content_hash, attestation.did, self.registry_url,
        )
        with translate_errors(self.registry_url):
            resp = self._http.post(self._url("/attest"), json=body, timeout=settings.submit_timeout_seconds)
        raise_for_registry(resp)
        try:
            receipt = Receipt.model_validate(_json_object(resp))
        except ValidationError as e:
            raise RegistryRejected(resp.status_code, f"Malformed receipt: {e}") from e
        logging.debug("Attestation accepted: %s", receipt.proof_reference())
        return receipt

    def verify(self, content_hash: str) -> VerificationResult:
        bare = strip_prefix(normalize_hash(content_hash))
        logging.debug("Verifying %s against %s", bare, self.registry_url)
        resp = self._get(f"/verify/{bare}", settings.verify_timeout_seconds)
        try:
            return VerificationResult.model_validate(_json_object(resp))
        except ValidationError as e:
            raise RegistryRejected(resp.status_code, f"Malformed verification result: {e}") from e

    def get_proof(self, content_hash: str) -> dict[str, Any]:
        bare = strip_prefix(normalize_hash(content_hash))
        return _json_object(self._get(f"/proof/{bare}", settings.verify_timeout_seconds))

    def get_all_proofs(self, content_hash: str, query: Optional[ProofQuery] = None) -> dict[str, Any]:
        bare = strip_prefix(normalize_hash(content_hash))
        params = query.to_params() if query else None
        return _json_object(self._get(f"/proofs/{bare}", settings.verify_timeout_seconds, params=params))

    def get_claim(self, content_hash: str) -> dict[str, Any]:
        bare = strip_prefix(normalize_hash(content_hash))
        return _json_object(self._get(f"/claim/{bare}", settings.verify_timeout_seconds))

    def get_batch_anchors(self, batch_id: str) -> dict[str, Any]:
        return _json_object(self._get(f"/batch/{batch_id}/anchors", settings.verify_timeout_seconds))

    def get_status(self) -> dict[str, Any]:
        return _json_object(self._get("/status", settings.status_timeout_seconds))

    def check_node_status(self) -> dict[str, Any]:
        """Liveness probe; failures are reported in the result instead of raised."""
        start = time.perf_counter()
        try:
            data = self.get_status()
        except (NetworkFailure, RegistryRejected, NotFound) as e:
            elapsed = (time.perf_counter() - start) * 1000
            return {
                "online": False,
                "response_time_ms": None if isinstance(e, NetworkFailure) else elapsed,
                "error": str(e),
            }
        return {"online": True, "response_time_ms": (time.perf_counter() - start) * 1000, **data}
