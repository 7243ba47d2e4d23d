from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .api.models import AssistanceProfile, ProcessMetrics
from .attest.builder import build_attestation
from .client.discovery import RegistryDiscovery
from .client.registry import RegistryClient
from .errors import InvalidInput, NetworkFailure, NoIdentity, PohwError, RegistryRejected
from .identity.keys import Identity, generate, import_from_secret
from .identity.store import KeyStore
from .process.tracker import ProcessEvent, ProcessSession, compute_metrics
from .receipts.digest import hash_file, hash_text, normalize_hash
from .settings import settings
from .verify.engine import Verifier


def _store(ns: argparse.Namespace) -> KeyStore:
    return KeyStore(Path(ns.key_file) if ns.key_file else settings.key_file())


def _require_identity(ns: argparse.Namespace) -> Identity:
    identity = _store(ns).load()
    if identity is None:
        raise NoIdentity("No keys found; run 'pohw keygen' or 'pohw import-key' first.")
    return identity


def _content_hash(ns: argparse.Namespace) -> str:
    if getattr(ns, "file", None):
        return hash_file(Path(ns.file))
    if getattr(ns, "text", None) is not None:
        return hash_text(ns.text)
    return hash_text(sys.stdin.read())


def _load_metrics(path: Path) -> ProcessMetrics:
    try:
        return ProcessMetrics.model_validate_json(path.read_text())
    except ValidationError as e:
        raise InvalidInput(f"Invalid metrics file {path}: {e}") from e


def _metrics_from_events(path: Path) -> Optional[ProcessMetrics]:
    """Replay a recorded event log (list of ms timestamps or {kind, timestamp})."""
    try:
        raw = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise InvalidInput(f"Event log {path} is not valid JSON: {e}") from e
    if not isinstance(raw, list):
        raise InvalidInput(f"Event log {path} must be a JSON list")
    events = []
    try:
        for item in raw:
            if isinstance(item, dict):
                events.append(ProcessEvent(kind=str(item.get("kind", "input")), timestamp=int(item["timestamp"])))
            else:
                events.append(ProcessEvent(kind="input", timestamp=int(item)))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidInput(f"Malformed event in {path}: {e!r}") from e
    if not events:
        return None
    session = ProcessSession(started_at=events[0].timestamp, events=events)
    return compute_metrics(session, now=events[-1].timestamp)


def cmd_keygen(ns: argparse.Namespace) -> int:
    store = _store(ns)
    if store.exists() and not ns.force:
        print(f"Keys already exist at {store.path}; use --force to replace them.", file=sys.stderr)
        return 1
    identity = generate()
    store.save(identity)
    print(identity.identifier)
    return 0


def cmd_import_key(ns: argparse.Namespace) -> int:
    secret = Path(ns.secret_file).read_text() if ns.secret_file else ns.secret
    identity = import_from_secret(secret)
    _store(ns).save(identity)
    print(identity.identifier)
    return 0


def cmd_export_key(ns: argparse.Namespace) -> int:
    print(json.dumps(_require_identity(ns).export(), indent=2))
    return 0


def cmd_hash(ns: argparse.Namespace) -> int:
    print(_content_hash(ns))
    return 0


def cmd_attest(ns: argparse.Namespace) -> int:
    identity = _require_identity(ns)
    content_hash = _content_hash(ns)
    metrics = None
    if ns.metrics:
        metrics = _load_metrics(Path(ns.metrics))
    elif ns.events:
        metrics = _metrics_from_events(Path(ns.events))
    att = build_attestation(
        content_hash,
        identity,
        metrics=metrics,
        user_declared_profile=ns.profile,
        content_uri=ns.content_uri,
    )
    if ns.dry_run:
        print(json.dumps(att.to_wire(), indent=2))
        return 0
    with RegistryClient(ns.registry) as client:
        receipt = client.submit_attestation(att)
    print(json.dumps({
        "hash": att.content_hash,
        "did": att.did,
        "timestamp": att.timestamp,
        "assistanceProfile": att.assistance_profile.value,
        "receipt": receipt.proof_reference() or att.content_hash,
    }, indent=2))
    return 0


def cmd_verify(ns: argparse.Namespace) -> int:
    content_hash = normalize_hash(ns.hash) if ns.hash else _content_hash(ns)
    with RegistryClient(ns.registry) as client:
        report = Verifier(client).report(content_hash)
    out = {
        "hash": report.content_hash,
        "valid": report.result.valid,
        "verdict": report.verdict.type.value,
        "explanation": report.verdict.explanation,
        "signer": report.result.signer_id,
        "timestamp": report.result.timestamp,
        "merkle_root": report.result.merkle_root,
        "batch_id": report.result.batch_id,
        "error": report.result.error,
    }
    print(json.dumps({k: v for k, v in out.items() if v is not None}, indent=2))
    return 0 if report.result.valid else 1


def cmd_nodes(ns: argparse.Namespace) -> int:
    async def _sweep():
        discovery = RegistryDiscovery()
        try:
            return await discovery.check_all_nodes_status()
        finally:
            await discovery.aclose()

    for st in asyncio.run(_sweep()):
        latency = f"{st.response_time_ms:.0f}ms" if st.response_time_ms is not None else "-"
        print(f"{st.status:8} {latency:>7}  {st.name}  {st.url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pohw", description="Proof of Human Work attestation tooling")
    p.add_argument("--key-file", help=f"Key file (default: {settings.key_file()})")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    keygen_p = sub.add_parser("keygen", help="Generate and store a new Ed25519 identity")
    keygen_p.add_argument("--force", action="store_true", help="Overwrite existing keys")
    keygen_p.set_defaults(func=cmd_keygen)

    import_p = sub.add_parser("import-key", help="Import a 32-byte hex private key")
    g = import_p.add_mutually_exclusive_group(required=True)
    g.add_argument("--secret", help="Private key hex (0x prefix optional)")
    g.add_argument("--secret-file", help="File containing the private key hex")
    import_p.set_defaults(func=cmd_import_key)

    export_p = sub.add_parser("export-key", help="Print private/public key hex and DID")
    export_p.set_defaults(func=cmd_export_key)

    def _content_args(sp: argparse.ArgumentParser) -> None:
        cg = sp.add_mutually_exclusive_group()
        cg.add_argument("--file", help="File to hash (text files are canonicalized)")
        cg.add_argument("--text", help="Text to hash")

    hash_p = sub.add_parser("hash", help="Print the content digest (stdin if no --file/--text)")
    _content_args(hash_p)
    hash_p.set_defaults(func=cmd_hash)

    attest_p = sub.add_parser("attest", help="Sign and submit an attestation")
    _content_args(attest_p)
    attest_p.add_argument(
        "--profile",
        choices=[ap.value for ap in AssistanceProfile],
        help="Declared assistance profile",
    )
    mg = attest_p.add_mutually_exclusive_group()
    mg.add_argument("--metrics", help="ProcessMetrics JSON file")
    mg.add_argument("--events", help="Recorded event log JSON (timestamps in ms)")
    attest_p.add_argument("--content-uri", help="Archive URI of the content (ipfs://, ar://, https://)")
    attest_p.add_argument("--registry", help=f"Registry base URL (default: {settings.registry_url})")
    attest_p.add_argument("--dry-run", action="store_true", help="Print the attestation instead of submitting")
    attest_p.set_defaults(func=cmd_attest)

    verify_p = sub.add_parser("verify", help="Verify a content hash against a registry")
    verify_p.add_argument("hash", nargs="?", help="Content hash (0x prefix optional)")
    _content_args(verify_p)
    verify_p.add_argument("--registry", help=f"Registry base URL (default: {settings.registry_url})")
    verify_p.set_defaults(func=cmd_verify)

    nodes_p = sub.add_parser("nodes", help="Discover registry nodes and probe their status")
    nodes_p.set_defaults(func=cmd_nodes)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if ns.verbose else settings.log_level.upper())
    try:
        return ns.func(ns)
    except NetworkFailure as e:
        print(f"{e.kind}: {e}", file=sys.stderr)
        return 3
    except RegistryRejected as e:
        print(f"{e.kind} (HTTP {e.status_code}): {e}", file=sys.stderr)
        return 4
    except PohwError as e:
        print(f"{e.kind}: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
