from __future__ import annotations

import binascii
import secrets
from dataclasses import dataclass, field
from typing import Any, Optional

from nacl.encoding import RawEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from ..errors import InvalidInput, InvalidKeyLength, NoIdentity
from ..receipts.jcs import canonicalize_json

DID_METHOD = "did:pohw:"
DID_HEX_CHARS = 16
SEED_BYTES = 32

# Attestation fields covered by the signature; everything else is unsigned metadata
SIGNED_CLAIM_FIELDS = ("hash", "did", "timestamp", "processDigest", "compoundHash")


def derive_identifier(public_key: bytes) -> str:
    return f"{DID_METHOD}{public_key.hex()[:DID_HEX_CHARS]}"


@dataclass(frozen=True)
class Identity:
    private_key: bytes = field(repr=False)
    public_key: bytes

    @property
    def identifier(self) -> str:
        return derive_identifier(self.public_key)

    @classmethod
    def from_seed(cls, seed: bytes) -> "Identity":
        if len(seed) != SEED_BYTES:
            raise InvalidKeyLength(len(seed))
        sk = SigningKey(seed)
        return cls(private_key=bytes(sk), public_key=bytes(sk.verify_key))

    def export(self) -> dict[str, str]:
        return {
            "privateKey": self.private_key.hex(),
            "publicKey": self.public_key.hex(),
            "did": self.identifier,
        }


def generate() -> Identity:
    return Identity.from_seed(secrets.token_bytes(SEED_BYTES))


def import_from_secret(secret_hex: str) -> Identity:
    hex_str = secret_hex.strip()
    if hex_str[:2].lower() == "0x":
        hex_str = hex_str[2:]
    try:
        seed = bytes.fromhex(hex_str)
    except ValueError as e:
        raise InvalidInput(f"Private key is not valid hex: {e}") from e
    return Identity.from_seed(seed)


def export_secret(identity: Identity) -> str:
    return identity.private_key.hex()


def sign(identity: Optional[Identity], message: bytes | str) -> str:
    """Ed25519-sign canonical bytes and return the 64-byte signature as hex."""
    if identity is None:
        raise NoIdentity()
    if isinstance(message, str):
        message = message.encode("utf-8")
    sig = SigningKey(identity.private_key).sign(message, encoder=RawEncoder).signature
    return sig.hex()


def verify_signature(public_key: bytes, message: bytes, signature_hex: str) -> bool:
    try:
        sig = binascii.unhexlify(signature_hex)
    except (binascii.Error, ValueError):
        return False
    try:
        VerifyKey(public_key).verify(message, sig, encoder=RawEncoder)
        return True
    except (BadSignatureError, ValueError):
        return False


def claim_payload(claim: dict[str, Any]) -> bytes:
    """Canonical bytes of the signed claim subset of an attestation-shaped dict."""
    core = {k: claim[k] for k in SIGNED_CLAIM_FIELDS if claim.get(k) is not None}
    return canonicalize_json(core)


def sign_claim(identity: Optional[Identity], claim: dict[str, Any]) -> str:
    if identity is None:
        raise NoIdentity()
    return sign(identity, claim_payload(claim))


def verify_claim(signed: dict[str, Any], public_key: bytes) -> bool:
    """Check an attestation's signature against the claim subset it covers.

    The DID must also match the key, otherwise any key could vouch for any identifier.
    """
    sig_hex = signed.get("signature")
    if not sig_hex:
        return False
    if signed.get("did") != derive_identifier(public_key):
        return False
    return verify_signature(public_key, claim_payload(signed), sig_hex)


__all__ = [
    "Identity",
    "SIGNED_CLAIM_FIELDS",
    "derive_identifier",
    "generate",
    "import_from_secret",
    "export_secret",
    "sign",
    "verify_signature",
    "claim_payload",
    "sign_claim",
    "verify_claim",
]
