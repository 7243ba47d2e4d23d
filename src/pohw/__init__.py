"""pohw: Proof of Human Work claim construction and verification.

Creation path: canonicalize + hash content, capture a timing fingerprint, sign the claim
with a local Ed25519 identity and submit it to a registry. Verification path: fetch the
registry record for a hash, recheck its Merkle inclusion locally and classify authorship.
"""
from .attest.builder import build_attestation, resolve_assistance_profile  # noqa: F401
from .identity.keys import Identity, generate, import_from_secret  # noqa: F401
from .process.tracker import ProcessTracker  # noqa: F401
from .receipts.digest import canonicalize_text, hash_text  # noqa: F401
from .receipts.jcs import canonicalize_json  # noqa: F401
from .verify.engine import Verifier  # noqa: F401
from .verify.verdict import classify  # noqa: F401
