from .builder import build_attestation, build_claim, resolve_assistance_profile  # noqa: F401
from .citations import CitationSet, make_citation  # noqa: F401
