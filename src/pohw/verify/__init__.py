from .engine import VerificationReport, Verifier, check_merkle  # noqa: F401
from .verdict import Verdict, VerdictType, classify  # noqa: F401
