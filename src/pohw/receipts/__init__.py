from .digest import canonicalize_text, compound_digest, hash_bytes, hash_text, normalize_hash  # noqa: F401
from .jcs import canonicalize_json  # noqa: F401
