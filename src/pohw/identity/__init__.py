from .keys import (  # noqa: F401
    Identity,
    export_secret,
    generate,
    import_from_secret,
    sign,
    sign_claim,
    verify_claim,
)
from .store import KeyStore  # noqa: F401
