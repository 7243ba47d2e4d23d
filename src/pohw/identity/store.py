from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from ..errors import InvalidInput
from .keys import Identity, import_from_secret


class KeyStore:
    """Local JSON persistence for a single identity.

    Only the secret and public key are stored. The identifier is re-derived on every
    load, so an edited file can never make a key speak for a different DID.
    """

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, identity: Identity) -> Path:
        data = {
            "privateKey": identity.private_key.hex(),
            "publicKey": identity.public_key.hex(),
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        try:
            self.path.chmod(0o600)
        except OSError as e:  # pragma: no cover - platform dependent
            logging.debug("Could not restrict key file permissions on %s: %s", self.path, e)
        return self.path

    def load(self) -> Identity | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            raise InvalidInput(f"Key file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict) or "privateKey" not in data:
            raise InvalidInput(f"Key file {self.path} has no privateKey")
        identity = import_from_secret(data["privateKey"])
        stored_pub = data.get("publicKey")
        if stored_pub and stored_pub.lower() != identity.public_key.hex():
            raise InvalidInput(f"Key file {self.path}: stored public key does not match private key")
        return identity

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
