import json

import pytest

from pohw.errors import InvalidInput, InvalidKeyLength, NoIdentity
from pohw.identity.keys import (
    Identity,
    export_secret,
    generate,
    import_from_secret,
    sign,
    sign_claim,
    verify_claim,
    verify_signature,
)
from pohw.identity.store import KeyStore

SEED = bytes(range(32))


def test_generate_identifier_shape():
    ident = generate()
    assert ident.identifier.startswith("did:pohw:")
    assert len(ident.identifier) == len("did:pohw:") + 16
    assert ident.identifier.endswith(ident.public_key.hex()[:16])
    assert len(ident.public_key) == 32


def test_import_roundtrip_is_deterministic():
    a = Identity.from_seed(SEED)
    b = import_from_secret("0x" + SEED.hex())
    c = import_from_secret(export_secret(a))
    assert a == b == c
    assert a.export()["did"] == a.identifier


def test_import_rejects_bad_secrets():
    with pytest.raises(InvalidKeyLength) as ei:
        import_from_secret("abcd")
    assert ei.value.length == 2
    with pytest.raises(InvalidInput):
        import_from_secret("zz" * 32)


def test_sign_verify_roundtrip():
    ident = Identity.from_seed(SEED)
    sig = sign(ident, b"payload")
    assert len(sig) == 128
    assert verify_signature(ident.public_key, b"payload", sig)
    # Tamper
    assert not verify_signature(ident.public_key, b"payl0ad", sig)
    assert not verify_signature(ident.public_key, b"payload", "not-hex")


def test_sign_without_identity():
    with pytest.raises(NoIdentity):
        sign(None, b"x")
    with pytest.raises(NoIdentity):
        sign_claim(None, {"hash": "0x00"})


def test_claim_signature_covers_only_claim_fields():
    ident = Identity.from_seed(SEED)
    claim = {"hash": "0x" + "ab" * 32, "did": ident.identifier, "timestamp": "2024-01-01T00:00:00.000Z"}
    signed = {**claim, "signature": sign_claim(ident, claim), "assistanceProfile": "human-only"}
    assert verify_claim(signed, ident.public_key)

    signed["assistanceProfile"] = "AI-generated"
    assert verify_claim(signed, ident.public_key)

    signed["timestamp"] = "2024-01-02T00:00:00.000Z"
    assert not verify_claim(signed, ident.public_key)


def test_claim_did_must_match_key():
    ident = Identity.from_seed(SEED)
    other = generate()
    claim = {"hash": "0x" + "ab" * 32, "did": other.identifier, "timestamp": "t"}
    signed = {**claim, "signature": sign_claim(ident, claim)}
    assert not verify_claim(signed, ident.public_key)


def test_keystore_roundtrip(tmp_path):
    store = KeyStore(tmp_path / "sub" / "keys.json")
    assert not store.exists()
    assert store.load() is None
    ident = Identity.from_seed(SEED)
    store.save(ident)
    data = json.loads(store.path.read_text())
    assert data["privateKey"] == SEED.hex()
    assert "createdAt" in data
    assert store.load() == ident

    store.save(generate())
    assert store.load() != ident

    store.clear()
    assert store.load() is None


def test_keystore_rederives_identifier(tmp_path):
    store = KeyStore(tmp_path / "keys.json")
    ident = Identity.from_seed(SEED)
    store.save(ident)
    data = json.loads(store.path.read_text())
    data["did"] = "did:pohw:0000000000000000"
    store.path.write_text(json.dumps(data))
    assert store.load().identifier == ident.identifier


def test_keystore_rejects_mismatched_public_key(tmp_path):
    store = KeyStore(tmp_path / "keys.json")
    store.save(Identity.from_seed(SEED))
    data = json.loads(store.path.read_text())
    data["publicKey"] = "00" * 32
    store.path.write_text(json.dumps(data))
    with pytest.raises(InvalidInput):
        store.load()

    store.path.write_text("{broken")
    with pytest.raises(InvalidInput):
        store.load()
