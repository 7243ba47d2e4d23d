import hashlib

import pytest

from pohw.errors import InvalidInput
from pohw.receipts.merkle import compute_root, inclusion_proof, merkle_root, verify_inclusion


def _h(b):
    return hashlib.sha256(b).digest()


def _hex(b):
    return "0x" + b.hex()


def test_merkle_inclusion():
    leaves = [b"a", b"b", b"c", b"d", b"e"]
    leaf_hashes = [_h(x) for x in leaves]
    root = _hex(merkle_root(leaf_hashes))
    for i, h in enumerate(leaf_hashes):
        proof = inclusion_proof(i, leaf_hashes)
        assert all(p.startswith("0x") for p in proof)
        assert verify_inclusion(_hex(h), root, proof, i)


def test_two_leaf_root_without_index():
    l0, l1 = _h(b"left"), _h(b"right")
    root = _hex(_h(l0 + l1))
    assert compute_root(_hex(l0), [_hex(l1)]) == root
    # sibling always appended on the right when no index is given
    assert compute_root(_hex(l1), [_hex(l0)]) != root
    assert compute_root(_hex(l1), [_hex(l0)], leaf_index=1) == root


def test_single_leaf_tree():
    leaf = _h(b"only")
    assert inclusion_proof(0, [leaf]) == []
    assert verify_inclusion(_hex(leaf), _hex(leaf), [], 0)


def test_tampered_sibling_fails():
    leaf_hashes = [_h(bytes([i])) for i in range(6)]
    root = _hex(merkle_root(leaf_hashes))
    proof = inclusion_proof(3, leaf_hashes)
    bad = list(proof)
    bad[1] = _hex(_h(b"forged"))
    assert not verify_inclusion(_hex(leaf_hashes[3]), root, bad, 3)
    assert not verify_inclusion(_hex(leaf_hashes[2]), root, proof, 3)


def test_malformed_proof_entry():
    leaf = _hex(_h(b"x"))
    with pytest.raises(InvalidInput):
        compute_root(leaf, ["0xnothex"])
