from __future__ import annotations
import hashlib
from typing import List, Optional, Sequence

from .digest import HASH_PREFIX, digest_bytes


def _h(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _hex(b: bytes) -> str:
    return HASH_PREFIX + b.hex()


def build_merkle_tree(leaf_hashes: List[bytes]) -> List[List[bytes]]:
    """Return levels from leaves up to root (levels[0] = leaves)."""
    if not leaf_hashes:
        return [[_h(b'')]]  # empty tree sentinel
    levels = [leaf_hashes[:]]
    while len(levels[-1]) > 1:
        cur = levels[-1]
        nxt = []
        for i in range(0, len(cur), 2):
            left = cur[i]
            right = cur[i+1] if i + 1 < len(cur) else cur[i]
            nxt.append(_h(left + right))
        levels.append(nxt)
    return levels


def merkle_root(leaf_hashes: List[bytes]) -> bytes:
    return build_merkle_tree(leaf_hashes)[-1][0]


def inclusion_proof(leaf_index: int, leaf_hashes: List[bytes]) -> List[str]:
    """Return the ordered sibling digests (``0x`` hex) from leaf level to just below the root.

    Sibling side is not encoded; it follows from ``leaf_index`` (see ``compute_root``).
    """
    levels = build_merkle_tree(leaf_hashes)
    proof = []
    idx = leaf_index
    for level in levels[:-1]:
        if idx % 2 == 0:
            sib_idx = idx + 1 if idx + 1 < len(level) else idx
        else:
            sib_idx = idx - 1
        proof.append(_hex(level[sib_idx]))
        idx //= 2
    return proof


def compute_root(leaf: str, proof: Sequence[str], leaf_index: Optional[int] = None) -> str:
    """Fold a leaf digest with its sibling path and return the implied root.

    With ``leaf_index`` the low bit at each level says whether the running value is the
    right child (sibling on the left). Without it every sibling is appended on the right,
    i.e. ``running = H(running || sibling)``.
    """
    cur = digest_bytes(leaf)
    idx = leaf_index
    for sib_hex in proof:
        sib = digest_bytes(sib_hex)
        if idx is not None and idx % 2 == 1:
            cur = _h(sib + cur)
        else:
            cur = _h(cur + sib)
        if idx is not None:
            idx //= 2
    return _hex(cur)


def verify_inclusion(leaf: str, root: str, proof: Sequence[str], leaf_index: Optional[int] = None) -> bool:
    return compute_root(leaf, proof, leaf_index) == HASH_PREFIX + digest_bytes(root).hex()


__all__ = ["build_merkle_tree", "merkle_root", "inclusion_proof", "compute_root", "verify_inclusion"]
