"""
Domain-separated hash functions for the key registry.

Every hash call includes a unique domain tag so that outputs for
different roles (command authentication, proof input digests) are
independent even when fed identical data.

Convention follows BIP-340 tagged hashes:

    H_tag(x) = SHA-256( SHA-256(tag) ‖ SHA-256(tag) ‖ x )
"""

from __future__ import annotations

import hashlib
from typing import Any, Sequence

from .curve import AffinePoint, Scalar

WORD_BYTES = 32

# ── domain tags ─────────────────────────────────────────────────────────
_TAG_COMMAND = b"OPRFREG/v1/command"
_TAG_INPUTS  = b"OPRFREG/v1/public_inputs"


# ── internal helpers ────────────────────────────────────────────────────
def _tagged_hasher(tag: bytes) -> "hashlib._Hash":
    """Return a SHA-256 context pre-loaded with the BIP-340 tag prefix."""
    tag_hash = hashlib.sha256(tag).digest()
    h = hashlib.sha256()
    h.update(tag_hash)
    h.update(tag_hash)
    return h


def _encode_item(item: Any) -> bytes:
    """
    Canonical encoding of a protocol element for hashing.

    Length-prefixing is used for variable-length items (bytes, lists)
    to ensure unambiguous parsing.
    """
    if item is None:
        return b"\x00" * 4
    if isinstance(item, bytes):
        return len(item).to_bytes(4, "big") + item
    if isinstance(item, bool):
        return b"\x01" if item else b"\x00"
    if isinstance(item, int):
        return item.to_bytes(WORD_BYTES, "big")
    if isinstance(item, Scalar):
        return item.value.to_bytes(WORD_BYTES, "big")
    if isinstance(item, AffinePoint):
        return _encode_item(item.to_words())
    if isinstance(item, (list, tuple)):
        parts = b"".join(_encode_item(x) for x in item)
        return len(item).to_bytes(4, "big") + parts
    return _encode_item(str(item).encode("utf-8"))


def _tagged_hash(tag: bytes, *args: Any) -> bytes:
    """Compute BIP-340 tagged hash over arbitrary protocol elements."""
    h = _tagged_hasher(tag)
    for a in args:
        h.update(_encode_item(a))
    return h.digest()


# ── public hash functions ───────────────────────────────────────────────

def hash_command(op: str, key_id: int, payload: Sequence[int], nonce: int) -> bytes:
    """32-byte digest a caller signs to authorise one registry command."""
    return _tagged_hash(_TAG_COMMAND, op, key_id, list(payload), nonce)


def hash_public_inputs(inputs: Sequence[int]) -> bytes:
    """Digest of a proof public-input vector, for logs and audit trails."""
    return _tagged_hash(_TAG_INPUTS, list(inputs))
