"""
Caller authentication with secp256k1 recoverable signatures.

Every command submitted to the service is signed by the caller.  The
service recovers the signer's public key from the signature and uses
the derived address as the caller identity, so a command cannot be
submitted on behalf of another peer or admin.

Address derivation::

    address = "0x" ‖ hex( SHA-256(X ‖ Y)[-20:] )

where ``X ‖ Y`` is the 64-byte uncompressed public key without prefix.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, List, Optional

from coincurve import PrivateKey, PublicKey

from .errors import InvalidSignature
from .hash import hash_command

SIGNATURE_BYTES = 65


def address_from_public_key(pk: PublicKey) -> str:
    raw = pk.format(compressed=False)[1:]
    return "0x" + hashlib.sha256(raw).digest()[-20:].hex()


def address_of(sk: PrivateKey) -> str:
    return address_from_public_key(sk.public_key)


def _words(data: Any) -> List[int]:
    """Canonical integer encoding of a command argument."""
    if data is None:
        return []
    if isinstance(data, str):
        return [int(data, 16)]
    if isinstance(data, (list, tuple)):
        out: List[int] = []
        for item in data:
            out += _words(item)
        return out
    return list(data.to_words())


@dataclass(frozen=True)
class Command:
    """
    One registry operation.

    ``op`` names an :class:`~oprfreg.registry.OprfKeyRegistry` method;
    ``data`` is its argument after the key id (a contribution, an
    address, or a list of addresses), if any.
    """

    op: str
    key_id: Optional[int] = None
    data: Any = None

    def digest(self, nonce: int) -> bytes:
        return hash_command(self.op, self.key_id, _words(self.data), nonce)


@dataclass(frozen=True)
class SignedCommand:
    command: Command
    nonce: int
    signature: bytes


def sign_command(sk: PrivateKey, command: Command, nonce: int) -> SignedCommand:
    sig = sk.sign_recoverable(command.digest(nonce), hasher=None)
    return SignedCommand(command=command, nonce=nonce, signature=sig)


def recover_caller(signed: SignedCommand) -> str:
    """Address of the signer; raises ``InvalidSignature`` on failure."""
    if len(signed.signature) != SIGNATURE_BYTES:
        raise InvalidSignature(
            f"signature must be {SIGNATURE_BYTES} bytes, "
            f"got {len(signed.signature)}"
        )
    try:
        pk = PublicKey.from_signature_and_message(
            signed.signature, signed.command.digest(signed.nonce), hasher=None,
        )
    except ValueError as e:
        raise InvalidSignature(str(e)) from e
    return address_from_public_key(pk)
