"""
Error taxonomy for the key registry.

Every error rejects the whole operation; the registry commits nothing
when one is raised.  Errors fall into three families:

- **structural**: the operation does not fit the session's current
  state or the caller's role;
- **cryptographic**: a submitted point or proof is invalid;
- **administrative**: roster, admin, or configuration violations.
"""

from __future__ import annotations

from typing import Any, Optional


class RegistryError(Exception):
    """Root of all errors raised by ``oprfreg``."""


# ── structural ──────────────────────────────────────────────────────────
class StructuralError(RegistryError):
    pass


class WrongRound(StructuralError):
    """The session is not in the round the operation requires."""

    def __init__(self, actual: Any, expected: Optional[Any] = None) -> None:
        self.actual = actual
        self.expected = expected
        msg = f"wrong round: session is in {getattr(actual, 'name', actual)}"
        if expected is not None:
            msg += f", expected {getattr(expected, 'name', expected)}"
        super().__init__(msg)


class AlreadySubmitted(StructuralError):
    def __init__(self, party_id: int) -> None:
        self.party_id = party_id
        super().__init__(f"party {party_id} already submitted this round")


class UnknownKeyId(StructuralError):
    def __init__(self, key_id: int) -> None:
        self.key_id = key_id
        super().__init__(f"unknown key id {key_id}")


class DeletedKeyId(StructuralError):
    def __init__(self, key_id: int) -> None:
        self.key_id = key_id
        super().__init__(f"key id {key_id} was deleted")


class AlreadyRegistered(StructuralError):
    def __init__(self, key_id: int) -> None:
        self.key_id = key_id
        super().__init__(f"key id {key_id} already has a registered key")


class NotAParticipant(StructuralError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"{address} is not a participant")


class BadContribution(StructuralError):
    """Malformed contribution or role mismatch."""


class InvalidSignature(StructuralError):
    """A command signature could not be authenticated."""


# ── cryptographic ───────────────────────────────────────────────────────
class CryptoError(RegistryError):
    pass


class PointNotOnCurve(CryptoError):
    def __init__(self, point: Any) -> None:
        self.point = point
        super().__init__(f"point not on curve: {point!r}")


class PointNotInSubgroup(CryptoError):
    def __init__(self, point: Any) -> None:
        self.point = point
        super().__init__(f"point not in prime-order subgroup: {point!r}")


class IdentityPoint(CryptoError):
    def __init__(self, point: Any) -> None:
        self.point = point
        super().__init__("identity point where a real value was required")


class ProofRejected(CryptoError):
    def __init__(self, party_id: int) -> None:
        self.party_id = party_id
        super().__init__(f"proof from party {party_id} rejected")


# ── administrative ──────────────────────────────────────────────────────
class AdminError(RegistryError):
    pass


class Unauthorized(AdminError):
    def __init__(self, address: str, role: str = "admin") -> None:
        self.address = address
        self.role = role
        super().__init__(f"{address} lacks {role} rights")


class LastAdmin(AdminError):
    def __init__(self) -> None:
        super().__init__("cannot revoke the last remaining admin")


class RosterSizeMismatch(AdminError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"roster needs {expected} peers, got {actual}")


class DuplicatePeerAddress(AdminError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"duplicate peer address {address}")


class UnsupportedConfiguration(AdminError):
    def __init__(self, threshold: int, num_peers: int) -> None:
        self.threshold = threshold
        self.num_peers = num_peers
        super().__init__(
            f"unsupported threshold/numPeers combination: "
            f"{threshold}/{num_peers}"
        )
