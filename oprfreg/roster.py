"""
Peer roster and admin set.

The roster maps each participating peer's address to a stable party id
``0 … n-1``.  It is replaced wholesale by :meth:`PeerRoster.register_peers`
and is read-only while sessions run.  Admins may open, abort and delete
sessions; there is always at least one admin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .errors import (
    DuplicatePeerAddress,
    LastAdmin,
    NotAParticipant,
    RosterSizeMismatch,
    Unauthorized,
)

logger = logging.getLogger("oprfreg.roster")


def normalize_address(address: str) -> str:
    return address.lower()


@dataclass(frozen=True)
class Peer:
    is_participant: bool
    party_id: int


@dataclass
class PeerRoster:
    """
    Attributes
    ----------
    num_peers : int
        Configured roster size *n*.
    threshold : int
        Number of producers needed to reshare.
    """

    num_peers: int
    threshold: int
    owner: str
    _peers: Dict[str, Peer] = field(default_factory=dict, repr=False)
    _admins: Set[str] = field(default_factory=set, repr=False)

    def __post_init__(self) -> None:
        if not 0 < self.threshold <= self.num_peers:
            raise ValueError(
                f"threshold {self.threshold} must be in [1, {self.num_peers}]"
            )
        self.owner = normalize_address(self.owner)

    # ── peers ──────────────────────────────────────────────────────────

    def register_peers(self, addresses: List[str]) -> List[str]:
        """Replace the roster; party ids follow the order of *addresses*."""
        if len(addresses) != self.num_peers:
            raise RosterSizeMismatch(self.num_peers, len(addresses))
        normalized = [normalize_address(a) for a in addresses]
        seen: Set[str] = set()
        for addr in normalized:
            if addr in seen:
                raise DuplicatePeerAddress(addr)
            seen.add(addr)
        self._peers = {
            addr: Peer(is_participant=True, party_id=i)
            for i, addr in enumerate(normalized)
        }
        logger.info(f"Registered {len(normalized)} peers")
        return normalized

    def peer(self, address: str) -> Optional[Peer]:
        return self._peers.get(normalize_address(address))

    def party_id(self, address: str) -> int:
        """Party id of a participant; raises ``NotAParticipant`` otherwise."""
        p = self.peer(address)
        if p is None or not p.is_participant:
            raise NotAParticipant(address)
        return p.party_id

    def addresses(self) -> List[str]:
        return sorted(self._peers, key=lambda a: self._peers[a].party_id)

    @property
    def is_registered(self) -> bool:
        return len(self._peers) == self.num_peers

    # ── admins ─────────────────────────────────────────────────────────

    def require_owner(self, caller: str) -> None:
        if normalize_address(caller) != self.owner:
            raise Unauthorized(caller, "owner")

    def require_admin(self, caller: str) -> None:
        if normalize_address(caller) not in self._admins:
            raise Unauthorized(caller)

    def is_admin(self, address: str) -> bool:
        return normalize_address(address) in self._admins

    def add_admin(self, address: str) -> bool:
        """Returns False if *address* already was an admin."""
        addr = normalize_address(address)
        if addr in self._admins:
            return False
        self._admins.add(addr)
        logger.info(f"Admin added: {addr}")
        return True

    def revoke_admin(self, address: str) -> bool:
        """Returns False if *address* was not an admin."""
        addr = normalize_address(address)
        if addr not in self._admins:
            return False
        if len(self._admins) == 1:
            raise LastAdmin()
        self._admins.remove(addr)
        logger.info(f"Admin revoked: {addr}")
        return True

    def admins(self) -> Iterable[str]:
        return sorted(self._admins)
