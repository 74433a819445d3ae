"""
Key registry: the coordinator over all key ids.

``OprfKeyRegistry`` owns one :class:`~oprfreg.session.SessionState` per
key id and the finalized ``(public key, epoch)`` per key id.  All
mutations go through the operation handlers below.  Each handler runs
as a transaction on a copy of the affected session; the copy, the
registered key and the buffered events are committed together only if
the handler returns normally, so a rejected operation changes nothing.

Usage
-----
::

    registry = OprfKeyRegistry(config, verifier)
    registry.register_peers(config.owner, peer_addresses)

    registry.init_keygen(admin, 42)
    for addr, r1 in round1.items():
        registry.add_round1_keygen_contribution(addr, 42, r1)
    ...
    registered = registry.get_public_key_and_epoch(42)
    print(registered.key, registered.epoch)
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional

from .config import RegistryConfig
from .curve import AffinePoint, Scalar
from .errors import AlreadyRegistered, DeletedKeyId, UnknownKeyId, WrongRound
from .events import Event, EventLog, KeyGenAdminRegistered, KeyGenAdminRevoked, PeersRegistered
from .proofs import ProofVerifier, select_verifier
from .roster import PeerRoster
from .session import (
    RegisteredKey,
    Role,
    Round,
    Round1Contribution,
    Round2Contribution,
    SessionState,
)

logger = logging.getLogger("oprfreg.registry")

# the roster is frozen while any of these is in progress
_OPEN_ROUNDS = (Round.ROUND_ONE, Round.ROUND_TWO, Round.ROUND_THREE, Round.STUCK)


@dataclass
class _Pending:
    """Writes staged by one operation."""

    session: SessionState
    events: List[Event] = field(default_factory=list)
    key: Optional[RegisteredKey] = None
    drop_key: bool = False


class OprfKeyRegistry:
    """
    Coordinates key generation, resharing and deletion for many key ids
    over one shared peer roster.
    """

    def __init__(
        self,
        config: RegistryConfig,
        verifier: ProofVerifier,
        roster: Optional[PeerRoster] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.config = config
        self.verifier = verifier
        self.roster = roster or PeerRoster(
            num_peers=config.num_peers,
            threshold=config.threshold,
            owner=config.owner,
        )
        self.events = events if events is not None else EventLog()
        self._sessions: Dict[int, SessionState] = {}
        self._keys: Dict[int, RegisteredKey] = {}

        if self.roster.add_admin(config.keygen_admin):
            self.events.publish([KeyGenAdminRegistered(config.keygen_admin)])
        logger.info(
            f"Registry ready: {config.threshold}-of-{config.num_peers}, "
            f"circuit {config.circuit}"
        )

    # ── factories ──────────────────────────────────────────────────────

    @classmethod
    def from_config(
        cls,
        config: RegistryConfig,
        verifiers: Mapping[str, ProofVerifier],
    ) -> OprfKeyRegistry:
        """Pick the verifier matching the configured circuit."""
        verifier = select_verifier(config.threshold, config.num_peers, verifiers)
        return cls(config, verifier)

    # ── transactions ───────────────────────────────────────────────────

    def _session(self, key_id: int) -> SessionState:
        s = self._sessions.get(key_id)
        if s is None:
            s = SessionState(
                key_id=key_id,
                num_peers=self.config.num_peers,
                threshold=self.config.threshold,
            )
        return s

    @contextmanager
    def _transaction(self, key_id: int) -> Iterator[_Pending]:
        pending = _Pending(session=copy.deepcopy(self._session(key_id)))
        yield pending
        # only reached when the operation raised nothing
        self._sessions[key_id] = pending.session
        if pending.drop_key:
            self._keys.pop(key_id, None)
        if pending.key is not None:
            self._keys[key_id] = pending.key
        self.events.publish(pending.events)

    # ── admin operations ───────────────────────────────────────────────

    def init_keygen(self, caller: str, key_id: int) -> None:
        self.roster.require_admin(caller)
        with self._transaction(key_id) as tx:
            if tx.session.current_round is Round.DELETED:
                raise DeletedKeyId(key_id)
            if key_id in self._keys:
                raise AlreadyRegistered(key_id)
            tx.events += tx.session.start_keygen(
                self.config.num_peers, self.config.threshold,
            )

    def init_reshare(self, caller: str, key_id: int) -> None:
        self.roster.require_admin(caller)
        with self._transaction(key_id) as tx:
            if tx.session.current_round is Round.DELETED:
                raise DeletedKeyId(key_id)
            registered = self._keys.get(key_id)
            if registered is None:
                raise UnknownKeyId(key_id)
            tx.events += tx.session.start_reshare(
                self.config.num_peers, self.config.threshold, registered.epoch,
            )

    def abort_keygen(self, caller: str, key_id: int) -> None:
        self.roster.require_admin(caller)
        with self._transaction(key_id) as tx:
            tx.events += tx.session.abort()

    def delete_key(self, caller: str, key_id: int) -> None:
        self.roster.require_admin(caller)
        with self._transaction(key_id) as tx:
            if tx.session.current_round is Round.DELETED:
                raise DeletedKeyId(key_id)
            if key_id not in self._keys:
                raise UnknownKeyId(key_id)
            tx.events += tx.session.mark_deleted()
            tx.drop_key = True

    # ── participant operations ─────────────────────────────────────────

    def add_round1_keygen_contribution(
        self,
        caller: str,
        key_id: int,
        data: Round1Contribution,
    ) -> None:
        party_id = self.roster.party_id(caller)
        with self._transaction(key_id) as tx:
            tx.events += tx.session.add_round1_keygen(party_id, data)

    def add_round1_reshare_contribution(
        self,
        caller: str,
        key_id: int,
        data: Round1Contribution,
    ) -> None:
        party_id = self.roster.party_id(caller)
        with self._transaction(key_id) as tx:
            tx.events += tx.session.add_round1_reshare(party_id, data)

    def add_round2_contribution(
        self,
        caller: str,
        key_id: int,
        data: Round2Contribution,
    ) -> None:
        party_id = self.roster.party_id(caller)
        with self._transaction(key_id) as tx:
            tx.events += tx.session.add_round2(party_id, data, self.verifier)

    def add_round3_contribution(self, caller: str, key_id: int) -> None:
        party_id = self.roster.party_id(caller)
        with self._transaction(key_id) as tx:
            events, key = tx.session.add_round3(party_id, self._keys.get(key_id))
            tx.events += events
            tx.key = key

    # ── roster operations (owner only) ─────────────────────────────────

    def register_peers(self, caller: str, addresses: List[str]) -> None:
        self.roster.require_owner(caller)
        for session in self._sessions.values():
            if session.current_round in _OPEN_ROUNDS:
                raise WrongRound(session.current_round, Round.NOT_STARTED)
        registered = self.roster.register_peers(addresses)
        self.events.publish([PeersRegistered(tuple(registered))])

    def add_admin(self, caller: str, address: str) -> None:
        self.roster.require_owner(caller)
        if self.roster.add_admin(address):
            self.events.publish([KeyGenAdminRegistered(address)])

    def revoke_admin(self, caller: str, address: str) -> None:
        self.roster.require_owner(caller)
        if self.roster.revoke_admin(address):
            self.events.publish([KeyGenAdminRevoked(address)])

    # ── reads ──────────────────────────────────────────────────────────

    def get_public_key_and_epoch(self, key_id: int) -> RegisteredKey:
        session = self._sessions.get(key_id)
        if session is not None and session.current_round is Round.DELETED:
            raise DeletedKeyId(key_id)
        registered = self._keys.get(key_id)
        if registered is None:
            raise UnknownKeyId(key_id)
        return registered

    def get_public_key(self, key_id: int) -> AffinePoint:
        return self.get_public_key_and_epoch(key_id).key

    def current_round(self, key_id: int) -> Round:
        return self._session(key_id).current_round

    def node_role(self, key_id: int, address: str) -> Role:
        return self._session(key_id).node_roles[self.roster.party_id(address)]

    def lagrange_coefficients(self, key_id: int) -> List[Scalar]:
        return list(self._session(key_id).lagrange)

    def share_commitments(self, key_id: int) -> List[AffinePoint]:
        """Commitments to the current shares, one per party id."""
        return list(self._session(key_id).prev_share_commitments)

    def __repr__(self) -> str:
        return (
            f"OprfKeyRegistry({self.config.threshold}-of-"
            f"{self.config.num_peers}, keys={len(self._keys)})"
        )
