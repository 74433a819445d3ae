"""
Per-key round state machine for key generation and resharing.

A session walks through three rounds::

    NOT_STARTED → ROUND_ONE → ROUND_TWO → ROUND_THREE → NOT_STARTED
                      │
                      └→ STUCK   (reshare without enough producers)

``abort`` returns any open round (or ``STUCK``) to ``NOT_STARTED``;
``DELETED`` is terminal and only reachable from ``NOT_STARTED``.

**Round 1.**  Every peer posts an ephemeral public key.  In key
generation every peer is a *producer* and also posts a commitment to
its secret contribution; the sum of those commitments is the group
public key.  In resharing a peer either offers to produce (its
commitment must equal the commitment to its current share) or declares
itself a *consumer*.  The first ``threshold`` producers are kept; their
Lagrange coefficients are fixed at that moment.

**Round 2.**  Producers post encrypted shares for every peer together
with share commitments and a proof.  Commitments are accumulated per
recipient: plainly for key generation, Lagrange-weighted for
resharing, which reconstructs the old shares' polynomial in the
exponent.

**Round 3.**  Every peer acknowledges.  On the last acknowledgement the
session registers the key (or bumps its epoch), keeps the accumulated
share commitments for the next reshare, and resets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Tuple

from .curve import AffinePoint, Q, Scalar, add, validate_point
from .errors import (
    AlreadySubmitted,
    BadContribution,
    DeletedKeyId,
    ProofRejected,
    UnknownKeyId,
    WrongRound,
)
from .events import (
    Event,
    KeyDeletion,
    KeyGenAbort,
    NotEnoughProducers,
    ReshareRound1,
    ReshareRound3,
    SecretGenFinalize,
    SecretGenRound1,
    SecretGenRound2,
    SecretGenRound3,
)
from .hash import hash_public_inputs
from .polynomial import compute_lagrange_coefficients
from .proofs import CompressedProof, ProofVerifier, encode_public_inputs

logger = logging.getLogger("oprfreg.session")


# ── enums ───────────────────────────────────────────────────────────────

class Round(Enum):
    NOT_STARTED = auto()
    ROUND_ONE = auto()
    ROUND_TWO = auto()
    ROUND_THREE = auto()
    STUCK = auto()
    DELETED = auto()


class Role(Enum):
    NOT_READY = auto()
    PRODUCER = auto()
    CONSUMER = auto()


# ── contributions ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Round1Contribution:
    """
    Round-1 message.  ``comm_share`` / ``comm_coeffs`` are the identity
    and zero for a reshare consumer.
    """

    comm_share: AffinePoint
    comm_coeffs: int
    eph_pub_key: AffinePoint

    @classmethod
    def consumer(cls, eph_pub_key: AffinePoint) -> Round1Contribution:
        return cls(AffinePoint.identity(), 0, eph_pub_key)

    def has_share(self) -> bool:
        return not self.comm_share.is_identity()

    def has_coeffs(self) -> bool:
        return self.comm_coeffs != 0

    def to_words(self) -> List[int]:
        return (
            self.comm_share.to_words()
            + [self.comm_coeffs]
            + self.eph_pub_key.to_words()
        )


@dataclass(frozen=True)
class SecretGenCiphertext:
    """Encrypted share for one recipient plus its public commitment."""

    nonce: int
    cipher: int
    commitment: AffinePoint

    def to_words(self) -> List[int]:
        return [self.nonce, self.cipher] + self.commitment.to_words()


@dataclass(frozen=True)
class Round2Contribution:
    """``ciphers[j]`` is routed to party *j*."""

    compressed_proof: CompressedProof
    ciphers: Tuple[SecretGenCiphertext, ...]

    def to_words(self) -> List[int]:
        out = list(self.compressed_proof)
        for c in self.ciphers:
            out += c.to_words()
        return out


@dataclass(frozen=True)
class RegisteredKey:
    """Finalized public key for a key id and the epoch of its shares."""

    key: AffinePoint
    epoch: int


# ── session state ───────────────────────────────────────────────────────

def _identities(n: int) -> List[AffinePoint]:
    return [AffinePoint.identity()] * n


@dataclass
class SessionState:
    """
    Round tracker for a single key id.

    Round-local arrays are always sized to ``num_peers``.
    ``generated_epoch == 0`` marks key generation, a positive value a
    reshare targeting that epoch.
    """

    key_id: int
    num_peers: int
    threshold: int
    current_round: Round = Round.NOT_STARTED
    node_roles: List[Role] = field(default_factory=list)
    lagrange: List[Scalar] = field(default_factory=list)
    round1: List[Optional[Round1Contribution]] = field(default_factory=list)
    round2: List[Optional[Tuple[SecretGenCiphertext, ...]]] = field(
        default_factory=list,
    )
    share_commitments: List[AffinePoint] = field(default_factory=list)
    prev_share_commitments: List[AffinePoint] = field(default_factory=list)
    key_aggregate: AffinePoint = field(default_factory=AffinePoint.identity)
    num_producers: int = 0
    generated_epoch: int = 0
    round2_done: List[bool] = field(default_factory=list)
    round3_done: List[bool] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.node_roles:
            self.reset_rounds(self.num_peers, self.threshold)

    # ── helpers ────────────────────────────────────────────────────────

    @property
    def is_reshare(self) -> bool:
        return self.generated_epoch > 0

    def reset_rounds(self, num_peers: int, threshold: int) -> None:
        """Clear every round-local field; keep ``prev_share_commitments``."""
        n = num_peers
        self.num_peers = n
        self.threshold = threshold
        self.node_roles = [Role.NOT_READY] * n
        self.lagrange = [Scalar.zero()] * n
        self.round1 = [None] * n
        self.round2 = [None] * n
        self.share_commitments = _identities(n)
        self.key_aggregate = AffinePoint.identity()
        self.num_producers = 0
        self.generated_epoch = 0
        self.round2_done = [False] * n
        self.round3_done = [False] * n

    def _require_round(self, expected: Round) -> None:
        if self.current_round is Round.DELETED:
            raise DeletedKeyId(self.key_id)
        if self.current_round is not expected:
            raise WrongRound(self.current_round, expected)

    def _round1_count(self) -> int:
        return sum(1 for c in self.round1 if c is not None)

    def producer_ids(self) -> List[int]:
        """Producers in ascending party-id order."""
        return [
            pid for pid, role in enumerate(self.node_roles)
            if role is Role.PRODUCER
        ]

    def _required_round2(self) -> int:
        return self.threshold if self.is_reshare else self.num_peers

    # ── lifecycle ──────────────────────────────────────────────────────

    def start_keygen(self, num_peers: int, threshold: int) -> List[Event]:
        self._require_round(Round.NOT_STARTED)
        self.reset_rounds(num_peers, threshold)
        self.generated_epoch = 0
        self.current_round = Round.ROUND_ONE
        logger.info(f"key {self.key_id}: key generation started")
        return [SecretGenRound1(self.key_id, threshold)]

    def start_reshare(
        self,
        num_peers: int,
        threshold: int,
        prev_epoch: int,
    ) -> List[Event]:
        self._require_round(Round.NOT_STARTED)
        self.reset_rounds(num_peers, threshold)
        self.generated_epoch = prev_epoch + 1
        self.current_round = Round.ROUND_ONE
        logger.info(
            f"key {self.key_id}: reshare to epoch {self.generated_epoch} started"
        )
        return [ReshareRound1(self.key_id, threshold, self.generated_epoch)]

    def abort(self) -> List[Event]:
        """Drop all round data; the registered key is untouched."""
        rnd = self.current_round
        if rnd is Round.DELETED:
            raise DeletedKeyId(self.key_id)
        if rnd is Round.NOT_STARTED:
            raise UnknownKeyId(self.key_id)
        if rnd in (Round.ROUND_ONE, Round.ROUND_TWO,
                   Round.ROUND_THREE, Round.STUCK):
            self.reset_rounds(self.num_peers, self.threshold)
            self.current_round = Round.NOT_STARTED
            logger.info(f"key {self.key_id}: aborted in {rnd.name}")
            return [KeyGenAbort(self.key_id)]
        raise WrongRound(rnd)

    def mark_deleted(self) -> List[Event]:
        self._require_round(Round.NOT_STARTED)
        self.reset_rounds(self.num_peers, self.threshold)
        self.prev_share_commitments = []
        self.current_round = Round.DELETED
        logger.info(f"key {self.key_id}: deleted")
        return [KeyDeletion(self.key_id)]

    # ── round 1 ────────────────────────────────────────────────────────

    def add_round1_keygen(
        self,
        party_id: int,
        data: Round1Contribution,
    ) -> List[Event]:
        self._require_round(Round.ROUND_ONE)
        if self.is_reshare:
            raise BadContribution("session is a reshare, not a key generation")
        if self.round1[party_id] is not None:
            raise AlreadySubmitted(party_id)

        validate_point(data.eph_pub_key)
        validate_point(data.comm_share)
        _check_field_word(data.comm_coeffs, "commCoeffs")
        if data.comm_coeffs == 0:
            raise BadContribution("commCoeffs must be non-zero")

        self.round1[party_id] = data
        self.node_roles[party_id] = Role.PRODUCER
        self.num_producers += 1
        self.key_aggregate = add(self.key_aggregate, data.comm_share)
        logger.debug(f"key {self.key_id}: round 1 from party {party_id}")

        if self._round1_count() < self.num_peers:
            return []
        if self.num_producers != self.num_peers:
            raise RuntimeError(
                f"key generation finished round 1 with {self.num_producers} "
                f"of {self.num_peers} producers"
            )
        return self._enter_round_two()

    def add_round1_reshare(
        self,
        party_id: int,
        data: Round1Contribution,
    ) -> List[Event]:
        self._require_round(Round.ROUND_ONE)
        if not self.is_reshare:
            raise BadContribution("session is a key generation, not a reshare")
        if self.round1[party_id] is not None:
            raise AlreadySubmitted(party_id)

        validate_point(data.eph_pub_key)
        if data.has_share() != data.has_coeffs():
            raise BadContribution(
                "commShare and commCoeffs must both be set or both be empty"
            )

        if not data.has_share() or self.num_producers >= self.threshold:
            role = Role.CONSUMER
            data = Round1Contribution.consumer(data.eph_pub_key)
        else:
            validate_point(data.comm_share)
            _check_field_word(data.comm_coeffs, "commCoeffs")
            if data.comm_share != self.prev_share_commitments[party_id]:
                raise BadContribution(
                    f"party {party_id} commShare does not match its "
                    f"previous share commitment"
                )
            role = Role.PRODUCER

        self.round1[party_id] = data
        self.node_roles[party_id] = role
        if role is Role.PRODUCER:
            self.num_producers += 1
            if self.num_producers == self.threshold:
                ids = self.producer_ids()
                self.lagrange = compute_lagrange_coefficients(
                    ids, self.threshold, self.num_peers,
                )
                logger.info(f"key {self.key_id}: producers fixed as {ids}")
        logger.debug(
            f"key {self.key_id}: reshare round 1 from party {party_id} "
            f"as {role.name}"
        )

        if self._round1_count() < self.num_peers:
            return []
        if self.num_producers < self.threshold:
            self.current_round = Round.STUCK
            logger.warning(
                f"key {self.key_id}: only {self.num_producers} producers, "
                f"need {self.threshold}"
            )
            return [NotEnoughProducers(self.key_id)]
        return self._enter_round_two()

    def _enter_round_two(self) -> List[Event]:
        self.share_commitments = _identities(self.num_peers)
        self.current_round = Round.ROUND_TWO
        logger.info(f"key {self.key_id}: round 2 started")
        return [SecretGenRound2(self.key_id, self.generated_epoch)]

    # ── round 2 ────────────────────────────────────────────────────────

    def add_round2(
        self,
        party_id: int,
        data: Round2Contribution,
        verifier: ProofVerifier,
    ) -> List[Event]:
        self._require_round(Round.ROUND_TWO)
        if self.node_roles[party_id] is not Role.PRODUCER:
            raise BadContribution(f"party {party_id} is not a producer")
        if self.round2_done[party_id]:
            raise AlreadySubmitted(party_id)
        if len(data.ciphers) != self.num_peers:
            raise BadContribution(
                f"expected {self.num_peers} ciphertexts, got {len(data.ciphers)}"
            )
        if len(data.compressed_proof) != 4:
            raise BadContribution("compressed proof must have four words")

        for c in data.ciphers:
            validate_point(c.commitment)
            _check_field_word(c.cipher, "cipher")
            _check_field_word(c.nonce, "nonce")

        own = self.round1[party_id]
        assert own is not None
        inputs = encode_public_inputs(
            eph_pub_key=own.eph_pub_key,
            comm_share=own.comm_share,
            comm_coeffs=own.comm_coeffs,
            ciphers=data.ciphers,
            peer_eph_keys=[c.eph_pub_key for c in self.round1 if c is not None],
            threshold=self.threshold,
        )
        if not verifier.verify(data.compressed_proof, inputs):
            logger.warning(
                f"key {self.key_id}: proof from party {party_id} rejected "
                f"(inputs {hash_public_inputs(inputs).hex()[:16]})"
            )
            raise ProofRejected(party_id)

        if self.is_reshare:
            weight = self.lagrange[party_id]
            for j, c in enumerate(data.ciphers):
                self.share_commitments[j] = add(
                    self.share_commitments[j], weight * c.commitment,
                )
        else:
            for j, c in enumerate(data.ciphers):
                self.share_commitments[j] = add(
                    self.share_commitments[j], c.commitment,
                )

        self.round2[party_id] = tuple(data.ciphers)
        self.round2_done[party_id] = True
        logger.debug(f"key {self.key_id}: round 2 from party {party_id}")

        if sum(self.round2_done) < self._required_round2():
            return []
        self.current_round = Round.ROUND_THREE
        logger.info(f"key {self.key_id}: round 3 started")
        if self.is_reshare:
            return [ReshareRound3(
                self.key_id, tuple(self.lagrange), self.generated_epoch,
            )]
        return [SecretGenRound3(self.key_id)]

    # ── round 3 ────────────────────────────────────────────────────────

    def add_round3(
        self,
        party_id: int,
        registered: Optional[RegisteredKey],
    ) -> Tuple[List[Event], Optional[RegisteredKey]]:
        """
        Acknowledge round 3.  Returns the events and, on the last
        acknowledgement, the key to register.
        """
        self._require_round(Round.ROUND_THREE)
        if self.round3_done[party_id]:
            raise AlreadySubmitted(party_id)
        self.round3_done[party_id] = True

        if sum(self.round3_done) < self.num_peers:
            return [], None

        if self.is_reshare:
            if registered is None:
                raise UnknownKeyId(self.key_id)
            result = RegisteredKey(registered.key, self.generated_epoch)
        else:
            result = RegisteredKey(self.key_aggregate, 0)

        snapshot = list(self.share_commitments)
        self.reset_rounds(self.num_peers, self.threshold)
        self.prev_share_commitments = snapshot
        self.current_round = Round.NOT_STARTED
        logger.info(f"key {self.key_id}: finalized at epoch {result.epoch}")
        return [SecretGenFinalize(self.key_id, result.epoch)], result


def _check_field_word(value: int, name: str) -> None:
    if not 0 <= value < Q:
        raise BadContribution(f"{name} is not a reduced field element")
