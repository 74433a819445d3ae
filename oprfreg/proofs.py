"""
Proof gate for round-2 contributions.

A round-2 contribution carries a compressed Groth16 proof that the
producer's ciphertexts encrypt evaluations of a degree ``threshold - 1``
polynomial consistent with its round-1 commitments.  The registry never
inspects the proof system itself: it encodes the statement as a fixed
public-input vector and asks a :class:`ProofVerifier` to accept or
reject it.

Public-input layout, version 1 (``n`` = number of peers)::

    [0:2]              submitter ephemeral public key  (x, y)
    [2:5]              submitter round-1 commitments   (commShare.x, commShare.y, commCoeffs)
    [5:5+n]            ciphertexts                     cipher_0 … cipher_{n-1}
    [5+n:5+3n]         share commitments               comm_j.x, comm_j.y  for each j
    [5+3n:5+5n]        ephemeral public keys of peers  eph_j.x, eph_j.y    for each j
    [5+5n]             degree bound                    threshold - 1
    [6+5n:6+6n]        nonces                          nonce_0 … nonce_{n-1}

One verifier circuit exists per (threshold, numPeers) configuration.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Sequence, Tuple

from .curve import AffinePoint
from .errors import UnsupportedConfiguration

if TYPE_CHECKING:
    from .session import SecretGenCiphertext

logger = logging.getLogger("oprfreg.proofs")

LAYOUT_VERSION = 1

# (threshold, numPeers) → verifier circuit name
SUPPORTED_CONFIGURATIONS: Dict[Tuple[int, int], str] = {
    (2, 3): "KeyGen13",
    (3, 5): "KeyGen25",
}

CompressedProof = Tuple[int, int, int, int]


def public_input_length(num_peers: int) -> int:
    return 6 + 6 * num_peers


# ── verifier interface ──────────────────────────────────────────────────

class ProofVerifier(ABC):
    """
    Opaque accept/reject oracle for one (threshold, numPeers) circuit.

    Implementations must be synchronous and side-effect free.
    """

    @abstractmethod
    def verify(
        self,
        compressed_proof: CompressedProof,
        public_inputs: Sequence[int],
    ) -> bool:
        ...


class CallableVerifier(ProofVerifier):
    """Adapts a plain ``(proof, inputs) -> bool`` callable, e.g. an RPC stub."""

    def __init__(
        self,
        fn: Callable[[CompressedProof, Sequence[int]], bool],
        name: str = "callable",
    ) -> None:
        self._fn = fn
        self.name = name

    def verify(self, compressed_proof, public_inputs) -> bool:
        return bool(self._fn(compressed_proof, public_inputs))

    def __repr__(self) -> str:
        return f"CallableVerifier({self.name})"


def select_verifier(
    threshold: int,
    num_peers: int,
    verifiers: Mapping[str, ProofVerifier],
) -> ProofVerifier:
    """
    Pick the verifier for the configured circuit.

    *verifiers* maps circuit names (``"KeyGen13"``, ``"KeyGen25"``) to
    verifier instances.  Raises ``UnsupportedConfiguration`` if the
    combination has no circuit or no instance was provided for it.
    """
    circuit = SUPPORTED_CONFIGURATIONS.get((threshold, num_peers))
    if circuit is None or circuit not in verifiers:
        raise UnsupportedConfiguration(threshold, num_peers)
    logger.info(f"Using {circuit} verifier for {threshold}-of-{num_peers}")
    return verifiers[circuit]


# ── public-input encoding ───────────────────────────────────────────────

@dataclass(frozen=True)
class PublicInputs:
    """Statement proven by one round-2 contribution."""

    eph_pub_key: AffinePoint
    comm_share: AffinePoint
    comm_coeffs: int
    ciphers: Tuple["SecretGenCiphertext", ...]
    peer_eph_keys: Tuple[AffinePoint, ...]
    degree: int

    def to_vector(self) -> List[int]:
        """Flatten into the version-1 layout."""
        n = len(self.ciphers)
        if len(self.peer_eph_keys) != n:
            raise ValueError(
                f"expected {n} ephemeral keys, got {len(self.peer_eph_keys)}"
            )
        out: List[int] = []
        out += self.eph_pub_key.to_words()
        out += self.comm_share.to_words()
        out.append(self.comm_coeffs)
        out += [c.cipher for c in self.ciphers]
        for c in self.ciphers:
            out += c.commitment.to_words()
        for pk in self.peer_eph_keys:
            out += pk.to_words()
        out.append(self.degree)
        out += [c.nonce for c in self.ciphers]
        assert len(out) == public_input_length(n)
        return out


def encode_public_inputs(
    eph_pub_key: AffinePoint,
    comm_share: AffinePoint,
    comm_coeffs: int,
    ciphers: Sequence["SecretGenCiphertext"],
    peer_eph_keys: Sequence[AffinePoint],
    threshold: int,
) -> List[int]:
    return PublicInputs(
        eph_pub_key=eph_pub_key,
        comm_share=comm_share,
        comm_coeffs=comm_coeffs,
        ciphers=tuple(ciphers),
        peer_eph_keys=tuple(peer_eph_keys),
        degree=threshold - 1,
    ).to_vector()
