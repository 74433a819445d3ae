"""
oprfreg: threshold key registry for an OPRF public key.

Coordinates distributed key generation and resharing of a t-of-n
Shamir-shared secret on BabyJubJub among a fixed peer roster:

- **Curve arithmetic** with on-curve and prime-order subgroup checks
- **Lagrange coefficients** for threshold reconstruction at zero
- **Round state machine** per key id, gated on a zero-knowledge proof
- **Registry** mapping key ids to finalized ``(public key, epoch)``

The registry only coordinates, validates and aggregates contributions.
Peers compute shares, encrypt them and prove their correctness
off-line.

Quick start
-----------
::

    from oprfreg import OprfKeyRegistry, RegistryConfig

    config = RegistryConfig(threshold=2, num_peers=3,
                            owner=owner, keygen_admin=admin)
    registry = OprfKeyRegistry(config, verifier)
    registry.register_peers(owner, peers)
    registry.init_keygen(admin, 42)
    # … three rounds of peer contributions …
    registered = registry.get_public_key_and_epoch(42)
    print(registered.key, registered.epoch)
"""

__version__ = "0.1.0"

# ── core types ──────────────────────────────────────────────────────────
from .curve import (
    Scalar, AffinePoint, G, IDENTITY, ORDER, FIELD_PRIME,
    is_identity, is_on_curve, is_in_correct_subgroup,
    add, negate, scalar_mul, validate_point,
)

# ── secret sharing ──────────────────────────────────────────────────────
from .polynomial import (
    sample_polynomial,
    evaluate,
    compute_lagrange_coefficients,
    lagrange_coefficient,
    interpolate_at_zero,
)

# ── proof gate ──────────────────────────────────────────────────────────
from .proofs import (
    CompressedProof,
    ProofVerifier,
    CallableVerifier,
    PublicInputs,
    encode_public_inputs,
    select_verifier,
    SUPPORTED_CONFIGURATIONS,
)

# ── state machine ───────────────────────────────────────────────────────
from .session import (
    Round,
    Role,
    Round1Contribution,
    Round2Contribution,
    SecretGenCiphertext,
    RegisteredKey,
    SessionState,
)

# ── coordinator ─────────────────────────────────────────────────────────
from .config import RegistryConfig
from .roster import PeerRoster, Peer
from .registry import OprfKeyRegistry
from .events import EventLog, Event
from .auth import Command, SignedCommand, sign_command, recover_caller
from .service import RegistryService
from . import errors

__all__ = [
    # version
    "__version__",
    # curve
    "Scalar", "AffinePoint", "G", "IDENTITY", "ORDER", "FIELD_PRIME",
    "is_identity", "is_on_curve", "is_in_correct_subgroup",
    "add", "negate", "scalar_mul", "validate_point",
    # secret sharing
    "sample_polynomial", "evaluate", "compute_lagrange_coefficients",
    "lagrange_coefficient", "interpolate_at_zero",
    # proofs
    "CompressedProof", "ProofVerifier", "CallableVerifier", "PublicInputs",
    "encode_public_inputs", "select_verifier", "SUPPORTED_CONFIGURATIONS",
    # state machine
    "Round", "Role", "Round1Contribution", "Round2Contribution",
    "SecretGenCiphertext", "RegisteredKey", "SessionState",
    # coordinator
    "RegistryConfig", "PeerRoster", "Peer", "OprfKeyRegistry",
    "EventLog", "Event",
    "Command", "SignedCommand", "sign_command", "recover_caller",
    "RegistryService", "errors",
]
