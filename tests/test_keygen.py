import pytest

from oprfreg.curve import G, IDENTITY, Q, AffinePoint, Scalar, add
from oprfreg.errors import (
    AlreadyRegistered,
    AlreadySubmitted,
    BadContribution,
    IdentityPoint,
    NotAParticipant,
    PointNotInSubgroup,
    PointNotOnCurve,
    ProofRejected,
    Unauthorized,
    WrongRound,
)
from oprfreg.events import (
    SecretGenFinalize,
    SecretGenRound1,
    SecretGenRound2,
    SecretGenRound3,
)
from oprfreg.polynomial import evaluate, evaluation_point
from oprfreg.proofs import public_input_length
from oprfreg.session import Role, Round, Round1Contribution, Round2Contribution

from sim import Network

TORSION = AffinePoint(0, Q - 1)


def test_keygen_scenario(net):
    net.run_keygen(42)
    registered = net.registry.get_public_key_and_epoch(42)
    assert registered.key == net.expected_key()
    assert registered.epoch == 0
    assert net.registry.get_public_key(42) == net.expected_key()
    assert net.registry.current_round(42) is Round.NOT_STARTED


def test_finalization_is_deterministic():
    keys = []
    for _ in range(2):
        n = Network()
        n.run_keygen(42)
        keys.append(n.registry.get_public_key(42))
    assert keys[0].x == keys[1].x
    assert keys[0].y == keys[1].y


def test_keygen_5_peers(net5):
    net5.run_keygen(7)
    assert net5.registry.get_public_key_and_epoch(7).key == net5.expected_key()


def test_share_commitments_recorded(keyed):
    commitments = keyed.registry.share_commitments(42)
    for j, c in enumerate(commitments):
        assert c == keyed.shares[j] * G


def test_event_order(keyed):
    kinds = [type(e) for e in keyed.registry.events.events()]
    assert kinds[-4:] == [
        SecretGenRound1, SecretGenRound2, SecretGenRound3, SecretGenFinalize,
    ]
    assert keyed.registry.events.of_type(SecretGenFinalize)[-1].epoch == 0


def test_listener_sees_events_in_order(net):
    seen = []
    net.registry.events.subscribe(seen.append)
    net.run_keygen(42)
    assert [e.seq for e in seen] == list(range(seen[0].seq, seen[0].seq + len(seen)))
    assert isinstance(seen[0].event, SecretGenRound1)
    assert isinstance(seen[-1].event, SecretGenFinalize)


def test_failing_listener_does_not_undo_operation(net):
    def broken(entry):
        raise RuntimeError("listener down")

    seen = []
    net.registry.events.subscribe(broken)
    net.registry.events.subscribe(seen.append)
    net.registry.init_keygen(net.admin, 42)
    assert net.registry.current_round(42) is Round.ROUND_ONE
    assert [type(e.event) for e in seen] == [SecretGenRound1]


def test_round_transitions(net):
    reg = net.registry
    reg.init_keygen(net.admin, 1)
    assert reg.current_round(1) is Round.ROUND_ONE
    for pid in range(3):
        assert reg.current_round(1) is Round.ROUND_ONE
        reg.add_round1_keygen_contribution(net.peers[pid], 1, net.keygen_round1(pid))
    assert reg.current_round(1) is Round.ROUND_TWO
    assert all(reg.node_role(1, a) is Role.PRODUCER for a in net.peers)
    for pid in range(3):
        reg.add_round2_contribution(net.peers[pid], 1, net.round2(pid))
    assert reg.current_round(1) is Round.ROUND_THREE


def test_init_requires_admin(net):
    with pytest.raises(Unauthorized):
        net.registry.init_keygen(net.peers[0], 1)


def test_init_twice_is_wrong_round(net):
    net.registry.init_keygen(net.admin, 1)
    with pytest.raises(WrongRound) as exc:
        net.registry.init_keygen(net.admin, 1)
    assert exc.value.actual is Round.ROUND_ONE


def test_init_on_registered_key(keyed):
    with pytest.raises(AlreadyRegistered):
        keyed.registry.init_keygen(keyed.admin, 42)


def test_round2_in_round_one_is_wrong_round(net):
    net.registry.init_keygen(net.admin, 1)
    net.registry.add_round1_keygen_contribution(net.peers[0], 1, net.keygen_round1(0))
    with pytest.raises(WrongRound) as exc:
        net.registry.add_round2_contribution(net.peers[0], 1, net.round2(0))
    assert exc.value.actual is Round.ROUND_ONE


def test_round1_before_init_is_wrong_round(net):
    with pytest.raises(WrongRound) as exc:
        net.registry.add_round1_keygen_contribution(
            net.peers[0], 1, net.keygen_round1(0),
        )
    assert exc.value.actual is Round.NOT_STARTED


def test_round1_double_submission(net):
    net.registry.init_keygen(net.admin, 1)
    net.registry.add_round1_keygen_contribution(net.peers[0], 1, net.keygen_round1(0))
    with pytest.raises(AlreadySubmitted):
        net.registry.add_round1_keygen_contribution(
            net.peers[0], 1, net.keygen_round1(0),
        )


def test_non_participant_rejected(net):
    net.registry.init_keygen(net.admin, 1)
    with pytest.raises(NotAParticipant):
        net.registry.add_round1_keygen_contribution(
            net.admin, 1, net.keygen_round1(0),
        )


@pytest.mark.parametrize("field, bad, error", [
    ("eph_pub_key", AffinePoint(1, 1), PointNotOnCurve),
    ("eph_pub_key", IDENTITY, IdentityPoint),
    ("comm_share", add(G, TORSION), PointNotInSubgroup),
    ("comm_share", IDENTITY, IdentityPoint),
])
def test_round1_point_validation(net, field, bad, error):
    net.registry.init_keygen(net.admin, 1)
    good = net.keygen_round1(0)
    kwargs = dict(
        comm_share=good.comm_share,
        comm_coeffs=good.comm_coeffs,
        eph_pub_key=good.eph_pub_key,
    )
    kwargs[field] = bad
    with pytest.raises(error):
        net.registry.add_round1_keygen_contribution(
            net.peers[0], 1, Round1Contribution(**kwargs),
        )


def test_round1_zero_coeffs_rejected(net):
    net.registry.init_keygen(net.admin, 1)
    good = net.keygen_round1(0)
    with pytest.raises(BadContribution):
        net.registry.add_round1_keygen_contribution(
            net.peers[0], 1,
            Round1Contribution(good.comm_share, 0, good.eph_pub_key),
        )


def test_rejected_contribution_leaves_state_untouched(net):
    reg = net.registry
    reg.init_keygen(net.admin, 1)
    events_before = len(reg.events)
    good = net.keygen_round1(0)
    with pytest.raises(PointNotInSubgroup):
        reg.add_round1_keygen_contribution(
            net.peers[0], 1,
            Round1Contribution(add(good.comm_share, TORSION), 5, good.eph_pub_key),
        )
    assert len(reg.events) == events_before
    # the same party can still submit a valid contribution
    reg.add_round1_keygen_contribution(net.peers[0], 1, good)


def _to_round_two(net, key_id=1):
    net.registry.init_keygen(net.admin, key_id)
    for pid in range(net.num_peers):
        net.registry.add_round1_keygen_contribution(
            net.peers[pid], key_id, net.keygen_round1(pid),
        )


def test_round2_double_submission(net):
    _to_round_two(net)
    net.registry.add_round2_contribution(net.peers[0], 1, net.round2(0))
    with pytest.raises(AlreadySubmitted):
        net.registry.add_round2_contribution(net.peers[0], 1, net.round2(0))


def test_round2_wrong_cipher_count(net):
    _to_round_two(net)
    r2 = net.round2(0)
    short = Round2Contribution(r2.compressed_proof, r2.ciphers[:2])
    with pytest.raises(BadContribution):
        net.registry.add_round2_contribution(net.peers[0], 1, short)


def test_round2_bad_commitment(net):
    _to_round_two(net)
    r2 = net.round2(0)
    bad = r2.ciphers[0].__class__(
        r2.ciphers[0].nonce, r2.ciphers[0].cipher, AffinePoint(1, 1),
    )
    with pytest.raises(PointNotOnCurve):
        net.registry.add_round2_contribution(
            net.peers[0], 1,
            Round2Contribution(r2.compressed_proof, (bad,) + r2.ciphers[1:]),
        )


def test_round2_proof_rejected_is_atomic(net):
    _to_round_two(net)
    net.verifier.accept = False
    with pytest.raises(ProofRejected):
        net.registry.add_round2_contribution(net.peers[0], 1, net.round2(0))
    net.verifier.accept = True
    # nothing was aggregated or marked: the same contribution now succeeds
    for pid in range(3):
        net.registry.add_round2_contribution(net.peers[pid], 1, net.round2(pid))
    for addr in net.peers:
        net.registry.add_round3_contribution(addr, 1)
    for j, c in enumerate(net.registry.share_commitments(1)):
        expected = sum(
            (evaluate(net.polys[i], evaluation_point(j)) for i in range(3)),
            Scalar.zero(),
        )
        assert c == expected * G


def test_public_input_layout(net):
    _to_round_two(net)
    r2 = net.round2(1)
    net.registry.add_round2_contribution(net.peers[1], 1, r2)
    inputs = net.verifier.calls[-1]
    n = net.num_peers
    assert len(inputs) == public_input_length(n)
    r1 = net.keygen_round1(1)
    assert inputs[0:2] == r1.eph_pub_key.to_words()
    assert inputs[2:5] == r1.comm_share.to_words() + [r1.comm_coeffs]
    assert inputs[5:5 + n] == [c.cipher for c in r2.ciphers]
    assert inputs[5 + n:7 + n] == r2.ciphers[0].commitment.to_words()
    assert inputs[5 + 3 * n:7 + 3 * n] == net.eph_key(0).to_words()
    assert inputs[5 + 5 * n] == net.threshold - 1
    assert inputs[6 + 5 * n:] == [c.nonce for c in r2.ciphers]


def test_round3_double_ack(net):
    _to_round_two(net)
    for pid in range(3):
        net.registry.add_round2_contribution(net.peers[pid], 1, net.round2(pid))
    net.registry.add_round3_contribution(net.peers[2], 1)
    with pytest.raises(AlreadySubmitted):
        net.registry.add_round3_contribution(net.peers[2], 1)


def test_round3_before_round_three(net):
    _to_round_two(net)
    with pytest.raises(WrongRound) as exc:
        net.registry.add_round3_contribution(net.peers[0], 1)
    assert exc.value.actual is Round.ROUND_TWO


def test_independent_key_ids(net):
    net.run_keygen(1)
    first = net.registry.get_public_key(1)
    net.registry.init_keygen(net.admin, 2)
    assert net.registry.current_round(1) is Round.NOT_STARTED
    assert net.registry.current_round(2) is Round.ROUND_ONE
    assert net.registry.get_public_key(1) == first
