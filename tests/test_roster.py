import pytest

from oprfreg.errors import (
    DuplicatePeerAddress,
    LastAdmin,
    NotAParticipant,
    RosterSizeMismatch,
    Unauthorized,
    WrongRound,
)
from oprfreg.events import KeyGenAdminRegistered, KeyGenAdminRevoked, PeersRegistered
from oprfreg.roster import PeerRoster

OWNER = "0x00000000000000000000000000000000000000aa"


def make_roster():
    return PeerRoster(num_peers=3, threshold=2, owner=OWNER)


def test_register_assigns_sequential_ids():
    roster = make_roster()
    roster.register_peers(["0x01", "0x02", "0x03"])
    assert [roster.party_id(a) for a in ("0x01", "0x02", "0x03")] == [0, 1, 2]
    assert roster.addresses() == ["0x01", "0x02", "0x03"]
    assert roster.is_registered


def test_register_replaces_roster():
    roster = make_roster()
    roster.register_peers(["0x01", "0x02", "0x03"])
    roster.register_peers(["0x04", "0x03", "0x05"])
    assert roster.party_id("0x03") == 1
    with pytest.raises(NotAParticipant):
        roster.party_id("0x01")


def test_register_size_mismatch():
    roster = make_roster()
    with pytest.raises(RosterSizeMismatch):
        roster.register_peers(["0x01", "0x02"])


def test_register_duplicates():
    roster = make_roster()
    with pytest.raises(DuplicatePeerAddress):
        roster.register_peers(["0x01", "0xAB", "0xab"])
    assert not roster.is_registered


def test_invalid_threshold():
    with pytest.raises(ValueError):
        PeerRoster(num_peers=3, threshold=4, owner=OWNER)


def test_admin_rules():
    roster = make_roster()
    roster.add_admin("0x0A")
    assert roster.is_admin("0x0a")
    assert not roster.add_admin("0x0a")
    with pytest.raises(LastAdmin):
        roster.revoke_admin("0x0a")
    roster.add_admin("0x0b")
    assert roster.revoke_admin("0x0a")
    assert not roster.revoke_admin("0x0a")
    with pytest.raises(Unauthorized):
        roster.require_admin("0x0a")


def test_registry_roster_ops_are_owner_only(net):
    reg = net.registry
    with pytest.raises(Unauthorized):
        reg.register_peers(net.admin, net.peers)
    with pytest.raises(Unauthorized):
        reg.add_admin(net.peers[0], net.peers[0])
    assert isinstance(reg.events.of_type(PeersRegistered)[-1], PeersRegistered)


def test_registry_admin_events(net):
    reg = net.registry
    new_admin = "0x00000000000000000000000000000000000000bb"
    reg.add_admin(net.owner, new_admin)
    reg.revoke_admin(net.owner, net.admin)
    assert reg.events.of_type(KeyGenAdminRegistered)[-1].admin == new_admin
    assert reg.events.of_type(KeyGenAdminRevoked)[-1].admin == net.admin
    with pytest.raises(Unauthorized):
        reg.init_keygen(net.admin, 1)
    reg.init_keygen(new_admin, 1)
    with pytest.raises(LastAdmin):
        reg.revoke_admin(net.owner, new_admin)


def test_roster_frozen_while_session_open(net):
    reg = net.registry
    newcomers = [f"0x{i:040x}" for i in (0xD1, 0xD2, 0xD3)]
    reg.init_keygen(net.admin, 42)
    reg.add_round1_keygen_contribution(net.peers[0], 42, net.keygen_round1(0))
    with pytest.raises(WrongRound):
        reg.register_peers(net.owner, newcomers)
    assert reg.roster.addresses() == net.peers

    reg.abort_keygen(net.admin, 42)
    reg.register_peers(net.owner, newcomers)
    assert reg.roster.addresses() == newcomers
    assert reg.events.of_type(PeersRegistered)[-1].addresses == tuple(newcomers)
