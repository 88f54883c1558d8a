"""Tests for attest_node.registry.stake_registry.InMemoryStakeRegistry."""

from __future__ import annotations

import pytest

from attest_node.crypto.hashing import pubkey_digest
from attest_node.errors import RegistryError
from attest_node.registry.stake_registry import InMemoryStakeRegistry


@pytest.fixture
def empty_registry(scheme, signers, pops):
    reg = InMemoryStakeRegistry(scheme)
    reg.register_operator("op-1", signers["op-1"].pubkey, pops["op-1"])
    reg.register_operator("op-2", signers["op-2"].pubkey, pops["op-2"])
    return reg


class TestRegistration:
    def test_register_returns_key_digest(self, scheme, signers, pops) -> None:
        reg = InMemoryStakeRegistry(scheme)
        digest = reg.register_operator("op-1", signers["op-1"].pubkey, pops["op-1"])
        assert digest == pubkey_digest(signers["op-1"].pubkey)
        assert reg.operator_of(digest) == "op-1"
        assert reg.is_registered_operator("op-1")
        assert reg.pubkey_of("op-1") == signers["op-1"].pubkey
        assert reg.operator_count == 1

    def test_duplicate_operator(self, empty_registry, signers, pops) -> None:
        with pytest.raises(RegistryError, match="already registered"):
            empty_registry.register_operator("op-1", signers["op-3"].pubkey, pops["op-3"])

    def test_duplicate_key(self, empty_registry, signers, pops) -> None:
        with pytest.raises(RegistryError, match="key already registered"):
            empty_registry.register_operator("op-9", signers["op-1"].pubkey, pops["op-1"])

    def test_bad_proof_of_possession(self, scheme, signers, pops) -> None:
        reg = InMemoryStakeRegistry(scheme)
        with pytest.raises(RegistryError, match="proof of possession"):
            reg.register_operator("op-1", signers["op-1"].pubkey, pops["op-2"])
        assert not reg.is_registered_operator("op-1")

    def test_unknown_lookups(self, empty_registry) -> None:
        assert empty_registry.operator_of("00" * 32) is None
        assert not empty_registry.is_registered_operator("nobody")
        with pytest.raises(RegistryError):
            empty_registry.pubkey_of("nobody")


class TestStakeHistory:
    def test_point_in_time_lookup(self, empty_registry) -> None:
        empty_registry.set_stake(0, "op-1", 10, at_block=5)
        empty_registry.set_stake(0, "op-1", 40, at_block=20)
        assert empty_registry.stake_of(0, "op-1", 4) == 0
        assert empty_registry.stake_of(0, "op-1", 5) == 10
        assert empty_registry.stake_of(0, "op-1", 19) == 10
        assert empty_registry.stake_of(0, "op-1", 20) == 40
        assert empty_registry.stake_of(0, "op-1", 1000) == 40

    def test_total_stake(self, empty_registry) -> None:
        empty_registry.set_stake(0, "op-1", 70, at_block=0)
        empty_registry.set_stake(0, "op-2", 30, at_block=0)
        empty_registry.set_stake(0, "op-2", 50, at_block=10)
        assert empty_registry.total_stake_of(0, 9) == 100
        assert empty_registry.total_stake_of(0, 10) == 120
        assert empty_registry.total_stake_of(1, 10) == 0

    def test_membership_follows_stake(self, empty_registry) -> None:
        empty_registry.set_stake(0, "op-1", 70, at_block=0)
        empty_registry.set_stake(0, "op-2", 30, at_block=5)
        empty_registry.set_stake(0, "op-2", 0, at_block=50)
        assert empty_registry.operators_in_quorum(0, 0) == ["op-1"]
        assert empty_registry.operators_in_quorum(0, 5) == ["op-1", "op-2"]
        assert empty_registry.operators_in_quorum(0, 50) == ["op-1"]

    def test_same_block_update_overwrites(self, empty_registry) -> None:
        empty_registry.set_stake(0, "op-1", 10, at_block=5)
        empty_registry.set_stake(0, "op-1", 15, at_block=5)
        assert empty_registry.stake_of(0, "op-1", 5) == 15

    def test_out_of_order_rejected(self, empty_registry) -> None:
        empty_registry.set_stake(0, "op-1", 10, at_block=5)
        with pytest.raises(RegistryError, match="block order"):
            empty_registry.set_stake(0, "op-1", 20, at_block=4)

    def test_unknown_operator_rejected(self, empty_registry) -> None:
        with pytest.raises(RegistryError, match="Unknown operator"):
            empty_registry.set_stake(0, "op-9", 10, at_block=0)

    def test_negative_values_rejected(self, empty_registry) -> None:
        with pytest.raises(RegistryError):
            empty_registry.set_stake(0, "op-1", -1, at_block=0)
        with pytest.raises(RegistryError):
            empty_registry.set_stake(0, "op-1", 1, at_block=-1)
