"""Shared fixtures: deterministic operator keys and stake registries.

BLS operations in py_ecc are slow, so keys and proofs of possession are
derived once per session.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

import pytest

from attest_node.crypto.bls import BLSScheme
from attest_node.models.proof import NonSignerStakesAndSignature
from attest_node.models.task import TaskResponse
from attest_node.offchain.operator import OperatorSigner
from attest_node.registry.stake_registry import InMemoryStakeRegistry

OPERATOR_SEEDS = {
    "op-1": bytes([1]) * 32,
    "op-2": bytes([2]) * 32,
    "op-3": bytes([3]) * 32,
}

# Two quorums of total stake 100 each; op-2 alone is the minority.
# op-3 is registered but only staked outside quorums 0 and 1.
STAKES_ACCEPTED = {
    "op-1": {0: 70, 1: 67},
    "op-2": {0: 30, 1: 33},
    "op-3": {9: 50},
}
STAKES_SHORT = {
    "op-1": {0: 70, 1: 66},
    "op-2": {0: 30, 1: 34},
    "op-3": {9: 50},
}

WALLET = "0x5a11e7000000000000000000000000000000beef"
OWNER = "0x0000000000000000000000000000000000c0ffee"


@pytest.fixture(scope="session")
def scheme() -> BLSScheme:
    return BLSScheme()


@pytest.fixture(scope="session")
def signers(scheme) -> dict[str, OperatorSigner]:
    return {
        op: OperatorSigner.from_seed(op, seed, scheme)
        for op, seed in OPERATOR_SEEDS.items()
    }


@pytest.fixture(scope="session")
def secret_keys() -> dict[str, str]:
    return {
        op: BLSScheme.keypair_from_seed(seed)[0].hex()
        for op, seed in OPERATOR_SEEDS.items()
    }


@pytest.fixture(scope="session")
def pops(signers) -> dict[str, bytes]:
    return {op: s.proof_of_possession() for op, s in signers.items()}


@pytest.fixture(scope="session")
def make_registry(scheme, signers, pops) -> Callable[..., InMemoryStakeRegistry]:
    """Factory: registry with every test operator and the given stakes at block 0."""

    def _make(stakes: Mapping[str, Mapping[int, int]]) -> InMemoryStakeRegistry:
        registry = InMemoryStakeRegistry(scheme)
        for op, signer in signers.items():
            registry.register_operator(op, signer.pubkey, pops[op])
        for op, per_quorum in stakes.items():
            for quorum_id, amount in per_quorum.items():
                registry.set_stake(quorum_id, op, amount, 0)
        return registry

    return _make


@pytest.fixture(scope="session")
def registry(make_registry) -> InMemoryStakeRegistry:
    """Read-only registry in which op-1 alone meets a 67% threshold."""
    return make_registry(STAKES_ACCEPTED)


@pytest.fixture(scope="session")
def short_registry(make_registry) -> InMemoryStakeRegistry:
    """Read-only registry in which op-1 alone falls one unit short in quorum 1."""
    return make_registry(STAKES_SHORT)


@pytest.fixture(scope="session")
def make_proof(scheme, signers) -> Callable[..., NonSignerStakesAndSignature]:
    """Factory: aggregate proof signed by ``signing`` listing ``non_signing``."""

    def _make(
        response: TaskResponse,
        signing: Iterable[str],
        non_signing: Iterable[str] = (),
    ) -> NonSignerStakesAndSignature:
        sigs = [
            bytes.fromhex(signers[op].sign_response(response).signature)
            for op in signing
        ]
        return NonSignerStakesAndSignature(
            non_signer_pubkeys=tuple(signers[op].pubkey_hex for op in non_signing),
            signature=scheme.aggregate_signatures(sigs).hex(),
        )

    return _make
