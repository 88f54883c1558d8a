"""Tests for attest_node.validation.signature_checker.SignatureChecker."""

from __future__ import annotations

import pytest

from attest_node.crypto.hashing import non_signers_digest, pubkey_digest, response_message
from attest_node.errors import InvalidAggregateSignature
from attest_node.models.proof import NonSignerStakesAndSignature
from attest_node.models.task import TaskResponse
from attest_node.validation.signature_checker import SignatureChecker

QUORUMS = (0, 1)
BLOCK = 100


@pytest.fixture(scope="module")
def response() -> TaskResponse:
    return TaskResponse(reference_task_index=0, is_owner=True)


@pytest.fixture
def checker(registry, scheme) -> SignatureChecker:
    return SignatureChecker(registry, scheme)


class TestValidProofs:
    def test_all_signed(self, checker, make_proof, response) -> None:
        proof = make_proof(response, ["op-1", "op-2"])
        result = checker.check_signatures(response_message(response), QUORUMS, BLOCK, proof)
        assert result.signer_operators == ["op-1", "op-2"]
        assert result.non_signer_operators == []
        assert result.quorum_totals[0].signed_stake == 100
        assert result.quorum_totals[1].signed_stake == 100
        assert result.hash_of_non_signers == non_signers_digest(BLOCK, [])

    def test_with_non_signer(self, checker, make_proof, signers, response) -> None:
        proof = make_proof(response, ["op-1"], ["op-2"])
        result = checker.check_signatures(response_message(response), QUORUMS, BLOCK, proof)
        assert result.signer_operators == ["op-1"]
        assert result.non_signer_operators == ["op-2"]
        assert result.quorum_totals[0].signed_stake == 70
        assert result.quorum_totals[0].total_stake == 100
        assert result.quorum_totals[1].signed_stake == 67
        assert result.hash_of_non_signers == non_signers_digest(
            BLOCK, [pubkey_digest(signers["op-2"].pubkey)]
        )

    def test_reads_stake_at_reference_block(
        self, make_registry, scheme, make_proof, response,
    ) -> None:
        reg = make_registry({"op-1": {0: 70}, "op-2": {0: 30}})
        reg.set_stake(0, "op-2", 0, at_block=200)
        reg.set_stake(0, "op-1", 500, at_block=200)
        checker = SignatureChecker(reg, scheme)
        proof = make_proof(response, ["op-1"], ["op-2"])
        result = checker.check_signatures(response_message(response), (0,), BLOCK, proof)
        assert result.quorum_totals[0].signed_stake == 70
        assert result.quorum_totals[0].total_stake == 100


class TestRejectedProofs:
    def _check(self, checker, response, proof):
        return checker.check_signatures(
            response_message(response), QUORUMS, BLOCK, proof, task_index=0,
        )

    def test_signer_claimed_as_non_signer(self, checker, make_proof, response) -> None:
        # op-2 signed but is listed as a non-signer: rebuilt signer set is {op-1}
        proof = make_proof(response, ["op-1", "op-2"], ["op-2"])
        with pytest.raises(InvalidAggregateSignature):
            self._check(checker, response, proof)

    def test_missing_non_signer(self, checker, make_proof, response) -> None:
        proof = make_proof(response, ["op-1"])
        with pytest.raises(InvalidAggregateSignature):
            self._check(checker, response, proof)

    def test_signature_over_other_message(self, checker, make_proof, response) -> None:
        other = TaskResponse(reference_task_index=0, is_owner=False)
        proof = make_proof(other, ["op-1"], ["op-2"])
        with pytest.raises(InvalidAggregateSignature):
            self._check(checker, response, proof)

    def test_non_signer_outside_quorums(self, checker, make_proof, response) -> None:
        proof = make_proof(response, ["op-1"], ["op-2", "op-3"])
        with pytest.raises(InvalidAggregateSignature, match="not in any task quorum"):
            self._check(checker, response, proof)

    def test_unregistered_non_signer(self, checker, make_proof, response) -> None:
        proof = make_proof(response, ["op-1"])
        proof = NonSignerStakesAndSignature(
            non_signer_pubkeys=("ab" * 48,), signature=proof.signature,
        )
        with pytest.raises(InvalidAggregateSignature, match="not registered"):
            self._check(checker, response, proof)

    def test_duplicate_non_signer(self, checker, make_proof, response) -> None:
        proof = make_proof(response, ["op-1"], ["op-2", "op-2"])
        with pytest.raises(InvalidAggregateSignature, match="Duplicate"):
            self._check(checker, response, proof)

    def test_empty_signer_set(self, checker, make_proof, response) -> None:
        proof = make_proof(response, ["op-1"], ["op-1", "op-2"])
        with pytest.raises(InvalidAggregateSignature, match="Empty signer set"):
            self._check(checker, response, proof)

    def test_bad_hex(self, checker, response) -> None:
        proof = NonSignerStakesAndSignature(non_signer_pubkeys=("zz",), signature="00")
        with pytest.raises(InvalidAggregateSignature, match="not valid hex"):
            self._check(checker, response, proof)

    def test_bad_signature_hex(self, checker, response) -> None:
        proof = NonSignerStakesAndSignature(signature="not-hex")
        with pytest.raises(InvalidAggregateSignature, match="not valid hex"):
            self._check(checker, response, proof)
