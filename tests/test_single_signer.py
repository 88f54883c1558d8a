"""Tests for attest_node.oracle.single_signer.SingleSignerTaskManager."""

from __future__ import annotations

import pytest

from attest_node.blockchain.clock import BlockClock
from attest_node.crypto.hashing import response_digest
from attest_node.errors import (
    DuplicateResponse,
    InvalidAggregateSignature,
    TaskMismatch,
    UnregisteredOperator,
)
from attest_node.models.notification import NotificationType
from attest_node.models.task import TaskResponse
from attest_node.offchain.operator import OperatorSigner
from attest_node.oracle.single_signer import SingleSignerTaskManager


@pytest.fixture
def manager(registry, scheme) -> SingleSignerTaskManager:
    return SingleSignerTaskManager(registry, clock=BlockClock(100), scheme=scheme)


class TestSingleSigner:
    def test_create_has_no_quorum(self, manager) -> None:
        index, task = manager.create_task("0xwallet", "0xowner")
        assert index == 0
        assert task.quorum_ids == ()
        assert task.quorum_threshold_percentage == 0
        assert task.task_created_block == 100

    def test_respond(self, manager, signers) -> None:
        index, task = manager.create_task("0xwallet", "0xowner")
        response = TaskResponse(reference_task_index=index, is_owner=True)
        signed = signers["op-3"].sign_response(response)

        operator = manager.respond_to_task(task, response, signed.signature, signed.pubkey)
        assert operator == "op-3"
        assert manager.store.get_response_digest(index) == response_digest(response)
        (note,) = manager.store.notifications(event_type=NotificationType.RESPONSE_RECORDED)
        assert note.payload["operator"] == "op-3"

    def test_no_response_window(self, manager, signers) -> None:
        index, task = manager.create_task("0xwallet", "0xowner")
        manager.clock.advance(10_000)
        response = TaskResponse(reference_task_index=index, is_owner=False)
        signed = signers["op-1"].sign_response(response)
        assert manager.respond_to_task(task, response, signed.signature, signed.pubkey) == "op-1"

    def test_duplicate(self, manager, signers) -> None:
        index, task = manager.create_task("0xwallet", "0xowner")
        response = TaskResponse(reference_task_index=index, is_owner=True)
        signed = signers["op-1"].sign_response(response)
        manager.respond_to_task(task, response, signed.signature, signed.pubkey)
        other = signers["op-2"].sign_response(response)
        with pytest.raises(DuplicateResponse):
            manager.respond_to_task(task, response, other.signature, other.pubkey)

    def test_task_mismatch(self, manager, signers) -> None:
        index, task = manager.create_task("0xwallet", "0xowner")
        forged = task.model_copy(update={"owner_address": "0xattacker"})
        response = TaskResponse(reference_task_index=index, is_owner=True)
        signed = signers["op-1"].sign_response(response)
        with pytest.raises(TaskMismatch):
            manager.respond_to_task(forged, response, signed.signature, signed.pubkey)

    def test_unregistered_key(self, manager, scheme) -> None:
        outsider = OperatorSigner.from_seed("outsider", b"\x99" * 32, scheme)
        index, task = manager.create_task("0xwallet", "0xowner")
        response = TaskResponse(reference_task_index=index, is_owner=True)
        signed = outsider.sign_response(response)
        with pytest.raises(UnregisteredOperator):
            manager.respond_to_task(task, response, signed.signature, signed.pubkey)

    def test_signature_for_other_answer(self, manager, signers) -> None:
        index, task = manager.create_task("0xwallet", "0xowner")
        response = TaskResponse(reference_task_index=index, is_owner=True)
        signed = signers["op-1"].sign_response(
            TaskResponse(reference_task_index=index, is_owner=False)
        )
        with pytest.raises(InvalidAggregateSignature):
            manager.respond_to_task(task, response, signed.signature, signed.pubkey)
        assert manager.store.get_response_digest(index) is None

    def test_bad_hex(self, manager) -> None:
        index, task = manager.create_task("0xwallet", "0xowner")
        response = TaskResponse(reference_task_index=index, is_owner=True)
        with pytest.raises(InvalidAggregateSignature):
            manager.respond_to_task(task, response, "xyz", "abc")
