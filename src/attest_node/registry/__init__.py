"""Stake/registry provider interface and reference implementation."""

from attest_node.registry.stake_registry import InMemoryStakeRegistry, StakeRegistry

__all__ = ["InMemoryStakeRegistry", "StakeRegistry"]
