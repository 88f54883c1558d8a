"""Networking layer — HTTP client for oracle nodes."""

from attest_node.network.client import ClientError, OracleClient

__all__ = ["ClientError", "OracleClient"]
