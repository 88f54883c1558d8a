"""Off-chain tooling — operator signing and signature aggregation."""

from attest_node.offchain.collector import SignatureCollector
from attest_node.offchain.operator import OperatorSigner, SignedResponse

__all__ = ["OperatorSigner", "SignatureCollector", "SignedResponse"]
