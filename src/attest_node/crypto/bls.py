"""BLS12-381 signatures for operator attestations (py_ecc).

Uses the proof-of-possession ciphersuite:
- G1 public keys (48 bytes compressed)
- G2 signatures (96 bytes compressed)

Every operator registers a proof-of-possession with the stake registry
before its key may take part in an aggregate. That is what makes
FastAggregateVerify over a set of same-message signers safe against
rogue-key attacks.

py_ecc is pure Python and not constant-time; it is used here for
verification of public data, not for custody of high-value keys.
"""

from __future__ import annotations

import secrets

from py_ecc.bls import G2ProofOfPossession as bls
from py_ecc.optimized_bls12_381 import curve_order

BLS_PUBKEY_LEN = 48
BLS_SIGNATURE_LEN = 96
BLS_PRIVKEY_LEN = 32

DEFAULT_DOMAIN = b"ATTEST_ORACLE_V1"


class BLSError(Exception):
    """BLS operation error."""


class BLSScheme:
    """Sign / verify / aggregate with application-level domain separation."""

    def __init__(self, domain: bytes = DEFAULT_DOMAIN) -> None:
        if len(domain) > 32:
            raise ValueError("domain must be <= 32 bytes")
        self._domain = domain

    @property
    def domain(self) -> bytes:
        return self._domain

    def _domain_separate(self, message: bytes) -> bytes:
        # domain_len(1) || domain || message
        return len(self._domain).to_bytes(1, "big") + self._domain + message

    @staticmethod
    def _validate_privkey(private_key: bytes) -> int:
        if len(private_key) != BLS_PRIVKEY_LEN:
            raise BLSError(f"private key must be {BLS_PRIVKEY_LEN} bytes")
        sk_int = int.from_bytes(private_key, "big")
        if sk_int == 0 or sk_int >= curve_order:
            raise BLSError("private key out of range [1, r-1]")
        return sk_int

    @staticmethod
    def validate_pubkey(public_key: bytes) -> None:
        if len(public_key) != BLS_PUBKEY_LEN:
            raise BLSError(f"public key must be {BLS_PUBKEY_LEN} bytes")
        if not bls.KeyValidate(public_key):
            raise BLSError("public key failed validation")

    @staticmethod
    def keypair_from_seed(seed: bytes) -> tuple[bytes, bytes]:
        """Derive a keypair deterministically from >= 32 bytes of seed."""
        if len(seed) < 32:
            raise BLSError("seed must be at least 32 bytes")
        sk_int = bls.KeyGen(seed)
        return sk_int.to_bytes(BLS_PRIVKEY_LEN, "big"), bls.SkToPk(sk_int)

    def generate_keypair(self) -> tuple[bytes, bytes]:
        """Returns (private_key, public_key)."""
        return self.keypair_from_seed(secrets.token_bytes(32))

    def public_key(self, private_key: bytes) -> bytes:
        return bls.SkToPk(self._validate_privkey(private_key))

    def sign(self, private_key: bytes, message: bytes) -> bytes:
        sk_int = self._validate_privkey(private_key)
        return bls.Sign(sk_int, self._domain_separate(message))

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        if len(signature) != BLS_SIGNATURE_LEN:
            return False
        try:
            self.validate_pubkey(public_key)
            return bls.Verify(public_key, self._domain_separate(message), signature)
        except (BLSError, ValueError):
            return False

    def create_pop(self, private_key: bytes) -> bytes:
        """Proof-of-possession for the key's public half."""
        return bls.PopProve(self._validate_privkey(private_key))

    def verify_pop(self, public_key: bytes, pop: bytes) -> bool:
        try:
            self.validate_pubkey(public_key)
            return bls.PopVerify(public_key, pop)
        except (BLSError, ValueError):
            return False

    def aggregate_signatures(self, signatures: list[bytes]) -> bytes:
        if not signatures:
            raise BLSError("cannot aggregate empty signature list")
        for sig in signatures:
            if len(sig) != BLS_SIGNATURE_LEN:
                raise BLSError(f"signature must be {BLS_SIGNATURE_LEN} bytes")
        try:
            return bls.Aggregate(signatures)
        except ValueError as e:
            raise BLSError(f"invalid signature: {e}") from e

    def verify_aggregated(
        self,
        public_keys: list[bytes],
        message: bytes,
        aggregated_sig: bytes,
    ) -> bool:
        """Verify one aggregate signature over the same message.

        Keys must be distinct and must already have a verified
        proof-of-possession (checked at registry registration).
        """
        if not public_keys or len(aggregated_sig) != BLS_SIGNATURE_LEN:
            return False
        if len(public_keys) != len(set(public_keys)):
            return False
        try:
            for pk in public_keys:
                self.validate_pubkey(pk)
            return bls.FastAggregateVerify(
                public_keys, self._domain_separate(message), aggregated_sig
            )
        except (BLSError, ValueError):
            return False
