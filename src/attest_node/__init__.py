"""Attestation oracle node — staked operators attesting smart-wallet ownership."""
