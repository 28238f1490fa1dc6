"""Constants for the panagram proof pipeline."""

from __future__ import annotations

# BN254 scalar field order (the field Noir programs are compiled over).
BN254_SCALAR_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_BYTES = 32
FIELD_HEX_DIGITS = FIELD_BYTES * 2

PRIVATE_INPUTS = ("guess_hash",)
PUBLIC_INPUTS = ("answer_hash",)

DEFAULT_PARALLELISM = 1
DEFAULT_PROVER_TIMEOUT = 300
DEFAULT_EXECUTE_TIMEOUT = 120

# ABI encoding bound; UltraHonk proofs are ~14KB so this is never hit in practice.
MAX_PROOF_BYTES = 1024 * 1024
MAX_PUBLIC_INPUTS = 64
MAX_ARTIFACT_BYTES = 64 * 1024 * 1024

BUNDLE_V = 1
MAX_META_BYTES = 4096
MAX_BUNDLE_BYTES = MAX_PROOF_BYTES + MAX_META_BYTES + 8192
