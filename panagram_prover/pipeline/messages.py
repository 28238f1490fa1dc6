"""Value types passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from .constants import DEFAULT_PARALLELISM, MAX_PUBLIC_INPUTS
from .errors import SchemaMismatch
from .fields import to_field_hex


class HashMode(Enum):
    """Public-input hashing scheme expected by the verifier."""

    NATIVE = "native"
    KECCAK = "keccak"

    @property
    def oracle_hash(self) -> str:
        if self is HashMode.KECCAK:
            return "keccak"
        return "poseidon2"

    @classmethod
    def parse(cls, value: "HashMode | str") -> "HashMode":
        if isinstance(value, HashMode):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Invalid hash mode: {value!r}. Valid options: {valid}") from None


@dataclass(frozen=True)
class ProverOptions:
    parallelism: int = DEFAULT_PARALLELISM
    hash_mode: HashMode = HashMode.KECCAK

    def validate(self) -> None:
        if isinstance(self.parallelism, bool) or not isinstance(self.parallelism, int):
            raise ValueError("parallelism must be an int")
        if self.parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        if not isinstance(self.hash_mode, HashMode):
            raise ValueError("hash_mode must be a HashMode")


@dataclass(frozen=True)
class ProofRequest:
    """
    Inputs for a single panagram proof.

    ``guess_hash`` stays private to the prover; ``answer_hash`` is disclosed
    to the verifier. Both are normalized field hex strings after
    ``normalized()``.
    """

    guess_hash: str
    answer_hash: str

    def __repr__(self) -> str:
        return f"ProofRequest(guess_hash=<redacted>, answer_hash={self.answer_hash!r})"

    def validate(self) -> None:
        to_field_hex(self.guess_hash, "guess_hash")
        to_field_hex(self.answer_hash, "answer_hash")

    def normalized(self) -> "ProofRequest":
        return ProofRequest(
            guess_hash=to_field_hex(self.guess_hash, "guess_hash"),
            answer_hash=to_field_hex(self.answer_hash, "answer_hash"),
        )

    def private_inputs(self) -> Dict[str, str]:
        return {"guess_hash": self.guess_hash}

    def public_inputs(self) -> Dict[str, str]:
        return {"answer_hash": self.answer_hash}


@dataclass(frozen=True)
class Witness:
    data: bytes
    public_inputs: tuple[str, ...]

    def __repr__(self) -> str:
        return f"Witness(<{len(self.data)} bytes>, public_inputs={self.public_inputs!r})"


@dataclass(frozen=True)
class RawProof:
    proof: bytes
    public_inputs: tuple[str, ...]
    hash_mode: HashMode = HashMode.KECCAK

    def validate(self) -> None:
        if not isinstance(self.proof, (bytes, bytearray)):
            raise SchemaMismatch("proof must be bytes")
        if len(self.public_inputs) > MAX_PUBLIC_INPUTS:
            raise SchemaMismatch("too many public inputs")
        for idx, value in enumerate(self.public_inputs):
            to_field_hex(value, f"public_inputs[{idx}]")


@dataclass(frozen=True)
class EncodedProof:
    data: bytes

    def hex(self) -> str:
        return "0x" + self.data.hex()

    def __len__(self) -> int:
        return len(self.data)
