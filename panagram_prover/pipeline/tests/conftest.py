"""Shared fixtures for pipeline tests."""

from __future__ import annotations

import base64
import gzip
import hashlib
import json
import threading
from pathlib import Path
from typing import Mapping

import pytest

from panagram_prover.pipeline.artifact import CircuitArtifact, load_artifact
from panagram_prover.pipeline.errors import ConstraintUnsatisfied
from panagram_prover.pipeline.fields import field_to_bytes
from panagram_prover.pipeline.messages import ProverOptions, RawProof, Witness
from panagram_prover.pipeline.orchestrator import ProofPipeline

PANAGRAM_PARAMETERS = [
    {"name": "guess_hash", "type": {"kind": "field"}, "visibility": "private"},
    {"name": "answer_hash", "type": {"kind": "field"}, "visibility": "public"},
]


def make_artifact_payload(parameters=None, program: bytes = b"acir-program") -> dict:
    return {
        "noir_version": "1.0.0-beta.3",
        "hash": 4242,
        "abi": {
            "parameters": PANAGRAM_PARAMETERS if parameters is None else parameters,
            "return_type": None,
            "error_types": {},
        },
        "bytecode": base64.b64encode(gzip.compress(program)).decode("ascii"),
        "debug_symbols": "",
        "file_map": {},
        "names": ["main"],
    }


def write_artifact(program_dir: Path, payload: dict, name: str = "zk_panagram") -> Path:
    target = program_dir / "target"
    target.mkdir(parents=True, exist_ok=True)
    (program_dir / "Nargo.toml").write_text(
        '[package]\nname = "zk_panagram"\ntype = "bin"\n', encoding="utf-8"
    )
    path = target / f"{name}.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class EqualityExecutor:
    """Solves the relation ``guess_hash == answer_hash`` in-process."""

    def __init__(self) -> None:
        self.calls = 0
        self._lock = threading.Lock()

    def execute(self, artifact: CircuitArtifact, inputs: Mapping[str, str]) -> bytes:
        with self._lock:
            self.calls += 1
        if inputs["guess_hash"] != inputs["answer_hash"]:
            raise ConstraintUnsatisfied("Failed constraint: guess_hash == answer_hash")
        payload = "|".join(f"{k}={v}" for k, v in inputs.items()).encode("ascii")
        return gzip.compress(payload, mtime=0)


class FakeBackend:
    """Deterministic stand-in for a proving backend."""

    def __init__(self, proof_size: int = 440 * 32, echo_public_inputs: bool = True) -> None:
        self.proof_size = proof_size
        self.echo_public_inputs = echo_public_inputs
        self.calls = 0
        self.seen_options: list[ProverOptions] = []
        self._lock = threading.Lock()

    def prove(
        self, artifact: CircuitArtifact, witness: Witness, options: ProverOptions
    ) -> tuple[bytes, bytes]:
        with self._lock:
            self.calls += 1
            self.seen_options.append(options)
        proof = _expand(witness.data + options.hash_mode.value.encode(), self.proof_size)
        public_inputs = b""
        if self.echo_public_inputs:
            public_inputs = b"".join(field_to_bytes(v) for v in witness.public_inputs)
        return proof, public_inputs

    def verify(self, proof: bytes, answer_hash: str, hash_mode: str = "keccak") -> bool:
        """Accept only the proof this backend would produce for a matching guess."""
        witness = gzip.compress(
            f"guess_hash={answer_hash}|answer_hash={answer_hash}".encode("ascii"), mtime=0
        )
        return proof == _expand(witness + hash_mode.encode(), self.proof_size)


def _expand(seed: bytes, size: int) -> bytes:
    out = bytearray()
    counter = 0
    while len(out) < size:
        out.extend(hashlib.sha256(seed + counter.to_bytes(4, "big")).digest())
        counter += 1
    return bytes(out[:size])


@pytest.fixture
def artifact_path(tmp_path: Path) -> Path:
    return write_artifact(tmp_path / "circuits", make_artifact_payload())


@pytest.fixture
def artifact(artifact_path: Path) -> CircuitArtifact:
    return load_artifact(artifact_path)


@pytest.fixture
def executor() -> EqualityExecutor:
    return EqualityExecutor()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def pipeline(executor: EqualityExecutor, backend: FakeBackend) -> ProofPipeline:
    return ProofPipeline(executor=executor, backend=backend)


@pytest.fixture
def raw_proof() -> RawProof:
    return RawProof(proof=bytes(range(256)) * 3, public_inputs=("0x" + "00" * 31 + "01",))
