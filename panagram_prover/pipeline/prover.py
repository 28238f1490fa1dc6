"""Proof generation over a derived witness."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from .artifact import CircuitArtifact
from .constants import DEFAULT_PROVER_TIMEOUT
from .errors import ConfigurationError, PipelineError, ProvingFailed
from .fields import field_to_bytes, split_field_words
from .messages import ProverOptions, RawProof, Witness
from .toolchain import find_binary, stderr_tail

logger = logging.getLogger(__name__)

PROVING_SCHEME = "ultra_honk"


class ProvingBackend(Protocol):
    def prove(
        self, artifact: CircuitArtifact, witness: Witness, options: ProverOptions
    ) -> tuple[bytes, bytes]:
        """Return ``(proof, public_inputs)`` as raw bytes."""
        ...


class Prover:
    """
    Run a proving backend and check its output against the witness.

    Backend errors of any kind surface as ``ProvingFailed``; nothing is
    retried, since the same inputs reproduce the same failure.
    """

    def __init__(self, backend: ProvingBackend) -> None:
        self._backend = backend

    def prove(
        self,
        artifact: CircuitArtifact,
        witness: Witness,
        options: Optional[ProverOptions] = None,
    ) -> RawProof:
        options = options or ProverOptions()
        try:
            options.validate()
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        try:
            proof, public_blob = self._backend.prove(artifact, witness, options)
        except PipelineError:
            raise
        except Exception as exc:
            raise ProvingFailed(f"backend error: {type(exc).__name__}: {exc}") from exc

        if not proof:
            raise ProvingFailed("backend returned an empty proof")

        if public_blob:
            try:
                public_inputs = split_field_words(bytes(public_blob))
            except ValueError as exc:
                raise ProvingFailed(f"malformed public inputs: {exc}") from exc
            if public_inputs != witness.public_inputs:
                raise ProvingFailed("backend public inputs do not match the witness")
        else:
            public_inputs = witness.public_inputs

        logger.debug(
            "proved %s with %s (%d bytes, %d threads)",
            artifact.name,
            options.hash_mode.value,
            len(proof),
            options.parallelism,
        )
        return RawProof(
            proof=bytes(proof),
            public_inputs=public_inputs,
            hash_mode=options.hash_mode,
        )


def prove(
    artifact: CircuitArtifact,
    witness: Witness,
    options: Optional[ProverOptions] = None,
    backend: Optional[ProvingBackend] = None,
) -> RawProof:
    return Prover(backend or BarretenbergBackend()).prove(artifact, witness, options)


class BarretenbergBackend:
    """UltraHonk proving and verification through the ``bb`` CLI."""

    def __init__(
        self, bb_bin: str = "bb", timeout: float = DEFAULT_PROVER_TIMEOUT
    ) -> None:
        self._bb_bin = bb_bin
        self._timeout = timeout

    def prove(
        self, artifact: CircuitArtifact, witness: Witness, options: ProverOptions
    ) -> tuple[bytes, bytes]:
        bb = find_binary(self._bb_bin)
        with tempfile.TemporaryDirectory(prefix="panagram-bb-") as tmp_dir:
            tmp = Path(tmp_dir)
            witness_path = tmp / "witness.gz"
            witness_path.write_bytes(witness.data)
            program_path = artifact.write_program(tmp)
            command = [
                bb,
                "prove",
                "--scheme",
                PROVING_SCHEME,
                "-b",
                str(program_path),
                "-w",
                str(witness_path),
                "-o",
                str(tmp),
                "--oracle_hash",
                options.hash_mode.oracle_hash,
                "--write_vk",
            ]
            self._run(command, options.parallelism, "bb prove")

            proof_path = tmp / "proof"
            if not proof_path.is_file():
                raise ProvingFailed(f"bb prove wrote no proof to {tmp}")
            proof = proof_path.read_bytes()
            public_inputs_path = tmp / "public_inputs"
            public_inputs = (
                public_inputs_path.read_bytes() if public_inputs_path.is_file() else b""
            )
        return proof, public_inputs

    def verify(self, artifact: CircuitArtifact, proof: RawProof) -> bool:
        """
        Check a proof locally with ``bb verify``.

        Returns False on any failure; this is a convenience check and not the
        on-chain verifier.
        """
        try:
            bb = find_binary(self._bb_bin)
            with tempfile.TemporaryDirectory(prefix="panagram-bb-") as tmp_dir:
                tmp = Path(tmp_dir)
                proof_path = tmp / "proof"
                public_inputs_path = tmp / "public_inputs"
                proof_path.write_bytes(proof.proof)
                program_path = artifact.write_program(tmp)
                public_inputs_path.write_bytes(
                    b"".join(field_to_bytes(value) for value in proof.public_inputs)
                )
                self._run(
                    [
                        bb,
                        "write_vk",
                        "--scheme",
                        PROVING_SCHEME,
                        "-b",
                        str(program_path),
                        "-o",
                        str(tmp),
                        "--oracle_hash",
                        proof.hash_mode.oracle_hash,
                    ],
                    1,
                    "bb write_vk",
                )
                self._run(
                    [
                        bb,
                        "verify",
                        "--scheme",
                        PROVING_SCHEME,
                        "-k",
                        str(tmp / "vk"),
                        "-p",
                        str(proof_path),
                        "-i",
                        str(public_inputs_path),
                        "--oracle_hash",
                        proof.hash_mode.oracle_hash,
                    ],
                    1,
                    "bb verify",
                )
        except PipelineError as exc:
            logger.warning("local verification failed: %s", exc)
            return False
        return True

    def _run(self, command: list[str], parallelism: int, label: str) -> None:
        env = dict(os.environ)
        env["HARDWARE_CONCURRENCY"] = str(parallelism)
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=self._timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProvingFailed(f"{label} timed out after {self._timeout}s") from exc
        except OSError as exc:
            raise ProvingFailed(f"{label} could not start: {exc}") from exc
        if result.returncode != 0:
            raise ProvingFailed(
                f"{label} failed: {stderr_tail(result.stderr, 'unknown prover error')}"
            )
