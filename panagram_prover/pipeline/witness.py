"""Witness derivation for panagram proof requests."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Protocol

from .artifact import CircuitArtifact
from .constants import DEFAULT_EXECUTE_TIMEOUT
from .errors import (
    ArtifactCorrupt,
    BackendUnavailable,
    ConstraintUnsatisfied,
    PipelineError,
    SchemaMismatch,
)
from .messages import ProofRequest, Witness
from .toolchain import find_binary, stderr_tail

logger = logging.getLogger(__name__)

PROVER_NAME = "Prover"

_CONSTRAINT_MARKERS = (
    "failed constraint",
    "failed assertion",
    "assertion failed",
    "cannot satisfy constraint",
    "unsatisfied",
)
_SCHEMA_MARKERS = (
    "inputparsererror",
    "could not parse",
    "missing argument",
    "unexpected argument",
    "duplicate variable",
    "type mismatch",
)


class WitnessExecutor(Protocol):
    def execute(self, artifact: CircuitArtifact, inputs: Mapping[str, str]) -> bytes:
        ...


class WitnessDeriver:
    """Bind a request to an artifact's ABI and solve for a witness."""

    def __init__(self, executor: WitnessExecutor) -> None:
        self._executor = executor

    def derive(self, artifact: CircuitArtifact, request: ProofRequest) -> Witness:
        request = request.normalized()
        check_request_schema(artifact, request)

        inputs = dict(request.private_inputs())
        inputs.update(request.public_inputs())
        ordered = {p.name: inputs[p.name] for p in artifact.parameters}

        data = self._executor.execute(artifact, ordered)
        if not data:
            raise ConstraintUnsatisfied("executor returned an empty witness")

        public_inputs = tuple(ordered[p.name] for p in artifact.public_parameters)
        logger.debug(
            "derived witness for %s (%d bytes, %d public inputs)",
            artifact.name,
            len(data),
            len(public_inputs),
        )
        return Witness(data=bytes(data), public_inputs=public_inputs)


def check_request_schema(artifact: CircuitArtifact, request: ProofRequest) -> None:
    """
    Ensure the request's private/public fields match the artifact ABI exactly.

    Raises:
        SchemaMismatch: On any difference in names, counts, visibility or kind.
    """
    expected_private = [p.name for p in artifact.private_parameters]
    expected_public = [p.name for p in artifact.public_parameters]
    got_private = sorted(request.private_inputs())
    got_public = sorted(request.public_inputs())

    if len(expected_private) != len(got_private) or len(expected_public) != len(got_public):
        raise SchemaMismatch(
            f"artifact expects {len(expected_private)} private and "
            f"{len(expected_public)} public inputs, request has "
            f"{len(got_private)} private and {len(got_public)} public"
        )
    if sorted(expected_private) != got_private:
        raise SchemaMismatch(
            f"private inputs {got_private} do not match artifact {sorted(expected_private)}"
        )
    if sorted(expected_public) != got_public:
        raise SchemaMismatch(
            f"public inputs {got_public} do not match artifact {sorted(expected_public)}"
        )
    for param in artifact.parameters:
        if param.kind != "field":
            raise SchemaMismatch(
                f"parameter {param.name!r} has kind {param.kind!r}, expected 'field'"
            )


def derive(
    artifact: CircuitArtifact,
    request: ProofRequest,
    executor: Optional[WitnessExecutor] = None,
) -> Witness:
    return WitnessDeriver(executor or NargoWitnessExecutor()).derive(artifact, request)


class NargoWitnessExecutor:
    """
    Solve witnesses with ``nargo execute``.

    Each call runs in a private copy of the program directory, so concurrent
    calls never touch each other's ``target/`` or the caller's tree. The
    program nargo compiles there must carry the loaded artifact's hash.
    """

    def __init__(
        self,
        nargo_bin: str = "nargo",
        program_dir: Path | str | None = None,
        timeout: float = DEFAULT_EXECUTE_TIMEOUT,
    ) -> None:
        self._nargo_bin = nargo_bin
        self._program_dir = Path(program_dir) if program_dir else None
        self._timeout = timeout

    def execute(self, artifact: CircuitArtifact, inputs: Mapping[str, str]) -> bytes:
        nargo = find_binary(self._nargo_bin)
        program_dir = self._program_dir or artifact.program_dir
        if not (program_dir / "Nargo.toml").is_file():
            raise BackendUnavailable(f"no Nargo.toml in program directory: {program_dir}")

        with tempfile.TemporaryDirectory(prefix="panagram-nargo-") as tmp_dir:
            work_dir = Path(tmp_dir) / program_dir.name
            shutil.copytree(
                program_dir, work_dir, ignore=shutil.ignore_patterns("target", "Prover*.toml")
            )
            (work_dir / f"{PROVER_NAME}.toml").write_text(
                render_prover_toml(inputs), encoding="utf-8"
            )
            command = [
                nargo,
                "execute",
                artifact.name,
                "--program-dir",
                str(work_dir),
                "--prover-name",
                PROVER_NAME,
            ]
            try:
                result = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    check=False,
                    timeout=self._timeout,
                )
            except subprocess.TimeoutExpired as exc:
                raise BackendUnavailable(
                    f"nargo execute timed out after {self._timeout}s"
                ) from exc
            if result.returncode != 0:
                raise classify_execute_failure(result.stderr)

            check_compiled_hash(artifact, work_dir / "target" / f"{artifact.name}.json")
            witness_path = work_dir / "target" / f"{artifact.name}.gz"
            try:
                return witness_path.read_bytes()
            except FileNotFoundError as exc:
                raise ConstraintUnsatisfied("nargo execute produced no witness") from exc


def check_compiled_hash(artifact: CircuitArtifact, compiled_path: Path) -> None:
    """
    Compare the program nargo just compiled with the loaded artifact.

    Raises:
        ArtifactCorrupt: If the source no longer compiles to the loaded program.
    """
    if not compiled_path.is_file():
        logger.debug("nargo wrote no program at %s, skipping hash check", compiled_path)
        return
    try:
        compiled = json.loads(compiled_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        raise ArtifactCorrupt(f"unreadable compiled program: {compiled_path}") from exc
    compiled_hash = str(compiled.get("hash", "")) if isinstance(compiled, dict) else ""
    if compiled_hash != artifact.artifact_hash:
        raise ArtifactCorrupt(
            f"program source compiles to hash {compiled_hash or 'none'}, "
            f"loaded artifact has {artifact.artifact_hash or 'none'}"
        )


def render_prover_toml(inputs: Mapping[str, str]) -> str:
    return "".join(f'{name} = "{value}"\n' for name, value in inputs.items())


def classify_execute_failure(stderr: str) -> PipelineError:
    tail = stderr_tail(stderr, "unknown execution error")
    lowered = (stderr or "").lower()
    if any(marker in lowered for marker in _CONSTRAINT_MARKERS):
        return ConstraintUnsatisfied(f"witness execution failed: {tail}")
    if any(marker in lowered for marker in _SCHEMA_MARKERS):
        return SchemaMismatch(f"inputs rejected by executor: {tail}")
    return ConstraintUnsatisfied(f"witness execution failed: {tail}")

