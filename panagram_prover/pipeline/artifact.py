"""Compiled circuit artifact loading."""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .constants import MAX_ARTIFACT_BYTES
from .errors import ArtifactCorrupt, ArtifactNotFound

logger = logging.getLogger(__name__)

ARTIFACT_ENV_VAR = "PANAGRAM_ARTIFACT"
DEFAULT_CIRCUIT_NAME = "zk_panagram"
_VISIBILITIES = frozenset({"private", "public", "databus"})


@dataclass(frozen=True)
class AbiParameter:
    name: str
    kind: str
    visibility: str

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"


@dataclass(frozen=True)
class CircuitArtifact:
    """
    Read-only handle on a compiled Noir program.

    Created once by the caller and passed to every pipeline run. Nothing in
    the pipeline mutates or caches it.
    """

    path: Path
    program_dir: Path
    name: str
    noir_version: str
    artifact_hash: str
    parameters: tuple[AbiParameter, ...]
    bytecode: str
    program: bytes
    source: bytes = field(default=b"", repr=False)

    @property
    def private_parameters(self) -> tuple[AbiParameter, ...]:
        return tuple(p for p in self.parameters if not p.is_public)

    @property
    def public_parameters(self) -> tuple[AbiParameter, ...]:
        return tuple(p for p in self.parameters if p.is_public)

    def write_program(self, directory: str | Path) -> Path:
        """
        Write the loaded program JSON into ``directory`` and return its path.

        Backends read this copy rather than ``path``, so later changes to the
        file on disk never reach a run that holds this handle.
        """
        target = Path(directory) / f"{self.name}.json"
        target.write_bytes(self.source or self._render_program())
        return target

    def _render_program(self) -> bytes:
        payload = {
            "noir_version": self.noir_version,
            "hash": self.artifact_hash,
            "abi": {
                "parameters": [
                    {"name": p.name, "type": {"kind": p.kind}, "visibility": p.visibility}
                    for p in self.parameters
                ],
            },
            "bytecode": self.bytecode,
        }
        return json.dumps(payload).encode("utf-8")


def resolve_artifact_path(
    path: str | Path | None = None,
    base_dir: str | Path | None = None,
) -> Path:
    """
    Resolve the artifact location.

    Precedence: explicit ``path``, then ``$PANAGRAM_ARTIFACT``, then the
    nargo layouts under ``base_dir`` (default: the working directory).
    """
    if path is not None:
        candidates = [Path(path)]
    else:
        env_value = os.getenv(ARTIFACT_ENV_VAR)
        if env_value:
            candidates = [Path(env_value)]
        else:
            base = Path(base_dir) if base_dir else Path.cwd()
            candidates = [
                base / "circuits" / "target" / f"{DEFAULT_CIRCUIT_NAME}.json",
                base / "target" / f"{DEFAULT_CIRCUIT_NAME}.json",
            ]
    return _first_existing(candidates)


def load_artifact(path: str | Path | None = None) -> CircuitArtifact:
    """
    Load and validate a nargo-compiled program artifact.

    Raises:
        ArtifactNotFound: If no artifact file exists at the resolved path.
        ArtifactCorrupt: If the file is not a well-formed program artifact.
    """
    artifact_path = resolve_artifact_path(path)
    size = artifact_path.stat().st_size
    if size > MAX_ARTIFACT_BYTES:
        raise ArtifactCorrupt(f"artifact exceeds size limit: {artifact_path}")

    try:
        source = artifact_path.read_bytes()
        payload = json.loads(source.decode("utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        raise ArtifactCorrupt(f"artifact is not valid JSON: {artifact_path}") from exc
    if not isinstance(payload, dict):
        raise ArtifactCorrupt("artifact root must be an object")

    bytecode = payload.get("bytecode")
    if not isinstance(bytecode, str) or not bytecode:
        raise ArtifactCorrupt("artifact is missing bytecode")
    program = _decode_bytecode(bytecode)

    abi = payload.get("abi")
    if not isinstance(abi, dict):
        raise ArtifactCorrupt("artifact is missing abi")
    parameters = _parse_parameters(abi.get("parameters"))

    artifact = CircuitArtifact(
        path=artifact_path.resolve(),
        program_dir=_program_dir(artifact_path.resolve()),
        name=artifact_path.stem,
        noir_version=str(payload.get("noir_version", "")),
        artifact_hash=str(payload.get("hash", "")),
        parameters=parameters,
        bytecode=bytecode,
        program=program,
        source=source,
    )
    logger.debug(
        "loaded artifact %s (noir %s, %d parameters)",
        artifact.path,
        artifact.noir_version or "unknown",
        len(parameters),
    )
    return artifact


def _decode_bytecode(bytecode: str) -> bytes:
    try:
        compressed = base64.b64decode(bytecode, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ArtifactCorrupt("artifact bytecode is not base64") from exc
    try:
        return gzip.decompress(compressed)
    except (OSError, EOFError) as exc:
        raise ArtifactCorrupt("artifact bytecode is not gzip data") from exc


def _parse_parameters(raw) -> tuple[AbiParameter, ...]:
    if not isinstance(raw, list):
        raise ArtifactCorrupt("abi.parameters must be a list")

    parameters: list[AbiParameter] = []
    seen: set[str] = set()
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ArtifactCorrupt(f"abi.parameters[{idx}] must be an object")
        name = entry.get("name")
        visibility = entry.get("visibility")
        type_info = entry.get("type")
        kind = type_info.get("kind") if isinstance(type_info, dict) else None
        if not isinstance(name, str) or not name:
            raise ArtifactCorrupt(f"abi.parameters[{idx}] has no name")
        if name in seen:
            raise ArtifactCorrupt(f"duplicate abi parameter {name!r}")
        if visibility not in _VISIBILITIES:
            raise ArtifactCorrupt(f"abi parameter {name!r} has bad visibility")
        if not isinstance(kind, str):
            raise ArtifactCorrupt(f"abi parameter {name!r} has no type kind")
        seen.add(name)
        parameters.append(AbiParameter(name=name, kind=kind, visibility=visibility))
    return tuple(parameters)


def _program_dir(artifact_path: Path) -> Path:
    # nargo writes <program>/target/<name>.json
    if artifact_path.parent.name == "target":
        return artifact_path.parent.parent
    return artifact_path.parent


def _first_existing(candidates: Iterable[Path]) -> Path:
    candidates = list(candidates)
    for path in candidates:
        if path.is_file():
            return path
    checked = ", ".join(str(p) for p in candidates)
    raise ArtifactNotFound(f"Unable to resolve circuit artifact. Checked: {checked}")

