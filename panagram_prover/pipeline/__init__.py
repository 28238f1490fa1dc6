"""Proof request/response pipeline: witness derivation, proving and ABI encoding."""

from .artifact import AbiParameter, CircuitArtifact, load_artifact, resolve_artifact_path
from .bundle import ProofBundle, decode_bundle, encode_bundle, make_bundle
from .encoder import decode, encode
from .errors import (
    ArtifactCorrupt,
    ArtifactNotFound,
    BackendUnavailable,
    ConfigurationError,
    ConstraintUnsatisfied,
    EncodingFailed,
    PipelineError,
    ProvingFailed,
    SchemaMismatch,
)
from .fields import hash_word, parse_field, to_field_hex
from .messages import EncodedProof, HashMode, ProofRequest, ProverOptions, RawProof, Witness
from .orchestrator import (
    PipelineFailed,
    PipelineOutcome,
    PipelineRun,
    PipelineStage,
    ProofPipeline,
    run,
)
from .prover import BarretenbergBackend, Prover, ProvingBackend, prove
from .witness import NargoWitnessExecutor, WitnessDeriver, WitnessExecutor, derive

__all__ = [
    "AbiParameter",
    "CircuitArtifact",
    "load_artifact",
    "resolve_artifact_path",
    "ProofBundle",
    "decode_bundle",
    "encode_bundle",
    "make_bundle",
    "decode",
    "encode",
    "ArtifactCorrupt",
    "ArtifactNotFound",
    "BackendUnavailable",
    "ConfigurationError",
    "ConstraintUnsatisfied",
    "EncodingFailed",
    "PipelineError",
    "ProvingFailed",
    "SchemaMismatch",
    "hash_word",
    "parse_field",
    "to_field_hex",
    "EncodedProof",
    "HashMode",
    "ProofRequest",
    "ProverOptions",
    "RawProof",
    "Witness",
    "PipelineFailed",
    "PipelineOutcome",
    "PipelineRun",
    "PipelineStage",
    "ProofPipeline",
    "run",
    "BarretenbergBackend",
    "Prover",
    "ProvingBackend",
    "prove",
    "NargoWitnessExecutor",
    "WitnessDeriver",
    "WitnessExecutor",
    "derive",
]
