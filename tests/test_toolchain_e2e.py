"""Opt-in end-to-end tests against a real nargo + bb toolchain."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest
import trio

from panagram_prover.config import load_config
from panagram_prover.pipeline import (
    ConstraintUnsatisfied,
    PipelineFailed,
    PipelineStage,
    ProofRequest,
    RawProof,
    decode,
    hash_word,
    load_artifact,
)

pytestmark = pytest.mark.skipif(
    os.environ.get("RUN_TOOLCHAIN_TESTS") != "1",
    reason="RUN_TOOLCHAIN_TESTS not set",
)


def _find_circuits_dir() -> Path:
    env_dir = os.environ.get("PANAGRAM_CIRCUITS_DIR")
    if env_dir:
        return Path(env_dir)
    for parent in Path(__file__).resolve().parents:
        if (parent / "circuits" / "Nargo.toml").is_file():
            return parent / "circuits"
    pytest.skip("circuits directory not available")


@pytest.fixture(scope="module")
def config():
    config = load_config()
    for binary in (config.nargo_bin, config.bb_bin):
        if shutil.which(binary) is None:
            pytest.skip(f"{binary} not installed")
    return config


@pytest.fixture(scope="module")
def artifact():
    circuits = _find_circuits_dir()
    path = circuits / "target" / "zk_panagram.json"
    if not path.is_file():
        pytest.skip("circuit not compiled; run `nargo compile` in circuits/")
    return load_artifact(path)


def test_correct_guess_verifies(config, artifact) -> None:
    answer = hash_word("triangles")
    pipeline = config.build_pipeline()

    encoded = pipeline.run(artifact, ProofRequest(answer, answer), config.prover_options())

    raw = decode(encoded)
    assert raw
    backend = config.build_backend()
    assert backend.verify(
        artifact,
        RawProof(proof=raw, public_inputs=(answer,), hash_mode=config.hash_mode),
    )


def test_wrong_guess_fails_at_deriving(config, artifact) -> None:
    pipeline = config.build_pipeline()
    with pytest.raises(PipelineFailed) as exc_info:
        pipeline.run(
            artifact,
            ProofRequest(hash_word("outnumber"), hash_word("triangles")),
            config.prover_options(),
        )
    assert exc_info.value.stage is PipelineStage.DERIVING
    assert isinstance(exc_info.value.error, ConstraintUnsatisfied)


def test_concurrent_requests_share_artifact(config, artifact) -> None:
    pipeline = config.build_pipeline()
    words = ["triangles", "integrals"]
    requests = [ProofRequest(hash_word(w), hash_word(w)) for w in words]

    outcomes = trio.run(
        lambda: pipeline.run_many(artifact, requests, config.prover_options(), max_concurrent=2)
    )

    assert all(outcome.ok for outcome in outcomes)
    assert decode(outcomes[0].encoded) != decode(outcomes[1].encoded)
