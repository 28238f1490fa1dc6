"""Tests for the end-to-end proof pipeline."""

from __future__ import annotations

import pytest
import trio

from panagram_prover.pipeline import encoder
from panagram_prover.pipeline.encoder import decode
from panagram_prover.pipeline.errors import (
    ConstraintUnsatisfied,
    EncodingFailed,
    ProvingFailed,
    SchemaMismatch,
)
from panagram_prover.pipeline.fields import to_field_hex
from panagram_prover.pipeline.messages import HashMode, ProofRequest, ProverOptions
from panagram_prover.pipeline.orchestrator import (
    PipelineFailed,
    PipelineRun,
    PipelineStage,
    ProofPipeline,
    run,
)

from conftest import EqualityExecutor, FakeBackend

ONE = to_field_hex(1)


def test_matching_guess_reaches_done(artifact, pipeline, backend) -> None:
    state = PipelineRun()
    encoded = pipeline.run(artifact, ProofRequest("0x01", "0x01"), state=state)

    assert state.state is PipelineStage.DONE
    assert state.history == [
        PipelineStage.IDLE,
        PipelineStage.DERIVING,
        PipelineStage.PROVING,
        PipelineStage.ENCODING,
        PipelineStage.DONE,
    ]
    assert state.failure is None
    assert state.raw_proof.public_inputs == (ONE,)
    assert backend.verify(decode(encoded), ONE)


def test_wrong_guess_fails_at_deriving(artifact, pipeline, backend) -> None:
    state = PipelineRun()
    with pytest.raises(PipelineFailed) as exc_info:
        pipeline.run(artifact, ProofRequest("0x01", "0x02"), state=state)

    failure = exc_info.value
    assert failure.stage is PipelineStage.DERIVING
    assert failure.kind == "ConstraintUnsatisfied"
    assert isinstance(failure.error, ConstraintUnsatisfied)
    assert failure.retryable is False
    assert state.state is PipelineStage.FAILED
    assert state.failure is failure
    assert state.raw_proof is None
    assert backend.calls == 0


def test_malformed_request_fails_at_deriving(artifact, pipeline, executor) -> None:
    with pytest.raises(PipelineFailed) as exc_info:
        pipeline.run(artifact, ProofRequest("0x01", "0xgg"))
    assert exc_info.value.stage is PipelineStage.DERIVING
    assert isinstance(exc_info.value.error, SchemaMismatch)
    assert executor.calls == 0


def test_proving_failure_is_tagged_and_not_swallowed(artifact, executor) -> None:
    class BrokenBackend:
        def prove(self, artifact, witness, options):
            raise RuntimeError("backend crashed")

    state = PipelineRun()
    pipeline = ProofPipeline(executor=executor, backend=BrokenBackend())
    with pytest.raises(PipelineFailed) as exc_info:
        pipeline.run(artifact, ProofRequest("0x01", "0x01"), state=state)

    assert exc_info.value.stage is PipelineStage.PROVING
    assert isinstance(exc_info.value.error, ProvingFailed)
    assert exc_info.value.retryable is True
    assert state.history[-2:] == [PipelineStage.PROVING, PipelineStage.FAILED]


def test_encoding_failure_is_tagged(
    artifact, pipeline, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(encoder, "MAX_PROOF_BYTES", 8)
    with pytest.raises(PipelineFailed) as exc_info:
        pipeline.run(artifact, ProofRequest("0x01", "0x01"))
    assert exc_info.value.stage is PipelineStage.ENCODING
    assert isinstance(exc_info.value.error, EncodingFailed)


def test_failure_message_names_stage_and_kind(artifact, pipeline) -> None:
    with pytest.raises(PipelineFailed, match="^deriving: ConstraintUnsatisfied: "):
        pipeline.run(artifact, ProofRequest("0x01", "0x02"))


def test_options_reach_backend(artifact, executor, backend) -> None:
    options = ProverOptions(parallelism=8, hash_mode=HashMode.NATIVE)
    run(artifact, ProofRequest("0x01", "0x01"), options, executor=executor, backend=backend)
    assert backend.seen_options == [options]


def test_run_is_deterministic(artifact, pipeline) -> None:
    request = ProofRequest("0x01", "0x01")
    assert pipeline.run(artifact, request).data == pipeline.run(artifact, request).data


def test_terminal_state_cannot_advance() -> None:
    state = PipelineRun()
    state.fail(ValueError("boom"))
    with pytest.raises(RuntimeError):
        state.advance()
    with pytest.raises(RuntimeError):
        state.fail(ValueError("again"))


def test_unexpected_errors_still_become_pipeline_failed(artifact, backend) -> None:
    class ExplodingExecutor:
        def execute(self, artifact, inputs):
            raise KeyError("solver bug")

    pipeline = ProofPipeline(executor=ExplodingExecutor(), backend=backend)
    with pytest.raises(PipelineFailed) as exc_info:
        pipeline.run(artifact, ProofRequest("0x01", "0x01"))
    assert exc_info.value.stage is PipelineStage.DERIVING
    assert exc_info.value.kind == "KeyError"


@pytest.mark.trio
async def test_run_async(artifact, pipeline, backend) -> None:
    encoded = await pipeline.run_async(artifact, ProofRequest("0x01", "0x01"))
    assert backend.verify(decode(encoded), ONE)


@pytest.mark.trio
async def test_run_async_propagates_failure(artifact, pipeline) -> None:
    with pytest.raises(PipelineFailed):
        await pipeline.run_async(artifact, ProofRequest("0x01", "0x02"))


@pytest.mark.trio
async def test_run_many_isolates_requests(artifact) -> None:
    executor = EqualityExecutor()
    backend = FakeBackend()
    pipeline = ProofPipeline(executor=executor, backend=backend)
    requests = [
        ProofRequest("0x01", "0x01"),
        ProofRequest("0x05", "0x06"),
        ProofRequest("0x2a", "0x2a"),
        ProofRequest("0x07", "0x07"),
    ]

    outcomes = await pipeline.run_many(artifact, requests, max_concurrent=3)

    assert [o.request for o in outcomes] == requests
    assert [o.ok for o in outcomes] == [True, False, True, True]
    assert outcomes[1].failure.stage is PipelineStage.DERIVING
    for outcome in (outcomes[0], outcomes[2], outcomes[3]):
        answer = to_field_hex(outcome.request.answer_hash)
        assert backend.verify(decode(outcome.encoded), answer)
    assert decode(outcomes[0].encoded) != decode(outcomes[2].encoded)
    assert executor.calls == 4
    assert backend.calls == 3


@pytest.mark.trio
async def test_run_many_matches_sequential_results(artifact, pipeline) -> None:
    requests = [ProofRequest(hex(i), hex(i)) for i in range(1, 6)]
    sequential = [pipeline.run(artifact, r).data for r in requests]

    outcomes = await pipeline.run_many(artifact, requests, max_concurrent=5)

    assert [o.encoded.data for o in outcomes] == sequential


@pytest.mark.trio
async def test_run_many_rejects_bad_limit(artifact, pipeline) -> None:
    with pytest.raises(ValueError):
        await pipeline.run_many(artifact, [], max_concurrent=0)


def test_trio_entrypoint(artifact, pipeline) -> None:
    outcomes = trio.run(pipeline.run_many, artifact, [ProofRequest("0x01", "0x01")])
    assert outcomes[0].ok
