"""End-to-end proof pipeline: derive, prove, encode."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

import trio

from .artifact import CircuitArtifact
from .encoder import encode
from .errors import PipelineError
from .messages import EncodedProof, ProofRequest, ProverOptions, RawProof
from .prover import BarretenbergBackend, Prover, ProvingBackend
from .witness import NargoWitnessExecutor, WitnessDeriver, WitnessExecutor

logger = logging.getLogger(__name__)


class PipelineStage(Enum):
    IDLE = "idle"
    DERIVING = "deriving"
    PROVING = "proving"
    ENCODING = "encoding"
    DONE = "done"
    FAILED = "failed"


_NEXT_STAGE = {
    PipelineStage.IDLE: PipelineStage.DERIVING,
    PipelineStage.DERIVING: PipelineStage.PROVING,
    PipelineStage.PROVING: PipelineStage.ENCODING,
    PipelineStage.ENCODING: PipelineStage.DONE,
}


class PipelineFailed(Exception):
    """A pipeline run stopped at ``stage`` because of ``error``."""

    def __init__(self, stage: PipelineStage, error: BaseException) -> None:
        self.stage = stage
        self.error = error
        super().__init__(f"{stage.value}: {self.kind}: {error}")

    @property
    def kind(self) -> str:
        return type(self.error).__name__

    @property
    def retryable(self) -> bool:
        return bool(getattr(self.error, "retryable", False))


@dataclass
class PipelineRun:
    """State of one request moving through the pipeline."""

    state: PipelineStage = PipelineStage.IDLE
    history: list[PipelineStage] = field(default_factory=lambda: [PipelineStage.IDLE])
    failure: Optional[PipelineFailed] = None
    raw_proof: Optional[RawProof] = None

    def advance(self) -> PipelineStage:
        if self.state not in _NEXT_STAGE:
            raise RuntimeError(f"cannot advance from terminal state {self.state.value}")
        self._enter(_NEXT_STAGE[self.state])
        return self.state

    def fail(self, error: BaseException) -> PipelineFailed:
        if self.state in (PipelineStage.DONE, PipelineStage.FAILED):
            raise RuntimeError(f"cannot fail from terminal state {self.state.value}")
        failure = PipelineFailed(self.state, error)
        self.failure = failure
        self._enter(PipelineStage.FAILED)
        return failure

    def _enter(self, stage: PipelineStage) -> None:
        logger.debug("pipeline %s -> %s", self.state.value, stage.value)
        self.state = stage
        self.history.append(stage)


@dataclass(frozen=True)
class PipelineOutcome:
    request: ProofRequest
    encoded: Optional[EncodedProof] = None
    failure: Optional[PipelineFailed] = None

    @property
    def ok(self) -> bool:
        return self.encoded is not None


class ProofPipeline:
    """
    Sequence witness derivation, proving and ABI encoding for one request.

    The artifact is passed to every call and only read. Each stage starts
    after the previous one returns; the first failure ends the run with
    ``PipelineFailed`` and nothing from an earlier stage is returned.
    """

    def __init__(
        self,
        executor: Optional[WitnessExecutor] = None,
        backend: Optional[ProvingBackend] = None,
    ) -> None:
        self._deriver = WitnessDeriver(executor or NargoWitnessExecutor())
        self._prover = Prover(backend or BarretenbergBackend())

    def run(
        self,
        artifact: CircuitArtifact,
        request: ProofRequest,
        options: Optional[ProverOptions] = None,
        *,
        state: Optional[PipelineRun] = None,
    ) -> EncodedProof:
        run = state if state is not None else PipelineRun()
        options = options or ProverOptions()
        try:
            run.advance()
            witness = self._deriver.derive(artifact, request)
            run.advance()
            raw_proof = self._prover.prove(artifact, witness, options)
            run.advance()
            encoded = encode(raw_proof)
            run.raw_proof = raw_proof
            run.advance()
        except Exception as exc:
            failure = run.fail(exc)
            if isinstance(exc, PipelineError):
                logger.warning("proof pipeline failed at %s: %s", failure.stage.value, failure.kind)
            else:
                logger.exception("proof pipeline crashed at %s", failure.stage.value)
            raise failure from exc

        logger.info(
            "proof ready for %s (answer %s, %d encoded bytes)",
            artifact.name,
            request.normalized().answer_hash,
            len(encoded),
        )
        return encoded

    async def run_async(
        self,
        artifact: CircuitArtifact,
        request: ProofRequest,
        options: Optional[ProverOptions] = None,
    ) -> EncodedProof:
        """Run on a worker thread so a trio event loop is not blocked."""
        return await trio.to_thread.run_sync(
            functools.partial(self.run, artifact, request, options)
        )

    async def run_many(
        self,
        artifact: CircuitArtifact,
        requests: Sequence[ProofRequest],
        options: Optional[ProverOptions] = None,
        *,
        max_concurrent: int = 1,
    ) -> list[PipelineOutcome]:
        """
        Run independent requests concurrently against one shared artifact.

        Outcomes are returned in request order; a failed request does not
        cancel or affect the others.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        limiter = trio.CapacityLimiter(max_concurrent)
        outcomes: list[Optional[PipelineOutcome]] = [None] * len(requests)

        async def _one(idx: int, request: ProofRequest) -> None:
            try:
                encoded = await trio.to_thread.run_sync(
                    functools.partial(self.run, artifact, request, options),
                    limiter=limiter,
                )
            except PipelineFailed as failure:
                outcomes[idx] = PipelineOutcome(request=request, failure=failure)
            else:
                outcomes[idx] = PipelineOutcome(request=request, encoded=encoded)

        async with trio.open_nursery() as nursery:
            for idx, request in enumerate(requests):
                nursery.start_soon(_one, idx, request)

        return [outcome for outcome in outcomes if outcome is not None]


def run(
    artifact: CircuitArtifact,
    request: ProofRequest,
    options: Optional[ProverOptions] = None,
    *,
    executor: Optional[WitnessExecutor] = None,
    backend: Optional[ProvingBackend] = None,
) -> EncodedProof:
    return ProofPipeline(executor, backend).run(artifact, request, options)
