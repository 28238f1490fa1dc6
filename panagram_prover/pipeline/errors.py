"""Pipeline error types."""

from __future__ import annotations


class PipelineError(Exception):
    """Base error for proof pipeline failures."""

    retryable = False


class SchemaMismatch(PipelineError):
    """Raised when a request does not fit the circuit's input schema."""


class ConstraintUnsatisfied(PipelineError):
    """Raised when no witness satisfies the circuit for the given inputs."""


class ProvingFailed(PipelineError):
    """Raised when the proving backend fails internally."""

    retryable = True


class EncodingFailed(PipelineError):
    """Raised when a proof cannot be ABI encoded or decoded."""


class ArtifactNotFound(PipelineError):
    """Raised when the compiled circuit artifact does not exist."""


class ArtifactCorrupt(PipelineError):
    """Raised when the compiled circuit artifact cannot be parsed."""


class BackendUnavailable(PipelineError):
    """Raised when an external toolchain binary cannot be located."""

    retryable = True


class ConfigurationError(PipelineError):
    """Raised for invalid pipeline configuration values."""
