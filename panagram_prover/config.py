"""
Runtime configuration for the panagram prover.

Values resolve in precedence order: explicit arguments, a YAML file, the
environment, then the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from panagram_prover.pipeline.constants import (
    DEFAULT_EXECUTE_TIMEOUT,
    DEFAULT_PARALLELISM,
    DEFAULT_PROVER_TIMEOUT,
)
from panagram_prover.pipeline.errors import ConfigurationError
from panagram_prover.pipeline.messages import HashMode, ProverOptions
from panagram_prover.pipeline.orchestrator import ProofPipeline
from panagram_prover.pipeline.prover import BarretenbergBackend
from panagram_prover.pipeline.witness import NargoWitnessExecutor

ENV_VARS: Mapping[str, str] = {
    "artifact_path": "PANAGRAM_ARTIFACT",
    "nargo_bin": "PANAGRAM_NARGO_BIN",
    "bb_bin": "PANAGRAM_BB_BIN",
    "prover_timeout": "PANAGRAM_PROVER_TIMEOUT",
    "parallelism": "PANAGRAM_THREADS",
    "hash_mode": "PANAGRAM_HASH_MODE",
}


@dataclass(frozen=True)
class PipelineConfig:
    artifact_path: Optional[Path] = None
    nargo_bin: str = "nargo"
    bb_bin: str = "bb"
    execute_timeout: float = DEFAULT_EXECUTE_TIMEOUT
    prover_timeout: float = DEFAULT_PROVER_TIMEOUT
    parallelism: int = DEFAULT_PARALLELISM
    hash_mode: HashMode = HashMode.KECCAK

    def prover_options(self) -> ProverOptions:
        return ProverOptions(parallelism=self.parallelism, hash_mode=self.hash_mode)

    def build_pipeline(self) -> ProofPipeline:
        return ProofPipeline(
            executor=NargoWitnessExecutor(self.nargo_bin, timeout=self.execute_timeout),
            backend=self.build_backend(),
        )

    def build_backend(self) -> BarretenbergBackend:
        return BarretenbergBackend(self.bb_bin, timeout=self.prover_timeout)

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        values = {k: v for k, v in overrides.items() if v is not None}
        return _coerce(replace(self, **values)) if values else self

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, base: Optional["PipelineConfig"] = None
    ) -> "PipelineConfig":
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name, env_var in ENV_VARS.items():
            raw = environ.get(env_var)
            if raw:
                values[name] = raw
        return (base or cls()).with_overrides(**values)

    @classmethod
    def from_yaml(cls, path: str | Path, base: Optional["PipelineConfig"] = None) -> "PipelineConfig":
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"config file {path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown config keys: {', '.join(unknown)}")
        return (base or cls()).with_overrides(**data)


def load_config(
    config_file: str | Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> PipelineConfig:
    """Resolve configuration from defaults, environment, file and overrides."""
    config = PipelineConfig.from_env(environ)
    if config_file is not None:
        config = PipelineConfig.from_yaml(config_file, base=config)
    return config.with_overrides(**overrides)


def _coerce(config: PipelineConfig) -> PipelineConfig:
    try:
        artifact_path = (
            Path(config.artifact_path) if config.artifact_path is not None else None
        )
        parallelism = _as_int(config.parallelism)
        execute_timeout = _as_float(config.execute_timeout)
        prover_timeout = _as_float(config.prover_timeout)
        hash_mode = HashMode.parse(config.hash_mode)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid configuration value: {exc}") from exc

    if parallelism < 1:
        raise ConfigurationError("parallelism must be >= 1")
    if execute_timeout <= 0 or prover_timeout <= 0:
        raise ConfigurationError("timeouts must be positive")
    if not config.nargo_bin or not config.bb_bin:
        raise ConfigurationError("binary names cannot be empty")

    return replace(
        config,
        artifact_path=artifact_path,
        parallelism=parallelism,
        execute_timeout=execute_timeout,
        prover_timeout=prover_timeout,
        hash_mode=hash_mode,
        nargo_bin=str(config.nargo_bin),
        bb_bin=str(config.bb_bin),
    )


def _as_int(value: Any) -> int:
    # Strings come from the environment; YAML and callers give ints.
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)
