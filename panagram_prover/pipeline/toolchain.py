"""Helpers for locating and reporting on external toolchain binaries."""

from __future__ import annotations

import shutil

from .errors import BackendUnavailable

STDERR_TAIL = 512


def find_binary(name: str) -> str:
    resolved = shutil.which(name)
    if resolved is None:
        raise BackendUnavailable(f"missing binary: {name}")
    return resolved


def stderr_tail(stderr: str | None, default: str) -> str:
    message = (stderr or "").strip() or default
    return message[-STDERR_TAIL:]
