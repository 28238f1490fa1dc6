"""CBOR proof bundles for handing a finished proof to other tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Union

import cbor2

from .constants import BUNDLE_V, MAX_BUNDLE_BYTES, MAX_META_BYTES, MAX_PUBLIC_INPUTS
from .encoder import decode, encode
from .errors import EncodingFailed, SchemaMismatch
from .fields import field_to_bytes, format_field, parse_field, to_field_hex
from .messages import EncodedProof, HashMode, RawProof


def _require_bytes(value: Any, name: str) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise SchemaMismatch(f"{name} must be bytes")
    return bytes(value)


@dataclass(frozen=True)
class ProofBundle:
    bundle_v: int
    artifact_hash: str
    hash_mode: HashMode
    public_inputs: tuple[str, ...]
    encoded_proof: EncodedProof
    meta: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if self.bundle_v != BUNDLE_V:
            raise SchemaMismatch("unsupported bundle_v")
        if not isinstance(self.artifact_hash, str):
            raise SchemaMismatch("artifact_hash must be a string")
        if not isinstance(self.hash_mode, HashMode):
            raise SchemaMismatch("hash_mode must be a HashMode")
        if len(self.public_inputs) > MAX_PUBLIC_INPUTS:
            raise SchemaMismatch("too many public inputs")
        for idx, value in enumerate(self.public_inputs):
            to_field_hex(value, f"public_inputs[{idx}]")
        if not isinstance(self.meta, dict):
            raise SchemaMismatch("meta must be a dict")
        # Raises EncodingFailed if the payload is not ABI bytes.
        decode(self.encoded_proof)

    def raw_proof(self) -> RawProof:
        return RawProof(
            proof=decode(self.encoded_proof),
            public_inputs=self.public_inputs,
            hash_mode=self.hash_mode,
        )


def make_bundle(
    raw_proof: RawProof,
    artifact_hash: str,
    meta: Union[Dict[str, Any], None] = None,
) -> ProofBundle:
    return ProofBundle(
        bundle_v=BUNDLE_V,
        artifact_hash=artifact_hash,
        hash_mode=raw_proof.hash_mode,
        public_inputs=raw_proof.public_inputs,
        encoded_proof=encode(raw_proof),
        meta=dict(meta or {}),
    )


def encode_bundle(bundle: ProofBundle) -> bytes:
    bundle.validate()
    meta_blob = cbor2.dumps(bundle.meta)
    if len(meta_blob) > MAX_META_BYTES:
        raise EncodingFailed("meta too large")
    payload = {
        "bundle_v": bundle.bundle_v,
        "artifact_hash": bundle.artifact_hash,
        "hash_mode": bundle.hash_mode.value,
        "public_inputs": [field_to_bytes(value) for value in bundle.public_inputs],
        "encoded_proof": bundle.encoded_proof.data,
        "meta": meta_blob,
    }
    blob = cbor2.dumps(payload)
    if len(blob) > MAX_BUNDLE_BYTES:
        raise EncodingFailed("bundle too large")
    return blob


def decode_bundle(blob: bytes) -> ProofBundle:
    if not isinstance(blob, (bytes, bytearray)):
        raise SchemaMismatch("bundle blob must be bytes")
    blob_bytes = bytes(blob)
    if len(blob_bytes) > MAX_BUNDLE_BYTES:
        raise EncodingFailed("bundle too large")
    try:
        payload = cbor2.loads(blob_bytes)
    except cbor2.CBORDecodeError as exc:
        raise SchemaMismatch("bundle is not valid CBOR") from exc
    if not isinstance(payload, dict):
        raise SchemaMismatch("bundle payload must be a dict")

    raw_inputs = payload.get("public_inputs", [])
    if not isinstance(raw_inputs, list):
        raise SchemaMismatch("public_inputs must be a list")
    public_inputs = tuple(
        _decode_public_input(value, idx) for idx, value in enumerate(raw_inputs)
    )

    meta_blob = _require_bytes(payload.get("meta", b""), "meta")
    if len(meta_blob) > MAX_META_BYTES:
        raise EncodingFailed("meta too large")
    try:
        meta = cbor2.loads(meta_blob) if meta_blob else {}
    except cbor2.CBORDecodeError as exc:
        raise SchemaMismatch("meta is not valid CBOR") from exc

    try:
        hash_mode = HashMode.parse(payload.get("hash_mode", ""))
    except ValueError as exc:
        raise SchemaMismatch(str(exc)) from exc

    bundle = ProofBundle(
        bundle_v=payload.get("bundle_v", -1),
        artifact_hash=payload.get("artifact_hash", ""),
        hash_mode=hash_mode,
        public_inputs=public_inputs,
        encoded_proof=EncodedProof(
            data=_require_bytes(payload.get("encoded_proof", b""), "encoded_proof")
        ),
        meta=meta,
    )
    bundle.validate()
    return bundle


def _decode_public_input(value: Any, idx: int) -> str:
    label = f"public_inputs[{idx}]"
    return format_field(parse_field(_require_bytes(value, label), label))
