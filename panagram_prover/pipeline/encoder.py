"""ABI encoding of proofs for the on-chain verifier."""

from __future__ import annotations

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError

from .constants import MAX_PROOF_BYTES
from .errors import EncodingFailed
from .messages import EncodedProof, RawProof

_PROOF_TYPES = ["bytes"]


def encode(proof: RawProof) -> EncodedProof:
    """
    ABI-encode the proof as a single dynamic ``bytes`` value.

    Equivalent to Solidity ``abi.encode(proof)``: a ``0x20`` offset word, a
    length word, then the payload right-padded to 32 bytes.
    """
    payload = proof.proof
    if not isinstance(payload, (bytes, bytearray)):
        raise EncodingFailed("proof must be bytes")
    if len(payload) > MAX_PROOF_BYTES:
        raise EncodingFailed(
            f"proof is {len(payload)} bytes, limit is {MAX_PROOF_BYTES}"
        )
    return EncodedProof(data=abi_encode(_PROOF_TYPES, [bytes(payload)]))


def decode(encoded: EncodedProof | bytes | bytearray | str) -> bytes:
    """
    Recover the raw proof bytes from an ABI-encoded proof.

    Only the exact ``abi.encode(bytes)`` layout is accepted: a ``0x20``
    offset, the true length and zero padding with nothing trailing.
    """
    data = _coerce(encoded)
    if len(data) > MAX_PROOF_BYTES + 96:
        raise EncodingFailed("encoded proof exceeds size limit")
    try:
        (payload,) = abi_decode(_PROOF_TYPES, data)
    except (DecodingError, ValueError, OverflowError) as exc:
        raise EncodingFailed(f"not an ABI-encoded bytes value: {exc}") from exc
    if abi_encode(_PROOF_TYPES, [payload]) != data:
        raise EncodingFailed("encoded proof is not in canonical ABI layout")
    return bytes(payload)


def _coerce(encoded: EncodedProof | bytes | bytearray | str) -> bytes:
    if isinstance(encoded, EncodedProof):
        return encoded.data
    if isinstance(encoded, (bytes, bytearray)):
        return bytes(encoded)
    if isinstance(encoded, str):
        text = encoded.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            return bytes.fromhex(text)
        except ValueError as exc:
            raise EncodingFailed("encoded proof is not valid hex") from exc
    raise EncodingFailed("encoded proof must be bytes or hex str")
