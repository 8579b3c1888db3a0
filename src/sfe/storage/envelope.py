"""
Envelope framing.

Layout:
    magic     : 5 bytes   -> FA 15 EC 0D E5
    tag       : b"MetaLength:"
    length    : ASCII decimal N (no padding, no sign)
    delimiter : b"|"
    metadata  : N bytes (UTF-8 JSON, or salt||iv||ciphertext when protected)
    payload   : salt(32) || iv(32) || ciphertext (remaining bytes)

The length field has no fixed width, so every offset after it comes from
parsing.
"""
import logging
import os

from dataclasses import dataclass

from sfe.crypto import cipher
from sfe.crypto.cipher import RandomSource
from sfe.utils.dataModels import (
    ENVELOPE_MAGIC,
    META_LENGTH_DELIMITER,
    META_LENGTH_SCAN_LIMIT,
    META_LENGTH_TAG,
)
from sfe.utils.errors import MalformedEnvelope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedEnvelope:
    metadata: bytes
    metadata_offset: int
    payload_offset: int
    payload: bytes

    @property
    def metadata_length(self) -> int:
        return len(self.metadata)


def is_envelope(data: bytes) -> bool:
    return len(data) >= len(ENVELOPE_MAGIC) and data[: len(ENVELOPE_MAGIC)] == ENVELOPE_MAGIC


def build(
    metadata_bytes: bytes,
    encrypt_metadata: bool,
    payload: bytes,
    password: str,
    random_source: RandomSource = os.urandom,
) -> bytes:
    if encrypt_metadata:
        meta = cipher.encrypt(metadata_bytes, password, random_source)
    else:
        meta = metadata_bytes

    out = bytearray(ENVELOPE_MAGIC)
    out += META_LENGTH_TAG
    out += str(len(meta)).encode("ascii")
    out += META_LENGTH_DELIMITER
    out += meta
    out += cipher.encrypt(payload, password, random_source)
    logger.debug(
        "built envelope: %d metadata bytes (protected=%s), %d total bytes",
        len(meta), encrypt_metadata, len(out),
    )
    return bytes(out)


def _read_meta_length(data: bytes) -> tuple[int, int]:
    """Return (N, offset of the first metadata byte)."""
    tag_at = len(ENVELOPE_MAGIC)
    start = tag_at + len(META_LENGTH_TAG)
    if data[tag_at:start] != META_LENGTH_TAG:
        raise MalformedEnvelope("Missing metadata length tag")

    window = data[start : start + META_LENGTH_SCAN_LIMIT]
    end = window.find(META_LENGTH_DELIMITER)
    if end < 0:
        raise MalformedEnvelope(
            f"No metadata length delimiter within {META_LENGTH_SCAN_LIMIT} bytes"
        )
    digits = window[:end]
    if not digits or not digits.isdigit():
        raise MalformedEnvelope(f"Invalid metadata length field: {digits!r}")
    return int(digits), start + end + len(META_LENGTH_DELIMITER)


def parse(data: bytes) -> ParsedEnvelope | None:
    """Split an envelope into its metadata and payload cipher segments.

    Returns None when ``data`` does not start with the magic header.

    Raises:
        MalformedEnvelope: If the magic is present but the framing is broken.
    """
    if not is_envelope(data):
        return None

    meta_len, meta_at = _read_meta_length(data)
    payload_at = meta_at + meta_len
    if payload_at > len(data):
        raise MalformedEnvelope(
            f"Metadata length {meta_len} runs past the end of the envelope"
        )
    return ParsedEnvelope(
        metadata=data[meta_at:payload_at],
        metadata_offset=meta_at,
        payload_offset=payload_at,
        payload=data[payload_at:],
    )
