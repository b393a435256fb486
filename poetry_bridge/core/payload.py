"""Recover document bytes from a stored payload of unknown encoding.

Documents reached the direct store through several historical write paths:

- raw binary (BLOB)
- base64 text
- hex text, with or without C-style ``\\xNN`` escapes
- base64 text that was then hex-escaped again

Nothing in the stored value says which path wrote it, so decoding is a chain
of format hypotheses tried in a fixed order. Each stage is a pure function
returning ``Decoded`` or ``Undecodable``; the first ``Decoded`` wins. Hex forms
are checked for an embedded base64 layer before their bytes are accepted, and
the ``%PDF`` signature is checked before generic base64 so a document that
happens to fit the base64 alphabet is not mis-decoded.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import string
from dataclasses import dataclass
from typing import Any, Callable

from poetry_bridge.providers.content_types import DEFAULT_CONTENT_TYPE, Document

logger = logging.getLogger(__name__)

PDF_SIGNATURE = "%PDF"

# Shortest plain-hex string treated as an encoded payload.
MIN_PLAIN_HEX_LENGTH = 8
# Shortest digit run left after stripping \x escapes.
MIN_ESCAPED_HEX_LENGTH = 4

_HEX_ESCAPE_RE = re.compile(r"\\x", re.IGNORECASE)
_NON_HEX_RE = re.compile(r"[^0-9A-Fa-f]")
_PLAIN_HEX_RE = re.compile(r"[0-9A-Fa-f]+")
_BASE64_RE = re.compile(r"[A-Za-z0-9+/]+={0,2}")
_WHITESPACE_RE = re.compile(r"\s+")
_URLSAFE_TABLE = str.maketrans("-_", "+/")
_PRINTABLE_ASCII = frozenset(string.printable)


@dataclass(frozen=True)
class Decoded:
    """A stage recovered bytes."""

    data: bytes
    stage: str


@dataclass(frozen=True)
class Undecodable:
    """A stage rejected the value; the next stage gets a turn."""

    reason: str


StageResult = Decoded | Undecodable
Stage = Callable[[Any], StageResult]


def _normalize_base64_text(text: str) -> str:
    return _WHITESPACE_RE.sub("", text).translate(_URLSAFE_TABLE)


def looks_like_base64(text: str) -> bool:
    """True if text fits the base64 alphabet with plausible length or padding."""
    normalized = _normalize_base64_text(text)
    if not normalized or not _BASE64_RE.fullmatch(normalized):
        return False
    return len(normalized) % 4 == 0 or normalized.endswith("=")


def _b64decode(text: str) -> bytes:
    normalized = _normalize_base64_text(text).rstrip("=")
    normalized += "=" * (-len(normalized) % 4)
    return base64.b64decode(normalized, validate=True)


def _prefer_embedded_base64(raw: bytes, stage: str) -> Decoded:
    """Return the inner base64 layer of hex-decoded bytes when there is one."""
    try:
        ascii_text = raw.decode("ascii")
    except UnicodeDecodeError:
        return Decoded(raw, stage)
    if looks_like_base64(ascii_text):
        try:
            return Decoded(_b64decode(ascii_text), f"{stage}+base64")
        except (binascii.Error, ValueError):
            logger.debug(f"{stage}: embedded base64 did not decode, keeping hex bytes")
    return Decoded(raw, stage)


def decode_binary(value: Any) -> StageResult:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Decoded(bytes(value), "binary")
    return Undecodable("not a binary buffer")


def decode_hex_escaped(text: str) -> StageResult:
    if not _HEX_ESCAPE_RE.search(text):
        return Undecodable("no \\x escapes")
    digits = _NON_HEX_RE.sub("", _HEX_ESCAPE_RE.sub("", text))
    if len(digits) < MIN_ESCAPED_HEX_LENGTH or len(digits) % 2:
        return Undecodable(f"{len(digits)} hex digits after stripping escapes")
    return _prefer_embedded_base64(bytes.fromhex(digits), "hex_escaped")


def decode_plain_hex(text: str) -> StageResult:
    if len(text) < MIN_PLAIN_HEX_LENGTH or len(text) % 2 or not _PLAIN_HEX_RE.fullmatch(text):
        return Undecodable("not an even-length hex string")
    return _prefer_embedded_base64(bytes.fromhex(text), "plain_hex")


def decode_signed_text(text: str) -> StageResult:
    if not text.startswith(PDF_SIGNATURE):
        return Undecodable("no document signature")
    return Decoded(text.encode("latin-1"), "signed_text")


def decode_base64(text: str) -> StageResult:
    if not looks_like_base64(text):
        return Undecodable("not base64")
    return Decoded(_b64decode(text), "base64")


def decode_raw_text(text: str) -> StageResult:
    # Printable prose is not a document; raw bytes carried as text always
    # include control or high-bit characters.
    if all(ch in _PRINTABLE_ASCII for ch in text):
        return Undecodable("plain printable text")
    return Decoded(text.encode("latin-1"), "raw_text")


TEXT_STAGES: tuple[Callable[[str], StageResult], ...] = (
    decode_hex_escaped,
    decode_plain_hex,
    decode_signed_text,
    decode_base64,
    decode_raw_text,
)


def _run(stage: Callable[[Any], StageResult], value: Any) -> StageResult:
    try:
        return stage(value)
    except (ValueError, TypeError, binascii.Error, UnicodeError) as e:
        return Undecodable(f"{stage.__name__} raised {e.__class__.__name__}: {e}")


def decode_payload(value: Any) -> StageResult:
    """Run the stage chain and return the first success, or the last rejection."""
    if value is None:
        return Undecodable("no payload")

    result = _run(decode_binary, value)
    if isinstance(result, Decoded) or not isinstance(value, str):
        return result

    text = value.strip()
    if not text:
        return Undecodable("empty text")

    for stage in TEXT_STAGES:
        result = _run(stage, text)
        if isinstance(result, Decoded):
            return result
        logger.debug(f"payload: {stage.__name__} skipped ({result.reason})")
    return result


def normalize_payload(value: Any, content_type: str | None = None) -> Document | None:
    """Turn a stored payload into document bytes, or ``None`` if nothing fits.

    Never raises. Already-decoded bytes come back unchanged.
    """
    result = decode_payload(value)
    if isinstance(result, Undecodable):
        return None
    return Document(data=result.data, content_type=content_type or DEFAULT_CONTENT_TYPE)
