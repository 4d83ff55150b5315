"""
Share-state codec for Mermaid diagram links.

Diagram text travels in the URL fragment as URL-safe base64 of a raw DEFLATE
stream. Style profiles travel in the ``style`` query parameter as URL-safe
base64 of compact JSON (never compressed, so they stay human-decodable).
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import zlib
from typing import Any
from urllib.parse import unquote

logger = logging.getLogger(__name__)

# A "%" that does not start a two-hex-digit escape.
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class DecodeError(ValueError):
    """Raised when a payload cannot be turned back into text."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# URL-safe base64
# ---------------------------------------------------------------------------

def to_base64url(data: bytes) -> str:
    """Base64 with ``+``→``-``, ``/``→``_`` and no ``=`` padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def from_base64url(value: str) -> bytes:
    """Inverse of :func:`to_base64url`; tolerates missing padding."""
    normalized = value.replace("-", "+").replace("_", "/")
    remainder = len(normalized) % 4
    if remainder:
        normalized += "=" * (4 - remainder)
    try:
        return base64.b64decode(normalized, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Payload is not valid URL-safe base64: {exc}") from exc


# ---------------------------------------------------------------------------
# DEFLATE
# ---------------------------------------------------------------------------

def _deflate_raw(data: bytes) -> bytes:
    compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def _inflate_exact(data: bytes, wbits: int) -> bytes:
    # The stream must end exactly at the end of the payload.
    decompressor = zlib.decompressobj(wbits)
    inflated = decompressor.decompress(data)
    if not decompressor.eof:
        raise zlib.error("incomplete or truncated stream")
    if decompressor.unused_data:
        raise zlib.error(f"{len(decompressor.unused_data)} trailing byte(s) after end of stream")
    return inflated


def _inflate(data: bytes) -> bytes:
    try:
        return _inflate_exact(data, -zlib.MAX_WBITS)
    except zlib.error as raw_exc:
        # zlib- or gzip-framed streams from older encoders.
        try:
            return _inflate_exact(data, zlib.MAX_WBITS | 32)
        except zlib.error:
            raise DecodeError(f"Payload is not a valid DEFLATE stream: {raw_exc}") from raw_exc


# ---------------------------------------------------------------------------
# Fragment payload
# ---------------------------------------------------------------------------

def encode_hash_payload(text: str) -> str:
    """Compress *text* into a token safe for a URL fragment."""
    return to_base64url(_deflate_raw(text.encode("utf-8")))


def decode_hash_payload(payload: str) -> str:
    """Decode a token produced by :func:`encode_hash_payload`.

    Raises:
        DecodeError: if base64 decoding, inflating or UTF-8 decoding fails.
    """
    inflated = _inflate(from_base64url(payload.strip()))
    try:
        return inflated.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Inflated payload is not valid UTF-8: {exc}") from exc


def percent_decode(payload: str) -> str:
    """Decode a percent-encoded string the way ``decodeURIComponent`` does.

    ``+`` is left alone. Malformed escapes and escapes that do not form valid
    UTF-8 raise :class:`DecodeError`.
    """
    match = _MALFORMED_ESCAPE.search(payload)
    if match:
        raise DecodeError(
            f"Malformed percent-escape at position {match.start()}: "
            f"{payload[match.start():match.start() + 3]!r}"
        )
    try:
        return unquote(payload, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Percent-escapes do not form valid UTF-8: {exc}") from exc


def decode_hash_payload_or_url_encoded(payload: str) -> str:
    """Decode a compressed token, degrading to plain percent-decoding.

    The second stage accepts payloads from simpler encoders (or pasted raw
    text) that carry no compression at all.
    """
    try:
        return decode_hash_payload(payload)
    except DecodeError as exc:
        logger.debug("Compressed decode failed (%s); trying percent-decoding", exc.message)
    return percent_decode(payload)


def extract_payload_from_url(value: str) -> str:
    """Return everything after the first ``#``, or *value* when there is none."""
    if "#" not in value:
        return value
    return value.split("#", 1)[1]


# ---------------------------------------------------------------------------
# Style query parameter
# ---------------------------------------------------------------------------

def encode_style_profile_to_query(profile: Any) -> str:
    """Serialize a JSON-compatible style profile for the ``style`` parameter."""
    text = json.dumps(profile, ensure_ascii=False, separators=(",", ":"))
    return to_base64url(text.encode("utf-8"))


def decode_style_profile_from_query(value: str) -> Any:
    """Inverse of :func:`encode_style_profile_to_query` (unvalidated JSON)."""
    raw = from_base64url(value)
    try:
        return json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Style parameter is not valid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Style parameter is not valid JSON: {exc.msg}") from exc
