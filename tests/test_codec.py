"""Tests for the fragment payload and style query codec."""

import re
import zlib
from urllib.parse import quote

import pytest

from mermaid_share.codec import (
    DecodeError,
    decode_hash_payload,
    decode_hash_payload_or_url_encoded,
    decode_style_profile_from_query,
    encode_hash_payload,
    encode_style_profile_to_query,
    extract_payload_from_url,
    from_base64url,
    percent_decode,
    to_base64url,
)

SAMPLES = [
    "",
    "flowchart TD\nA-->B",
    "sequenceDiagram\n    Alice->>Bob: hello\n    Bob-->>Alice: hi\n",
    "graph LR\n  A[Zürich] --> B[東京] --> C[🚀 launch]",
    "%% a comment with % and # and ? and & signs\nflowchart LR\n  x-->y",
]


def _raw_deflate(data: bytes) -> bytes:
    c = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    return c.compress(data) + c.flush()


@pytest.mark.parametrize("text", SAMPLES)
def test_round_trip(text: str) -> None:
    assert decode_hash_payload(encode_hash_payload(text)) == text


@pytest.mark.parametrize("text", SAMPLES)
def test_token_is_url_safe(text: str) -> None:
    token = encode_hash_payload(text)
    assert re.fullmatch(r"[A-Za-z0-9_-]*", token)


def test_encode_is_deterministic() -> None:
    text = "flowchart TD\nA-->B"
    assert encode_hash_payload(text) == encode_hash_payload(text)


def test_token_is_raw_deflate() -> None:
    text = "classDiagram\n  Animal <|-- Duck"
    raw = from_base64url(encode_hash_payload(text))
    assert zlib.decompress(raw, -zlib.MAX_WBITS) == text.encode("utf-8")


def test_decode_tolerates_missing_padding_and_whitespace() -> None:
    text = "pie\n  \"a\" : 1"
    token = encode_hash_payload(text)
    assert "=" not in token
    assert decode_hash_payload(f"  {token}\n") == text


def test_decode_accepts_zlib_framed_payload() -> None:
    text = "flowchart TD\nA-->B"
    token = to_base64url(zlib.compress(text.encode("utf-8")))
    assert decode_hash_payload(token) == text


def test_decode_rejects_invalid_base64() -> None:
    with pytest.raises(DecodeError, match="base64"):
        decode_hash_payload("!!!!")


def test_decode_rejects_non_deflate_bytes() -> None:
    with pytest.raises(DecodeError, match="DEFLATE"):
        decode_hash_payload(to_base64url(b"hello world"))


def test_decode_rejects_trailing_bytes() -> None:
    with pytest.raises(DecodeError, match="DEFLATE"):
        decode_hash_payload(to_base64url(_raw_deflate(b"flowchart TD") + b"junk"))


def test_decode_rejects_truncated_stream() -> None:
    raw = _raw_deflate(b"sequenceDiagram\n  Alice->>Bob: hello")
    with pytest.raises(DecodeError, match="DEFLATE"):
        decode_hash_payload(to_base64url(raw[:-3]))


def test_decode_rejects_trailing_bytes_after_zlib_frame() -> None:
    framed = zlib.compress(b"flowchart TD") + b"junk"
    with pytest.raises(DecodeError, match="DEFLATE"):
        decode_hash_payload(to_base64url(framed))


def test_decode_rejects_invalid_utf8() -> None:
    with pytest.raises(DecodeError, match="UTF-8"):
        decode_hash_payload(to_base64url(_raw_deflate(b"\xff\xfe\xfd")))


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text", SAMPLES[1:])
def test_fallback_decodes_percent_encoded_text(text: str) -> None:
    assert decode_hash_payload_or_url_encoded(quote(text, safe="")) == text


def test_fallback_prefers_compressed_payload() -> None:
    text = "stateDiagram-v2\n  [*] --> Still"
    assert decode_hash_payload_or_url_encoded(encode_hash_payload(text)) == text


def test_fallback_passes_plain_text_through() -> None:
    assert decode_hash_payload_or_url_encoded("hello") == "hello"


def test_fallback_for_base64_text_with_leftover_bytes() -> None:
    # "AwAB" is valid base64 whose first two bytes form a complete empty block.
    assert decode_hash_payload_or_url_encoded("AwAB") == "AwAB"


def test_fallback_keeps_plus_signs() -> None:
    assert percent_decode("a+b%20c") == "a+b c"


@pytest.mark.parametrize("payload", ["%E0%A4%A", "%zz", "100%"])
def test_fallback_rejects_malformed_escape(payload: str) -> None:
    with pytest.raises(DecodeError, match="Malformed percent-escape"):
        decode_hash_payload_or_url_encoded(payload)


def test_fallback_rejects_invalid_utf8_escape() -> None:
    with pytest.raises(DecodeError, match="UTF-8"):
        decode_hash_payload_or_url_encoded("%FF%FE")


# ---------------------------------------------------------------------------
# extract_payload_from_url
# ---------------------------------------------------------------------------

def test_extract_payload_from_url() -> None:
    assert extract_payload_from_url("http://localhost:4173/#abc123") == "abc123"


def test_extract_payload_without_hash_returns_input() -> None:
    assert extract_payload_from_url("abc123") == "abc123"


def test_extract_payload_splits_on_first_hash_only() -> None:
    assert extract_payload_from_url("http://x/?style=e30#a#b") == "a#b"


def test_extract_payload_empty_fragment() -> None:
    assert extract_payload_from_url("http://x/#") == ""


# ---------------------------------------------------------------------------
# Style query codec
# ---------------------------------------------------------------------------

def test_style_query_is_uncompressed_base64url_json() -> None:
    encoded = encode_style_profile_to_query({"theme": "dark"})
    assert encoded == to_base64url(b'{"theme":"dark"}')
    assert "=" not in encoded


def test_style_query_round_trip_non_ascii() -> None:
    profile = {"theme": "base", "css": "/* café */ .node { fill: #fff; }",
               "themeVariables": {"fontSize": 14, "darkMode": True}}
    assert decode_style_profile_from_query(encode_style_profile_to_query(profile)) == profile


def test_style_query_rejects_invalid_json() -> None:
    with pytest.raises(DecodeError, match="JSON"):
        decode_style_profile_from_query(to_base64url(b"{nope"))


def test_style_query_rejects_invalid_base64() -> None:
    with pytest.raises(DecodeError):
        decode_style_profile_from_query("!!!!")
