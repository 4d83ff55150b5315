"""Tests for building and parsing share URLs."""

import logging
import re
from urllib.parse import parse_qs, quote, urlsplit

import pytest

from mermaid_share.codec import encode_hash_payload, encode_style_profile_to_query
from mermaid_share.models import (
    DEFAULT_STYLE_PROFILE,
    MermaidTheme,
    PartialStyleProfile,
    StyleProfile,
    merge_style_profiles,
)
from mermaid_share.share_link import (
    MalformedStyleQuery,
    StyleDecodePolicy,
    build_share_url,
    decode_style_param,
    get_style_query_param,
    parse_share_url,
    parse_style_from_url,
)
from mermaid_share.validation import ValidationError

DIAGRAM = "flowchart TD\nA-->B"
DARK = StyleProfile(theme=MermaidTheme.DARK, theme_variables={"primaryColor": "#f00"})


def test_minimal_url_for_default_profile() -> None:
    url = build_share_url(None, DIAGRAM, DEFAULT_STYLE_PROFILE)
    assert re.fullmatch(r"#\S+", url)
    assert "style" not in url


def test_non_default_profile_adds_style_before_fragment() -> None:
    url = build_share_url(None, DIAGRAM, DARK)
    assert url.startswith("?style=")
    assert url.index("?style=") < url.index("#")
    assert url.endswith("#" + encode_hash_payload(DIAGRAM))


def test_relative_url_round_trip() -> None:
    link = parse_share_url(build_share_url(None, DIAGRAM, DARK))
    assert link.text == DIAGRAM
    assert link.profile == DARK
    assert link.has_explicit_style
    assert link.style_error is None


def test_default_profile_round_trip() -> None:
    link = parse_share_url(build_share_url(None, DIAGRAM, DEFAULT_STYLE_PROFILE))
    assert link.text == DIAGRAM
    assert link.profile.is_default()
    assert not link.has_explicit_style


def test_absolute_url_keeps_other_query_params() -> None:
    url = build_share_url("https://viewer.example.com/app?ui-theme=dark", DIAGRAM, DARK)
    parts = urlsplit(url)
    query = parse_qs(parts.query)
    assert parts.scheme == "https"
    assert parts.netloc == "viewer.example.com"
    assert parts.path == "/app"
    assert query["ui-theme"] == ["dark"]
    assert query["style"] == [get_style_query_param(DARK)]
    assert parts.fragment == encode_hash_payload(DIAGRAM)


def test_absolute_url_round_trip() -> None:
    profile = merge_style_profiles(PartialStyleProfile(
        css=".edgeLabel { color: #c00; }",
        renderer_config={"flowchart": {"curve": "basis"}},
    ))
    text = "graph LR\n  Ä --> Ö"
    link = parse_share_url(build_share_url("http://localhost:4173/", text, profile))
    assert link.text == text
    assert link.profile == profile


def test_absolute_url_replaces_existing_fragment_and_style() -> None:
    url = build_share_url("https://viewer.example.com/?style=stale#old", DIAGRAM, DARK)
    parts = urlsplit(url)
    assert parse_qs(parts.query)["style"] == [get_style_query_param(DARK)]
    assert parts.fragment == encode_hash_payload(DIAGRAM)


def test_absolute_url_drops_stale_style_for_default_profile() -> None:
    url = build_share_url("https://viewer.example.com/?style=stale&x=1", DIAGRAM, DEFAULT_STYLE_PROFILE)
    query = parse_qs(urlsplit(url).query)
    assert "style" not in query
    assert query["x"] == ["1"]


def test_absolute_url_leaves_other_params_untouched() -> None:
    url = build_share_url("https://viewer.example.com/app?flag&q=a%20b&style=old", DIAGRAM, DARK)
    query = urlsplit(url).query
    assert query == f"flag&q=a%20b&style={get_style_query_param(DARK)}"


def test_absolute_url_default_profile_keeps_query_verbatim() -> None:
    url = build_share_url("https://viewer.example.com/?flag&q=a%20b", DIAGRAM, DEFAULT_STYLE_PROFILE)
    assert url == "https://viewer.example.com/?flag&q=a%20b#" + encode_hash_payload(DIAGRAM)


def test_absolute_url_without_path() -> None:
    url = build_share_url("https://viewer.example.com", DIAGRAM, DEFAULT_STYLE_PROFILE)
    assert url == "https://viewer.example.com/#" + encode_hash_payload(DIAGRAM)


def test_relative_base_url_rejected() -> None:
    with pytest.raises(ValidationError, match="absolute URL"):
        build_share_url("viewer/index.html", DIAGRAM, DARK)


def test_get_style_query_param() -> None:
    assert get_style_query_param(DEFAULT_STYLE_PROFILE) is None
    assert get_style_query_param(DARK) == encode_style_profile_to_query(DARK.to_dict())


# ---------------------------------------------------------------------------
# Lossy-style tolerance
# ---------------------------------------------------------------------------

def _with_style(style: str) -> str:
    return f"http://localhost:4173/?style={quote(style, safe='')}#{encode_hash_payload(DIAGRAM)}"


@pytest.mark.parametrize("style", [
    "!!!!",
    encode_style_profile_to_query({"theme": "purple"}),
    encode_style_profile_to_query({"bogus": True}),
    encode_style_profile_to_query(["dark"]),
])
def test_corrupted_style_falls_back_to_default(style: str) -> None:
    link = parse_share_url(_with_style(style))
    assert link.text == DIAGRAM
    assert link.profile == DEFAULT_STYLE_PROFILE
    assert not link.has_explicit_style
    assert link.style_error


def test_discarded_style_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="mermaid_share.share_link"):
        parse_share_url(_with_style("!!!!"))
    assert "Ignoring invalid style query parameter" in caplog.text


def test_strict_policy_raises() -> None:
    with pytest.raises(MalformedStyleQuery):
        parse_share_url(_with_style("!!!!"), StyleDecodePolicy.STRICT)


def test_returned_default_profile_cannot_leak() -> None:
    link = parse_share_url("#" + encode_hash_payload(DIAGRAM))
    with pytest.raises(TypeError):
        link.profile.theme_variables["primaryColor"] = "#f00"  # type: ignore[index]
    assert build_share_url(None, "x", merge_style_profiles()) == "#" + encode_hash_payload("x")


def test_empty_style_param_is_absent() -> None:
    link = parse_share_url(f"?style=#{encode_hash_payload(DIAGRAM)}")
    assert link.profile.is_default()
    assert not link.has_explicit_style


# ---------------------------------------------------------------------------
# Compatibility
# ---------------------------------------------------------------------------

def test_percent_encoded_fragment_is_accepted() -> None:
    link = parse_share_url("http://localhost:4173/#" + quote(DIAGRAM, safe=""))
    assert link.text == DIAGRAM


def test_bare_token_is_accepted() -> None:
    assert parse_share_url(encode_hash_payload(DIAGRAM)).text == DIAGRAM


def test_partial_style_from_other_producer_is_merged() -> None:
    style = encode_style_profile_to_query({"theme": "neutral", "mermaidConfig": {"look": "handDrawn"}})
    link = parse_share_url(_with_style(style))
    assert link.profile.theme is MermaidTheme.NEUTRAL
    assert link.profile.renderer_config == {"look": "handDrawn"}
    assert link.profile.css == ""


def test_parse_style_from_url() -> None:
    assert parse_style_from_url("http://localhost:4173/#abc") is None
    assert parse_style_from_url(build_share_url("http://localhost:4173/", DIAGRAM, DARK)) == DARK


def test_decode_style_param_raises_malformed() -> None:
    with pytest.raises(MalformedStyleQuery, match="Malformed style query parameter"):
        decode_style_param(encode_style_profile_to_query({"css": 1}))
