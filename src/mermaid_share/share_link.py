"""
Share-link protocol: (diagram text, style profile) <-> URL.

The fragment always carries the compressed diagram text. The ``style`` query
parameter is present only when the profile differs from the canonical default,
which keeps default links minimal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs, quote, unquote_plus, urlsplit, urlunsplit

from mermaid_share.codec import (
    DecodeError,
    decode_hash_payload_or_url_encoded,
    decode_style_profile_from_query,
    encode_hash_payload,
    encode_style_profile_to_query,
    extract_payload_from_url,
)
from mermaid_share.models import (
    DEFAULT_STYLE_PROFILE,
    StyleProfile,
    is_default_style_profile,
    merge_style_profiles,
)
from mermaid_share.validation import ValidationError, parse_style_profile

logger = logging.getLogger(__name__)

STYLE_QUERY_PARAM = "style"


class StyleDecodePolicy(Enum):
    """What :func:`parse_share_url` does with a style parameter it cannot read."""
    # Keep the diagram loading; fall back to the default style.
    DISCARD = "discard"
    STRICT = "strict"


class MalformedStyleQuery(ValueError):
    """Raised when the ``style`` query parameter cannot be decoded or validated."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Malformed style query parameter: {reason}")


@dataclass(frozen=True)
class ShareLink:
    """Result of parsing a share URL."""
    text: str
    profile: StyleProfile
    has_explicit_style: bool = False
    # Why the style parameter was discarded, if it was
    style_error: Optional[str] = None


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------

def get_style_query_param(profile: StyleProfile) -> Optional[str]:
    """Encoded ``style`` value for *profile*, or ``None`` for the default style."""
    normalized = merge_style_profiles(profile)
    if is_default_style_profile(normalized):
        return None
    return encode_style_profile_to_query(normalized.to_dict())


def build_share_url(
    base_url: Optional[str],
    text: str,
    profile: StyleProfile = DEFAULT_STYLE_PROFILE,
) -> str:
    """Build a share URL for *text* rendered with *profile*.

    Without *base_url* a relative reference (``?style=...#payload`` or
    ``#payload``) is returned. With one, it must be absolute; its other query
    parameters are kept and its fragment is replaced.
    """
    payload = encode_hash_payload(text)
    style_param = get_style_query_param(profile)

    if not base_url:
        prefix = f"?{STYLE_QUERY_PARAM}={quote(style_param, safe='')}" if style_param else ""
        return f"{prefix}#{payload}"

    parts = urlsplit(base_url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValidationError(f"'base_url' must be an absolute URL, got '{base_url}'.")

    # Other parameters are kept byte for byte.
    query = [pair for pair in parts.query.split("&")
             if pair and unquote_plus(pair.partition("=")[0]) != STYLE_QUERY_PARAM]
    if style_param:
        query.append(f"{STYLE_QUERY_PARAM}={style_param}")
    path = parts.path or "/"
    return urlunsplit((parts.scheme, parts.netloc, path, "&".join(query), payload))


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------

def _style_param_from_url(url: str) -> Optional[str]:
    head = url.split("#", 1)[0]
    values = parse_qs(urlsplit(head).query).get(STYLE_QUERY_PARAM)
    if not values or not values[0]:
        return None
    return values[0]


def decode_style_param(value: str) -> StyleProfile:
    """Decode, validate and normalise a ``style`` parameter value.

    Raises:
        MalformedStyleQuery: on any decoding or schema failure.
    """
    try:
        partial = parse_style_profile(decode_style_profile_from_query(value))
    except DecodeError as exc:
        raise MalformedStyleQuery(exc.message) from exc
    except ValidationError as exc:
        raise MalformedStyleQuery(exc.message) from exc
    return merge_style_profiles(DEFAULT_STYLE_PROFILE, partial)


def parse_style_from_url(url: str) -> Optional[StyleProfile]:
    """The style carried by *url*, or ``None`` when it has no ``style`` parameter."""
    style_param = _style_param_from_url(url.strip())
    if style_param is None:
        return None
    return decode_style_param(style_param)


def parse_share_url(
    url: str,
    style_policy: StyleDecodePolicy = StyleDecodePolicy.DISCARD,
) -> ShareLink:
    """Recover diagram text and style profile from a share URL.

    A bad diagram payload raises :class:`~mermaid_share.codec.DecodeError`.
    A bad style parameter is handled according to *style_policy*.
    """
    value = url.strip()
    text = decode_hash_payload_or_url_encoded(extract_payload_from_url(value))

    try:
        profile = parse_style_from_url(value)
    except MalformedStyleQuery as exc:
        if style_policy is StyleDecodePolicy.STRICT:
            raise
        logger.warning("Ignoring invalid style query parameter: %s", exc.reason)
        return ShareLink(text=text, profile=DEFAULT_STYLE_PROFILE, style_error=exc.reason)

    if profile is None:
        return ShareLink(text=text, profile=DEFAULT_STYLE_PROFILE)
    return ShareLink(text=text, profile=profile, has_explicit_style=True)
