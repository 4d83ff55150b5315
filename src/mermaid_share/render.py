"""
Renderer seam: what a Mermaid renderer needs from a style profile.

The renderer itself (a browser running mermaid.js, a rendering service, ...)
lives outside this package; it only has to satisfy :class:`Renderer`.
"""

from __future__ import annotations

import re
from copy import deepcopy
from typing import Any, Protocol

from mermaid_share.models import StyleProfile

_SVG_OPEN_TAG = re.compile(r"<svg[^>]*>")


class Renderer(Protocol):
    def render(self, source: str, profile: StyleProfile) -> str:
        """Return SVG markup for *source* styled with *profile*."""
        ...


def build_renderer_config(profile: StyleProfile) -> dict[str, Any]:
    """Config object for ``mermaid.initialize()``.

    Renderer options from the profile are spread last and may override the
    fixed keys.
    """
    config: dict[str, Any] = {
        "startOnLoad": False,
        "securityLevel": "loose",
        "theme": profile.theme.value,
        "themeVariables": dict(profile.theme_variables),
    }
    config.update(deepcopy(dict(profile.renderer_config)))
    return config


def inject_css_into_svg(svg: str, css: str) -> str:
    """Insert a ``<style>`` block right after the opening ``<svg>`` tag."""
    if not css.strip():
        return svg
    return _SVG_OPEN_TAG.sub(lambda m: f"{m.group(0)}<style>{css}</style>", svg, count=1)


def render_with_profile(renderer: Renderer, source: str, profile: StyleProfile) -> str:
    """Render *source* and apply the profile's extra CSS to the result."""
    return inject_css_into_svg(renderer.render(source, profile), profile.css)
