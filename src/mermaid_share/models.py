"""
Style profile model for shared Mermaid diagrams.

A :class:`StyleProfile` is the canonical, fully-populated rendering style
(theme, theme variables, extra CSS and opaque renderer options). Partial
profiles come from config files, URL query parameters and explicit overrides,
and are folded left to right by :func:`merge_style_profiles`.
"""

from __future__ import annotations

import math
import re
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Hashable, Mapping, Optional, Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MermaidTheme(Enum):
    """Built-in Mermaid themes."""
    DEFAULT = "default"
    NEUTRAL = "neutral"
    DARK = "dark"
    FOREST = "forest"
    BASE = "base"


MERMAID_THEMES: tuple[str, ...] = tuple(t.value for t in MermaidTheme)

ThemeVariableValue = Union[str, int, float, bool]


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

def _freeze(value: Any) -> Hashable:
    if isinstance(value, Mapping):
        return frozenset((k, _freeze(v)) for k, v in value.items())
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class StyleProfile:
    """Canonical style profile. Every field is always populated.

    The map fields are stored as read-only copies, so a profile (including
    :data:`DEFAULT_STYLE_PROFILE`) cannot be changed after construction.
    Nested ``renderer_config`` values belong to the profile's own copy.
    """
    theme: MermaidTheme = MermaidTheme.DEFAULT
    theme_variables: Mapping[str, ThemeVariableValue] = field(default_factory=dict)
    css: str = ""
    # Passed through untouched to the renderer's initialize() call
    renderer_config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "theme_variables", MappingProxyType(dict(self.theme_variables)))
        object.__setattr__(
            self, "renderer_config", MappingProxyType(deepcopy(dict(self.renderer_config)))
        )

    def __hash__(self) -> int:
        return hash((
            self.theme,
            self.css,
            _freeze(self.theme_variables),
            _freeze(self.renderer_config),
        ))

    def is_default(self) -> bool:
        return is_default_style_profile(self)

    def to_dict(self) -> dict[str, Any]:
        """Wire form, keyed the way JSON/YAML sources and URLs spell it."""
        return {
            "theme": self.theme.value,
            "themeVariables": dict(self.theme_variables),
            "css": self.css,
            "rendererConfig": deepcopy(dict(self.renderer_config)),
        }


@dataclass(frozen=True)
class PartialStyleProfile:
    """Merge input: any subset of the profile fields (``None`` = absent)."""
    theme: Optional[MermaidTheme] = None
    theme_variables: Optional[dict[str, ThemeVariableValue]] = None
    css: Optional[str] = None
    renderer_config: Optional[dict[str, Any]] = None

    def is_empty(self) -> bool:
        return (
            self.theme is None
            and self.theme_variables is None
            and self.css is None
            and self.renderer_config is None
        )


DEFAULT_STYLE_PROFILE = StyleProfile()


# ---------------------------------------------------------------------------
# Merge / equality
# ---------------------------------------------------------------------------

def merge_style_profiles(
    *profiles: Union[StyleProfile, PartialStyleProfile, None],
) -> StyleProfile:
    """Fold *profiles* over the default profile, left to right.

    Scalar fields are replaced when present; ``theme_variables`` and
    ``renderer_config`` are merged key by key with the later key winning.
    ``None`` entries are skipped. The result shares no mutable state with the
    inputs.
    """
    theme = DEFAULT_STYLE_PROFILE.theme
    css = DEFAULT_STYLE_PROFILE.css
    theme_variables: dict[str, ThemeVariableValue] = dict(DEFAULT_STYLE_PROFILE.theme_variables)
    renderer_config: dict[str, Any] = dict(DEFAULT_STYLE_PROFILE.renderer_config)

    for current in profiles:
        if current is None:
            continue
        if current.theme is not None:
            theme = current.theme
        if current.css is not None:
            css = current.css
        if current.theme_variables:
            theme_variables.update(current.theme_variables)
        if current.renderer_config:
            renderer_config.update(current.renderer_config)

    return StyleProfile(
        theme=theme,
        theme_variables=theme_variables,
        css=css,
        renderer_config=renderer_config,
    )


def is_default_style_profile(profile: StyleProfile) -> bool:
    """Structural equality with the zero-value profile."""
    return (
        profile.theme == DEFAULT_STYLE_PROFILE.theme
        and profile.css == DEFAULT_STYLE_PROFILE.css
        and len(profile.theme_variables) == 0
        and len(profile.renderer_config) == 0
    )


# ---------------------------------------------------------------------------
# Scalar sniffing for key=value overrides
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def coerce_theme_variable(raw: str) -> ThemeVariableValue:
    """Best-effort typing of a bare ``key=value`` override value.

    ``"true"``/``"false"`` become booleans, a string that is entirely a finite
    number becomes an int or float, anything else stays a string.
    """
    if raw == "true":
        return True
    if raw == "false":
        return False
    candidate = raw.strip()
    if not _NUMBER_RE.match(candidate):
        return raw
    if _INTEGER_RE.match(candidate):
        return int(candidate)
    number = float(candidate)
    if not math.isfinite(number):
        return raw
    return number
