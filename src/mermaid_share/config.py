"""
Configuration sources for style profiles and server settings.

Style precedence is defaults -> config file (JSON or YAML) -> explicit
overrides (theme, CSS, ``key=value`` theme variables). Server settings are
read from the environment.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from mermaid_share.models import (
    DEFAULT_STYLE_PROFILE,
    PartialStyleProfile,
    StyleProfile,
    ThemeVariableValue,
    coerce_theme_variable,
    merge_style_profiles,
)
from mermaid_share.share_link import StyleDecodePolicy
from mermaid_share.validation import ValidationError, parse_style_profile

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(Exception):
    """Raised when a configuration source cannot be read or parsed."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Server settings
# ---------------------------------------------------------------------------

@dataclass
class ServerSettings:
    """Server settings from environment."""
    # Viewer URL used when a tool call does not pass base_url; None -> relative links
    base_url: Optional[str] = None
    style_policy: StyleDecodePolicy = StyleDecodePolicy.DISCARD
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "ServerSettings":
        """Load settings from environment variables."""
        policy_name = os.getenv("MERMAID_SHARE_STYLE_POLICY", "discard").strip().lower()
        try:
            policy = StyleDecodePolicy(policy_name)
        except ValueError:
            choices = ", ".join(p.value for p in StyleDecodePolicy)
            raise ConfigError(
                "E_CONFIG",
                f"MERMAID_SHARE_STYLE_POLICY must be one of [{choices}], got '{policy_name}'.",
            ) from None

        log_level = os.getenv("MERMAID_SHARE_LOG_LEVEL", "WARNING").strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigError(
                "E_CONFIG",
                f"MERMAID_SHARE_LOG_LEVEL must be one of [{', '.join(sorted(_LOG_LEVELS))}], "
                f"got '{log_level}'.",
            )

        return cls(
            base_url=os.getenv("MERMAID_SHARE_BASE_URL") or None,
            style_policy=policy,
            log_level=log_level,
        )


# ---------------------------------------------------------------------------
# Style sources
# ---------------------------------------------------------------------------

@dataclass
class StyleFlags:
    """Explicit style overrides, highest precedence."""
    theme: Optional[str] = None
    css: Optional[str] = None
    css_path: Optional[str] = None
    theme_variables: list[str] = field(default_factory=list)


def _read_text(path: Path, what: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError("E_CONFIG", f"failed to read {what} '{path}': {exc}") from exc


def read_profile_file(config_path: str | Path) -> PartialStyleProfile:
    """Load a partial style profile from a JSON or YAML file."""
    path = Path(config_path)
    raw = _read_text(path, "style profile")
    if path.suffix.lower() in _YAML_SUFFIXES:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError("E_CONFIG", f"invalid YAML in '{path}': {exc}") from exc
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError("E_CONFIG", f"invalid JSON in '{path}': {exc.msg}") from exc
    logger.debug("Loaded style profile from %s", path)
    return parse_style_profile(data)


def parse_theme_variable_pairs(pairs: list[str]) -> dict[str, ThemeVariableValue]:
    """Turn ``key=value`` strings into typed theme variables."""
    result: dict[str, ThemeVariableValue] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not key or not sep:
            raise ValidationError(f"Invalid theme variable override: '{pair}' (expected key=value).")
        result[key] = coerce_theme_variable(value)
    return result


def parse_flag_profile(flags: StyleFlags) -> PartialStyleProfile:
    """Build a partial profile from explicit overrides."""
    raw: dict = {}
    if flags.theme:
        raw["theme"] = flags.theme
    if flags.css is not None:
        raw["css"] = flags.css
    elif flags.css_path:
        raw["css"] = _read_text(Path(flags.css_path), "CSS file")
    theme_variables = parse_theme_variable_pairs(flags.theme_variables)
    if theme_variables:
        raw["themeVariables"] = theme_variables
    return parse_style_profile(raw)


def load_style_profile(
    config_path: Optional[str | Path] = None,
    flags: Optional[StyleFlags] = None,
) -> StyleProfile:
    """Resolve the canonical profile from a config file and explicit flags."""
    file_profile = read_profile_file(config_path) if config_path else None
    flag_profile = parse_flag_profile(flags) if flags else None
    return merge_style_profiles(DEFAULT_STYLE_PROFILE, file_profile, flag_profile)
