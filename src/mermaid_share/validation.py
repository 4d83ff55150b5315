"""
Input validation for style profiles and MCP tool parameters.

Provides reusable validators that produce clear error messages, plus the
strict schema check that turns untrusted JSON/YAML/query input into a
:class:`~mermaid_share.models.PartialStyleProfile`.
"""

from __future__ import annotations

from typing import Any

from mermaid_share.models import (
    MERMAID_THEMES,
    MermaidTheme,
    PartialStyleProfile,
    ThemeVariableValue,
)


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_string(value: Any, field_name: str, *, allow_empty: bool = True) -> str:
    """Ensure *value* is a string (optionally non-empty)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.")
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict with string keys."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    for k in value:
        if not isinstance(k, str):
            raise ValidationError(f"'{field_name}' keys must be strings, got {type(k).__name__}.")
    return value


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_file_path(value: Any, field_name: str) -> str:
    """Validate that a file path is a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty file path string.")
    return value.strip()


# ---------------------------------------------------------------------------
# Tool actions
# ---------------------------------------------------------------------------

_URL_ACTIONS = {"ENCODE", "DECODE", "PARSE"}
_STYLE_ACTIONS = {"RESOLVE", "LIST_THEMES", "DEFAULTS", "RENDERER_CONFIG", "APPLY_CSS"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Style profile schema
# ---------------------------------------------------------------------------

_PROFILE_KEYS = {"theme", "themeVariables", "css", "rendererConfig", "mermaidConfig"}


def validate_theme(value: Any) -> MermaidTheme:
    """Validate a Mermaid theme name (exact match)."""
    if isinstance(value, str) and value in MERMAID_THEMES:
        return MermaidTheme(value)
    choices = ", ".join(MERMAID_THEMES)
    raise ValidationError(f"'theme' must be one of [{choices}], got {value!r}.")


def validate_theme_variables(value: Any) -> dict[str, ThemeVariableValue]:
    """Validate a theme-variable mapping (string keys, scalar values)."""
    validate_dict(value, "themeVariables")
    result: dict[str, ThemeVariableValue] = {}
    for k, v in value.items():
        if not isinstance(v, (str, int, float, bool)):
            raise ValidationError(
                f"'themeVariables' value for '{k}' must be a string, number or boolean, "
                f"got {type(v).__name__} ({v!r})."
            )
        result[k] = v
    return result


def validate_json_value(value: Any, field_name: str) -> Any:
    """Ensure *value* is built only from JSON-serializable types."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, list):
        for i, item in enumerate(value):
            validate_json_value(item, f"{field_name}[{i}]")
        return value
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise ValidationError(
                    f"'{field_name}' keys must be strings, got {type(k).__name__}."
                )
            validate_json_value(v, f"{field_name}.{k}")
        return value
    raise ValidationError(
        f"'{field_name}' must be JSON-serializable, got {type(value).__name__}."
    )


def validate_renderer_config(value: Any, field_name: str = "rendererConfig") -> dict[str, Any]:
    """Validate the opaque renderer option bag."""
    validate_dict(value, field_name)
    return {k: validate_json_value(v, f"{field_name}.{k}") for k, v in value.items()}


def parse_style_profile(raw: Any) -> PartialStyleProfile:
    """Validate *raw* against the closed partial-profile schema.

    ``None`` yields an empty partial profile. Unknown keys and wrong value
    types raise :class:`ValidationError`. ``mermaidConfig`` is accepted as an
    alias of ``rendererConfig``.
    """
    if raw is None:
        return PartialStyleProfile()
    if not isinstance(raw, dict):
        raise ValidationError(
            f"Style profile must be a dict/object, got {type(raw).__name__}."
        )

    unknown = sorted(str(k) for k in raw if k not in _PROFILE_KEYS)
    if unknown:
        allowed = ", ".join(sorted(_PROFILE_KEYS - {"mermaidConfig"}))
        raise ValidationError(
            f"Unknown style profile key(s): {', '.join(unknown)}. Allowed keys: {allowed}."
        )
    if "rendererConfig" in raw and "mermaidConfig" in raw:
        raise ValidationError(
            "Style profile must not set both 'rendererConfig' and its alias 'mermaidConfig'."
        )

    theme = validate_theme(raw["theme"]) if "theme" in raw else None
    theme_variables = (
        validate_theme_variables(raw["themeVariables"]) if "themeVariables" in raw else None
    )
    css = validate_string(raw["css"], "css") if "css" in raw else None

    renderer_config = None
    for key in ("rendererConfig", "mermaidConfig"):
        if key in raw:
            renderer_config = validate_renderer_config(raw[key], key)

    return PartialStyleProfile(
        theme=theme,
        theme_variables=theme_variables,
        css=css,
        renderer_config=renderer_config,
    )
