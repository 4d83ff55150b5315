"""
Mermaid Share MCP Server — encode Mermaid diagrams into shareable URLs.

Exposes 2 tools that let an LLM agent turn diagram text plus a style profile
into a stateless viewer link, and read such links back.

Tools:
  1. url    — share links: encode, decode, parse
  2. style  — appearance: resolve, list_themes, defaults, renderer_config,
              apply_css
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from mermaid_share.codec import (
    DecodeError,
    decode_hash_payload_or_url_encoded,
    encode_hash_payload,
    extract_payload_from_url,
)
from mermaid_share.config import (
    ConfigError,
    ServerSettings,
    StyleFlags,
    load_style_profile,
)
from mermaid_share.models import DEFAULT_STYLE_PROFILE, MermaidTheme, StyleProfile
from mermaid_share.render import build_renderer_config, inject_css_into_svg
from mermaid_share.results import (
    E_CONFIG,
    E_DECODE_FAILED,
    E_ENCODE_FAILED,
    E_INPUT_EMPTY,
    E_INPUT_READ,
    E_OUTPUT_WRITE,
    E_STYLE_INVALID,
    E_USAGE,
    MachineResult,
    OutputTarget,
    create_error_result,
    create_ok_result,
    validate_machine_result,
)
from mermaid_share.share_link import (
    MalformedStyleQuery,
    build_share_url,
    get_style_query_param,
    parse_share_url,
)
from mermaid_share.validation import (
    ValidationError,
    validate_action,
    validate_file_path,
    validate_list,
    validate_non_empty_string,
    _STYLE_ACTIONS,
    _URL_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging — suppress routine FastMCP INFO messages that editors show
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("mermaid-share")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "mermaid-share",
    instructions=(
        "MCP server for sharing Mermaid diagrams as self-contained URLs.\n\n"
        "=== ONLY 2 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. url(action, ...) — share links: encode (text -> URL),\n"
        "   decode (URL -> text), parse (URL -> text + style profile).\n"
        "2. style(action, ...) — appearance: resolve, list_themes, defaults,\n"
        "   renderer_config, apply_css.\n\n"
        "=== RULES ===\n"
        "- The diagram travels in the URL fragment; nothing is stored server-side.\n"
        "- Style is added as ?style=... only when it differs from the default.\n"
        "- Style precedence: defaults < config_path file < theme/css/theme_variables.\n"
        "- theme_variables are 'key=value' strings; true/false and numbers are typed.\n"
        "- Results are JSON with schemaVersion 2.0; check 'ok' and 'error.code'.\n"
    ),
)

_settings = ServerSettings()


class ToolError(Exception):
    """A failure reported back to the caller as an error result."""

    def __init__(self, code: str, message: str, details: Any = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


# ===================================================================
# TOOL 1: url — share links
# ===================================================================

@mcp.tool()
def url(
    action: str,
    text: str = "",
    file_path: str = "",
    value: str = "",
    base_url: str = "",
    config_path: str = "",
    theme: str = "",
    css: str = "",
    css_path: str = "",
    theme_variables: list[str] | None = None,
    output_path: str = "",
) -> str:
    """Share-link encoding and decoding.

    Actions:
      encode — Encode Mermaid text into a share URL. Params: text or file_path,
               base_url?, config_path?, theme?, css? or css_path?,
               theme_variables?, output_path?.
      decode — Decode the Mermaid text from a share URL or bare payload.
               Params: value or file_path, output_path?.
      parse  — Decode both the text and the style profile of a share URL.
               Params: value or file_path.

    Args:
        action: One of: encode, decode, parse.
        text: Mermaid source for encode.
        file_path: File to read the Mermaid source (encode) or URL (decode/parse) from.
        value: Share URL or bare fragment payload for decode/parse.
        base_url: Absolute viewer URL for encode. Omit for a relative link.
        config_path: JSON or YAML style profile file.
        theme: Mermaid theme override (default, neutral, dark, forest, base).
        css: Extra CSS appended to rendered output.
        css_path: File to read extra CSS from (ignored when css is given).
        theme_variables: Theme variable overrides as "key=value" strings.
        output_path: Write the URL (encode) or decoded text (decode) to this file.

    Returns:
        JSON machine result (schemaVersion 2.0).
    """
    try:
        action = validate_action(action, "url", _URL_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "encode":
        command = "url.encode"
        try:
            source = _read_source(text, file_path)
            profile = _resolve_style(config_path, theme, css, css_path, theme_variables)
            try:
                diagram_hash = encode_hash_payload(source)
                share_url = build_share_url(base_url or _settings.base_url, source, profile)
            except ValidationError as exc:
                raise ToolError(E_USAGE, exc.message) from exc
            except UnicodeEncodeError as exc:
                raise ToolError(E_ENCODE_FAILED, f"cannot encode input as UTF-8: {exc}") from exc
            result = create_ok_result(command, share_url=share_url, diagram_hash=diagram_hash)
            if output_path:
                _write_output(result, f"{share_url}\n", output_path)
            else:
                result.output = OutputTarget("inline")
        except ToolError as exc:
            result = create_error_result(command, exc.code, exc.message, exc.details)
        return _to_json(result)

    elif action == "decode":
        command = "url.decode"
        try:
            link = _read_link(value, file_path)
            payload = extract_payload_from_url(link)
            try:
                decoded = decode_hash_payload_or_url_encoded(payload)
            except DecodeError as exc:
                raise ToolError(E_DECODE_FAILED, exc.message) from exc
            result = create_ok_result(
                command,
                diagram_hash=payload,
                diagram_source_bytes=len(decoded.encode("utf-8")),
            )
            if output_path:
                _write_output(result, decoded, output_path)
            else:
                result.source = decoded
                result.output = OutputTarget("inline")
        except ToolError as exc:
            result = create_error_result(command, exc.code, exc.message, exc.details)
        return _to_json(result)

    elif action == "parse":
        command = "url.parse"
        try:
            link = _read_link(value, file_path)
            try:
                shared = parse_share_url(link, _settings.style_policy)
            except DecodeError as exc:
                raise ToolError(E_DECODE_FAILED, exc.message) from exc
            except MalformedStyleQuery as exc:
                raise ToolError(E_STYLE_INVALID, str(exc)) from exc
            result = create_ok_result(
                command,
                diagram_hash=extract_payload_from_url(link),
                diagram_source_bytes=len(shared.text.encode("utf-8")),
                source=shared.text,
                style_profile=shared.profile.to_dict(),
                is_default=shared.profile.is_default(),
                output=OutputTarget("inline"),
            )
            if shared.style_error:
                result.warnings.append(f"Ignoring invalid style query parameter: {shared.style_error}")
        except ToolError as exc:
            result = create_error_result(command, exc.code, exc.message, exc.details)
        return _to_json(result)

    else:
        return f"Error: unknown url action '{action}'. Use: encode, decode, parse."


# ===================================================================
# TOOL 2: style — appearance
# ===================================================================

@mcp.tool()
def style(
    action: str,
    config_path: str = "",
    theme: str = "",
    css: str = "",
    css_path: str = "",
    theme_variables: list[str] | None = None,
    svg_content: str = "",
) -> str:
    """Style profile management.

    Actions:
      resolve         — Merge defaults, config file and overrides into the
                        canonical profile. Params: config_path?, theme?, css?,
                        css_path?, theme_variables?.
      list_themes     — List the built-in Mermaid themes.
      defaults        — Show the default style profile.
      renderer_config — Build the mermaid.initialize() config for the resolved
                        profile. Same params as resolve.
      apply_css       — Inject the resolved profile's CSS into SVG markup.
                        Params: svg_content, plus resolve params.

    Args:
        action: One of: resolve, list_themes, defaults, renderer_config, apply_css.
        config_path: JSON or YAML style profile file.
        theme: Mermaid theme override.
        css: Extra CSS.
        css_path: File to read extra CSS from (ignored when css is given).
        theme_variables: Theme variable overrides as "key=value" strings.
        svg_content: Rendered SVG markup for apply_css.

    Returns:
        JSON machine result, JSON config, SVG markup or a listing.
    """
    try:
        action = validate_action(action, "style", _STYLE_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "resolve":
        command = "style.resolve"
        try:
            profile = _resolve_style(config_path, theme, css, css_path, theme_variables)
        except ToolError as exc:
            return _to_json(create_error_result(command, exc.code, exc.message, exc.details))
        return _to_json(create_ok_result(
            command,
            style_profile=profile.to_dict(),
            style_param=get_style_query_param(profile),
            is_default=profile.is_default(),
        ))

    elif action == "list_themes":
        entries: list[str] = []
        for t in MermaidTheme:
            marker = " (default)" if t is DEFAULT_STYLE_PROFILE.theme else ""
            entries.append(f"  {t.value}{marker}")
        return "Mermaid themes:\n" + "\n".join(entries)

    elif action == "defaults":
        return json.dumps(DEFAULT_STYLE_PROFILE.to_dict(), indent=2)

    elif action == "renderer_config":
        try:
            profile = _resolve_style(config_path, theme, css, css_path, theme_variables)
        except ToolError as exc:
            return f"Error: {exc.message}"
        return json.dumps(build_renderer_config(profile), indent=2, ensure_ascii=False)

    elif action == "apply_css":
        try:
            validate_non_empty_string(svg_content, "svg_content")
            profile = _resolve_style(config_path, theme, css, css_path, theme_variables)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        except ToolError as exc:
            return f"Error: {exc.message}"
        return inject_css_into_svg(svg_content, profile.css)

    else:
        return (
            f"Error: unknown style action '{action}'. "
            "Use: resolve, list_themes, defaults, renderer_config, apply_css."
        )


# ===================================================================
# Helpers
# ===================================================================

def _checked_path(value: str, field_name: str) -> Path:
    try:
        return Path(validate_file_path(value, field_name))
    except ValidationError as exc:
        raise ToolError(E_USAGE, exc.message) from exc


def _read_source(text: str, file_path: str) -> str:
    if text and file_path:
        raise ToolError(E_USAGE, "'text' cannot be combined with 'file_path'.")
    if file_path:
        path = _checked_path(file_path, "file_path")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ToolError(E_INPUT_READ, f"failed to read input file '{path}': {exc}") from exc
    if not text or not text.strip():
        raise ToolError(E_INPUT_EMPTY, "No Mermaid input found in 'text' or 'file_path'.")
    return text


def _read_link(value: str, file_path: str) -> str:
    if value and file_path:
        raise ToolError(E_USAGE, "'value' cannot be combined with 'file_path'.")
    if file_path:
        path = _checked_path(file_path, "file_path")
        try:
            value = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ToolError(E_INPUT_READ, f"failed to read input file '{path}': {exc}") from exc
    if not value or not value.strip():
        raise ToolError(E_INPUT_EMPTY, "No share URL found in 'value' or 'file_path'.")
    return value.strip()


def _resolve_style(
    config_path: str,
    theme: str,
    css: str,
    css_path: str,
    theme_variables: list[str] | None,
) -> StyleProfile:
    config_file = _checked_path(config_path, "config_path") if config_path else None
    css_file = _checked_path(css_path, "css_path") if css_path else None
    try:
        pairs = validate_list(theme_variables, "theme_variables") if theme_variables else []
        flags = StyleFlags(
            theme=theme or None,
            css=css or None,
            css_path=str(css_file) if css_file else None,
            theme_variables=[str(p) for p in pairs],
        )
        return load_style_profile(config_file, flags)
    except ConfigError as exc:
        raise ToolError(E_CONFIG, exc.message) from exc
    except ValidationError as exc:
        raise ToolError(E_STYLE_INVALID, exc.message) from exc


def _write_output(result: MachineResult, content: str, output_path: str) -> None:
    data = content.encode("utf-8")
    path = _checked_path(output_path, "output_path").resolve()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise ToolError(E_OUTPUT_WRITE, f"failed to write output file '{path}': {exc}") from exc
    result.output = OutputTarget("file", str(path))
    result.bytes = len(data)
    result.sha256 = hashlib.sha256(data).hexdigest()


def _to_json(result: MachineResult) -> str:
    data = validate_machine_result(result.to_dict())
    if not result.ok and result.error:
        logger.info("%s failed: %s (%s)", result.command, result.error.message, result.error.code)
    return json.dumps(data, indent=2, ensure_ascii=False)


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    global _settings
    _settings = ServerSettings.from_env()
    logger.setLevel(_settings.log_level)
    logging.getLogger("mermaid_share").setLevel(_settings.log_level)
    mcp.run()


if __name__ == "__main__":
    main()
