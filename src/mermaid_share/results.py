"""
Machine-readable result envelope (schema version 2.0) returned by the tools.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from mermaid_share.validation import ValidationError

SCHEMA_VERSION = "2.0"

COMMANDS = {"url.encode", "url.decode", "url.parse", "style.resolve"}

# Error codes
E_USAGE = "E_USAGE"
E_INPUT_EMPTY = "E_INPUT_EMPTY"
E_INPUT_READ = "E_INPUT_READ"
E_OUTPUT_WRITE = "E_OUTPUT_WRITE"
E_CONFIG = "E_CONFIG"
E_STYLE_INVALID = "E_STYLE_INVALID"
E_ENCODE_FAILED = "E_ENCODE_FAILED"
E_DECODE_FAILED = "E_DECODE_FAILED"


@dataclass
class OutputTarget:
    """Where a tool wrote its artifact: returned inline or to a file."""
    kind: str = "inline"
    path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.kind == "file":
            return {"kind": "file", "path": self.path}
        return {"kind": self.kind}


@dataclass
class ResultError:
    code: str
    message: str
    details: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            d["details"] = self.details
        return d


@dataclass
class MachineResult:
    """One tool outcome. Unset optional fields are omitted from the dict."""
    ok: bool
    command: str
    output: Optional[OutputTarget] = None
    bytes: Optional[int] = None
    sha256: Optional[str] = None
    share_url: Optional[str] = None
    diagram_hash: Optional[str] = None
    diagram_source_bytes: Optional[int] = None
    source: Optional[str] = None
    style_profile: Optional[dict[str, Any]] = None
    style_param: Optional[str] = None
    is_default: Optional[bool] = None
    warnings: list[str] = field(default_factory=list)
    error: Optional[ResultError] = None
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "schemaVersion": self.schema_version,
            "ok": self.ok,
            "command": self.command,
        }
        optional = {
            "output": self.output.to_dict() if self.output else None,
            "bytes": self.bytes,
            "sha256": self.sha256,
            "shareUrl": self.share_url,
            "diagramHash": self.diagram_hash,
            "diagramSourceBytes": self.diagram_source_bytes,
            "source": self.source,
            "styleProfile": self.style_profile,
            "styleParam": self.style_param,
            "isDefault": self.is_default,
            "warnings": list(self.warnings) if self.warnings else None,
            "error": self.error.to_dict() if self.error else None,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        return d


def create_ok_result(command: str, **fields: Any) -> MachineResult:
    return MachineResult(ok=True, command=command, **fields)


def create_error_result(
    command: str, code: str, message: str, details: Any = None,
) -> MachineResult:
    return MachineResult(
        ok=False,
        command=command,
        error=ResultError(code=code, message=message, details=details),
    )


# ---------------------------------------------------------------------------
# Schema check
# ---------------------------------------------------------------------------

_STRING_FIELDS = ("sha256", "shareUrl", "diagramHash", "source", "styleParam")
_COUNT_FIELDS = ("bytes", "diagramSourceBytes")
_KNOWN_FIELDS = {
    "schemaVersion", "ok", "command", "output", "styleProfile", "isDefault",
    "warnings", "error", *_STRING_FIELDS, *_COUNT_FIELDS,
}


def _validate_output(value: Any) -> None:
    if not isinstance(value, dict):
        raise ValidationError("'output' must be a dict/object.")
    kind = value.get("kind")
    if kind == "inline":
        return
    if kind == "file":
        if not isinstance(value.get("path"), str):
            raise ValidationError("'output.path' must be a string for file output.")
        return
    raise ValidationError(f"'output.kind' must be 'inline' or 'file', got {kind!r}.")


def validate_machine_result(data: Any) -> dict[str, Any]:
    """Check a result dict against the v2.0 schema and return it."""
    if not isinstance(data, dict):
        raise ValidationError(f"Result must be a dict/object, got {type(data).__name__}.")
    unknown = sorted(set(data) - _KNOWN_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown result field(s): {', '.join(unknown)}.")
    if data.get("schemaVersion") != SCHEMA_VERSION:
        raise ValidationError(
            f"'schemaVersion' must be '{SCHEMA_VERSION}', got {data.get('schemaVersion')!r}."
        )
    if not isinstance(data.get("ok"), bool):
        raise ValidationError("'ok' must be a boolean.")
    if data.get("command") not in COMMANDS:
        choices = ", ".join(sorted(COMMANDS))
        raise ValidationError(f"'command' must be one of [{choices}], got {data.get('command')!r}.")

    for name in _STRING_FIELDS:
        if name in data and not isinstance(data[name], str):
            raise ValidationError(f"'{name}' must be a string.")
    for name in _COUNT_FIELDS:
        if name in data:
            value = data[name]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"'{name}' must be a non-negative integer, got {value!r}.")
    if "output" in data:
        _validate_output(data["output"])
    if "styleProfile" in data and not isinstance(data["styleProfile"], dict):
        raise ValidationError("'styleProfile' must be a dict/object.")
    if "isDefault" in data and not isinstance(data["isDefault"], bool):
        raise ValidationError("'isDefault' must be a boolean.")
    if "warnings" in data:
        warnings = data["warnings"]
        if not isinstance(warnings, list) or not all(isinstance(w, str) for w in warnings):
            raise ValidationError("'warnings' must be a list of strings.")
    if "error" in data:
        error = data["error"]
        if not isinstance(error, dict) or not isinstance(error.get("code"), str) \
                or not isinstance(error.get("message"), str):
            raise ValidationError("'error' must have string 'code' and 'message'.")
    return data
