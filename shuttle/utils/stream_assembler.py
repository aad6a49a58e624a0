"""
Stream Assembler - rebuilds structured output from streamed field fragments.

Streaming calls deliver fragments tagged with a dotted/bracketed field path
(``answer.items[2].title``) or no path at all (plain text). The assembler
keeps two buffers per path:

- a display buffer with the concatenated text, handed to observers while the
  stream is live;
- a value buffer with the raw fragments, so that a field delivered as a single
  number/boolean/null keeps its native type.

Nothing is parsed until ``finalize()``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal

from ..types import ToolSchema

STREAM_ROOT_PATH = "_root"
# Indexed dicts become lists only below this index; larger keys stay literal.
MAX_ARRAY_INDEX = 10_000

_NUMERIC_TOKEN = re.compile(r"^\d+$")
_BRACKET_TOKEN = re.compile(r"\[(\d+)\]")
_INT_LITERAL = re.compile(r"^-?\d+$")
_DECIMAL_LITERAL = re.compile(r"^-?\d+\.\d+$")


def coerce_primitive(value: str) -> Any:
    """Interpret streamed text as bool/null/int/float when it looks like one."""
    trimmed = value.strip()
    if not trimmed:
        return value

    lower = trimmed.lower()
    if lower == "true":
        return True
    if lower == "false":
        return False
    if lower == "null":
        return None
    if _INT_LITERAL.match(trimmed):
        return int(trimmed)
    if _DECIMAL_LITERAL.match(trimmed):
        return float(trimmed)
    return value


def to_display_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value if isinstance(value, str) else str(value)


def parse_path_segments(path: str) -> list[str]:
    """``a.b[2].c`` -> ``["a", "b", "2", "c"]``. Non-numeric brackets stay in the key."""
    expanded = _BRACKET_TOKEN.sub(lambda m: f".{m.group(1)}", path)
    return [segment.strip() for segment in expanded.split(".") if segment.strip()]


def set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    segments = parse_path_segments(path)
    if not segments:
        return

    current = target
    for segment in segments[:-1]:
        existing = current.get(segment)
        if not isinstance(existing, dict):
            existing = {}
            current[segment] = existing
        current = existing
    current[segments[-1]] = value


def normalize_indexed(value: Any) -> Any:
    """Rewrite dicts keyed only by small non-negative integers into dense lists, recursively."""
    if isinstance(value, list):
        return [normalize_indexed(item) for item in value]
    if not isinstance(value, dict):
        return value

    normalized = {key: normalize_indexed(entry) for key, entry in value.items()}
    if normalized and all(_NUMERIC_TOKEN.match(str(key)) for key in normalized):
        indexed = {int(key): entry for key, entry in normalized.items()}
        if max(indexed) >= MAX_ARRAY_INDEX:
            return normalized
        dense: list[Any] = [None] * (max(indexed) + 1)
        for index, entry in indexed.items():
            dense[index] = entry
        return dense
    return normalized


@dataclass
class StreamFeedResult:
    path: str
    accumulated: str
    snapshot: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamFinalizeResult:
    kind: Literal["root", "structured", "empty"]
    text: str | None = None
    value: Any = None


class StreamAssembler:
    """Accumulates ``(path, fragment)`` pairs and reconstructs the final payload."""

    def __init__(self, schema: ToolSchema | None = None) -> None:
        self.schema = schema
        self._display: dict[str, str] = {}
        self._values: dict[str, list[Any]] = {}

    def feed(self, delta: Any, path: str | None = None) -> StreamFeedResult | None:
        """
        Add one fragment.

        Returns None without touching any buffer when ``delta`` is None; an
        empty string is real data and is recorded.
        """
        if delta is None:
            return None

        key = STREAM_ROOT_PATH if path is None else path
        accumulated = self._display.get(key, "") + to_display_string(delta)
        self._display[key] = accumulated
        self._values.setdefault(key, []).append(delta)

        return StreamFeedResult(path=key, accumulated=accumulated, snapshot=self.snapshot())

    def snapshot(self) -> dict[str, str]:
        return dict(self._display)

    def field_buffers(self) -> dict[str, str]:
        return dict(self._display)

    def has_structured_fields(self) -> bool:
        return any(key != STREAM_ROOT_PATH for key in self._display)

    def finalize(self) -> StreamFinalizeResult:
        if not self._display:
            return StreamFinalizeResult(kind="empty")

        if not self.has_structured_fields():
            return StreamFinalizeResult(kind="root", text=self._display.get(STREAM_ROOT_PATH, ""))

        structured = self._reconstruct()
        value: Any = structured
        if self.schema is not None:
            try:
                value = self.schema.parse(structured)
            except Exception:
                value = structured
        return StreamFinalizeResult(kind="structured", value=value)

    def _resolve(self, path: str) -> Any:
        values = self._values.get(path, [])
        if len(values) == 1 and not isinstance(values[0], str):
            return values[0]
        return coerce_primitive(self._display.get(path, ""))

    def _reconstruct(self) -> Any:
        result: dict[str, Any] = {}
        for path in self._values:
            if path == STREAM_ROOT_PATH:
                continue
            set_nested_value(result, path, self._resolve(path))
        return normalize_indexed(result)


__all__ = [
    "MAX_ARRAY_INDEX",
    "STREAM_ROOT_PATH",
    "StreamAssembler",
    "StreamFeedResult",
    "StreamFinalizeResult",
    "coerce_primitive",
    "normalize_indexed",
    "parse_path_segments",
    "set_nested_value",
    "to_display_string",
]
