"""Best-effort recovery of JSON emitted by a language model.

Models asked for "JSON only" still wrap answers in markdown fences, add
prose, use smart quotes, leave keys unquoted, write price ranges such as
``"35-40"`` or stop mid-array when they hit a token limit. This module
recovers what it can through an ordered chain of stages:

1. ``direct``     - parse the content as-is.
2. ``isolate``    - drop code fences and surrounding prose, keep the first
                    balanced ``{...}`` / ``[...]`` span.
3. ``normalize``  - smart quotes, single quotes, unquoted keys, control
                    characters, currency symbols, numeric ranges, commas.
4. ``aggressive`` - strip everything outside printable ASCII and redo the
                    structural repairs.

From ``isolate`` onwards a truncated document is closed at its last complete
sibling before giving up on the stage. Every repair is a pure ``str -> str``
function so it can be tested on its own. When every stage fails the extractor
returns a :class:`ParseFailure` value instead of raising.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

Repair = Callable[[str], str]

_CODE_BLOCK_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
_OPEN_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*")
_POSITION_PATTERN = re.compile(r"(?:position|char)\s+(\d+)")
_SMART_QUOTES = str.maketrans({
    "‘": "'",
    "’": "'",
    "‚": "'",
    "‛": "'",
    "“": '"',
    "”": '"',
    "„": '"',
    "‟": '"',
    "«": '"',
    "»": '"',
})
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7e]")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_\-]*)\s*:")
_SINGLE_QUOTED_KEY = re.compile(r"([{,]\s*)'([^'\n]*)'\s*:")
_SINGLE_QUOTED_VALUE = re.compile(r"([:\[,]\s*)'([^'\n]*)'")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_DUPLICATE_COMMA = re.compile(r",\s*,")
_LEADING_COMMA = re.compile(r"([\[{])\s*,")
_MISSING_OBJECT_COMMA = re.compile(r"([}\]])(\s*)([{\[])")
_CURRENCY_NUMBER = re.compile(r"(:\s*)[$€£¥]\s*(\d[\d,]*(?:\.\d+)?)")
_QUOTED_RANGE = re.compile(
    r"(:\s*)\"\s*[$€£]?\s*(\d+(?:\.\d+)?)\s*(?:-|–|to)\s*[$€£]?\s*(\d+(?:\.\d+)?)\s*\""
)
_BARE_RANGE = re.compile(r"(:\s*)(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)(?=\s*[,}\]\n])")
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t", "\b": "\\b", "\f": "\\f"}


@dataclass(frozen=True)
class ParseFailure:
    """Typed result returned when no stage could recover a JSON value."""

    content: str
    stage: str
    position: Optional[int] = None
    message: str = ""


@dataclass(frozen=True)
class RepairStage:
    """A named step of the fallback chain.

    ``repairs`` are applied in order to the text produced by the previous
    stage. ``close_truncated`` enables truncation recovery for the stage.
    """

    name: str
    repairs: Tuple[Repair, ...] = ()
    close_truncated: bool = True


def _split_strings(text: str) -> List[Tuple[bool, str]]:
    """Split ``text`` into ``(is_string_literal, segment)`` pairs."""

    segments: List[Tuple[bool, str]] = []
    buffer: List[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            buffer.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                segments.append((True, "".join(buffer)))
                buffer = []
                in_string = False
        elif char == '"':
            if buffer:
                segments.append((False, "".join(buffer)))
            buffer = [char]
            in_string = True
        else:
            buffer.append(char)
    if buffer:
        segments.append((in_string, "".join(buffer)))
    return segments


def _map_outside_strings(text: str, repair: Repair) -> str:
    return "".join(segment if is_string else repair(segment) for is_string, segment in _split_strings(text))


def _format_number(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


# ---------------------------------------------------------------------------
# Individual repairs
# ---------------------------------------------------------------------------


def strip_code_fences(text: str) -> str:
    """Return the first fenced block, or the text with dangling fences removed."""

    match = _CODE_BLOCK_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return _OPEN_FENCE_PATTERN.sub("", text).replace("```", "").strip()


def _json_spans(text: str) -> List[str]:
    """Top-level bracketed spans of ``text``, in order.

    Each span ends at the bracket that balances its opening bracket. A span
    that never balances (truncation) runs to the end of the text and is last.
    """

    spans: List[str] = []
    position = 0
    while True:
        starts = [idx for idx in (text.find("{", position), text.find("[", position)) if idx != -1]
        if not starts:
            return spans
        start = min(starts)
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            char = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    spans.append(text[start : idx + 1])
                    position = idx + 1
                    break
        else:
            spans.append(text[start:].strip())
            return spans


def isolate_json_span(text: str) -> str:
    """Keep the JSON object or array, dropping prose around it.

    The first span that parses wins, so bracketed prose such as ``{is}``
    before the payload is skipped. When no span parses as-is, the longest one
    is kept for the later repairs; an unbalanced (truncated) tail usually is.
    """

    spans = _json_spans(text)
    if not spans:
        return text.strip()
    for span in spans:
        try:
            json.loads(span)
        except json.JSONDecodeError:
            continue
        return span
    return max(spans, key=len)


def replace_smart_quotes(text: str) -> str:
    return text.translate(_SMART_QUOTES)


def convert_single_quotes(text: str) -> str:
    """Turn ``'key':`` and ``: 'value'`` into double-quoted JSON strings."""

    def _repair(segment: str) -> str:
        segment = _SINGLE_QUOTED_KEY.sub(lambda m: f"{m.group(1)}{json.dumps(m.group(2))}:", segment)
        return _SINGLE_QUOTED_VALUE.sub(lambda m: f"{m.group(1)}{json.dumps(m.group(2))}", segment)

    return _map_outside_strings(text, _repair)


def escape_control_characters(text: str) -> str:
    """Escape raw control characters that appear inside string literals."""

    def _escape(segment: str) -> str:
        return "".join(
            _CONTROL_ESCAPES.get(char, f"\\u{ord(char):04x}") if ord(char) < 0x20 else char
            for char in segment
        )

    return "".join(_escape(segment) if is_string else segment for is_string, segment in _split_strings(text))


def remove_control_characters(text: str) -> str:
    return _CONTROL_CHARS.sub("", text)


def strip_currency_symbols(text: str) -> str:
    """``"price": €45`` / ``"price": $1,200`` become plain numbers."""

    return _CURRENCY_NUMBER.sub(lambda m: f"{m.group(1)}{m.group(2).replace(',', '')}", text)


def collapse_numeric_ranges(text: str) -> str:
    """Replace ``"35-40"`` (quoted or bare) value ranges with their mean."""

    def _mean(match: re.Match) -> str:
        low, high = float(match.group(2)), float(match.group(3))
        if high < low:
            return match.group(0)
        return f"{match.group(1)}{_format_number((low + high) / 2)}"

    return _BARE_RANGE.sub(_mean, _QUOTED_RANGE.sub(_mean, text))


def quote_unquoted_keys(text: str) -> str:
    return _map_outside_strings(text, lambda segment: _UNQUOTED_KEY.sub(r'\1"\2":', segment))


def insert_missing_commas(text: str) -> str:
    """``} {`` and ``] [`` between siblings get the comma the model forgot."""

    return _map_outside_strings(text, lambda segment: _MISSING_OBJECT_COMMA.sub(r"\1,\2\3", segment))


def collapse_duplicate_commas(text: str) -> str:
    def _repair(segment: str) -> str:
        previous = None
        while previous != segment:
            previous = segment
            segment = _DUPLICATE_COMMA.sub(",", segment)
        return _LEADING_COMMA.sub(r"\1", segment)

    return _map_outside_strings(text, _repair)


def strip_trailing_commas(text: str) -> str:
    return _map_outside_strings(text, lambda segment: _TRAILING_COMMA.sub(r"\1", segment))


def strip_non_printable(text: str) -> str:
    return _NON_PRINTABLE.sub(" ", text)


def _only_arrays_below_root(stack: List[str]) -> bool:
    return all(bracket == "]" for bracket in stack[1:])


def close_truncated(text: str) -> Optional[str]:
    """Close a truncated document after its last complete sibling.

    Walks the text tracking open brackets outside strings and remembers the
    last position where the document could be cut: right after a nested
    value closes, or right before a separating comma. A cut is only usable
    while every container below the root is an array, so a half-written
    object is dropped whole instead of being closed with missing members.
    Returns ``None`` when the text is already balanced or has no usable cut
    point.
    """

    stack: List[str] = []
    in_string = False
    escaped = False
    cut: Optional[Tuple[int, Tuple[str, ...]]] = None
    for idx, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]":
            if not stack:
                return None
            stack.pop()
            if not stack:
                return None
            if _only_arrays_below_root(stack):
                cut = (idx + 1, tuple(stack))
        elif char == "," and stack and _only_arrays_below_root(stack):
            cut = (idx, tuple(stack))
    if not stack or cut is None:
        return None
    position, open_brackets = cut
    head = text[:position].rstrip().rstrip(",")
    return head + "".join(reversed(open_brackets))


DEFAULT_STAGES: Tuple[RepairStage, ...] = (
    RepairStage("direct", close_truncated=False),
    RepairStage("isolate", (strip_code_fences, isolate_json_span)),
    RepairStage(
        "normalize",
        (
            replace_smart_quotes,
            convert_single_quotes,
            escape_control_characters,
            remove_control_characters,
            strip_currency_symbols,
            collapse_numeric_ranges,
            quote_unquoted_keys,
            insert_missing_commas,
            collapse_duplicate_commas,
            strip_trailing_commas,
        ),
    ),
    RepairStage(
        "aggressive",
        (
            strip_non_printable,
            quote_unquoted_keys,
            collapse_duplicate_commas,
            strip_trailing_commas,
        ),
    ),
)


def _error_position(exc: Exception) -> Optional[int]:
    position = getattr(exc, "pos", None)
    if isinstance(position, int):
        return position
    match = _POSITION_PATTERN.search(str(exc))
    return int(match.group(1)) if match else None


class JsonExtractor:
    """Runs the repair stages in order and stops at the first successful parse."""

    def __init__(self, stages: Sequence[RepairStage] = DEFAULT_STAGES) -> None:
        if not stages:
            raise ValueError("JsonExtractor requires at least one stage")
        self.stages = tuple(stages)

    def extract(self, content: Optional[str], *, label: str = "payload") -> Union[Any, ParseFailure]:
        """Return the parsed value or a :class:`ParseFailure`."""

        if content is None or not content.strip():
            return ParseFailure(
                content=content or "",
                stage=self.stages[0].name,
                message="Empty content",
            )

        text = content
        last_error: Optional[json.JSONDecodeError] = None
        for stage in self.stages:
            for repair in stage.repairs:
                text = repair(text)
            try:
                value = json.loads(text)
            except json.JSONDecodeError as exc:
                last_error = exc
                logger.debug("[%s] stage '%s' failed: %s", label, stage.name, exc)
            else:
                if stage.name != self.stages[0].name:
                    logger.info("[%s] recovered JSON at stage '%s'", label, stage.name)
                return value

            if stage.close_truncated:
                closed = close_truncated(text)
                if closed is not None:
                    try:
                        value = json.loads(closed)
                    except json.JSONDecodeError as exc:
                        logger.debug("[%s] truncation repair at stage '%s' failed: %s", label, stage.name, exc)
                    else:
                        logger.warning("[%s] recovered truncated JSON at stage '%s'", label, stage.name)
                        return value

        failed_stage = self.stages[-1].name
        logger.warning("[%s] could not recover JSON after stage '%s': %s", label, failed_stage, last_error)
        return ParseFailure(
            content=content,
            stage=failed_stage,
            position=_error_position(last_error) if last_error else None,
            message=str(last_error) if last_error else "",
        )


_DEFAULT_EXTRACTOR = JsonExtractor()


def extract_json(content: Optional[str], *, label: str = "payload") -> Union[Any, ParseFailure]:
    """Module-level shortcut around a default :class:`JsonExtractor`."""

    return _DEFAULT_EXTRACTOR.extract(content, label=label)


def is_failure(result: Any) -> bool:
    return isinstance(result, ParseFailure)
