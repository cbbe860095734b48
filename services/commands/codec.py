"""Find, repair, and parse the JSON directives embedded in model replies.

The completion service answers in natural language and appends directives
such as `{"command": "SET_QUANTITY", "quantity": 3}`. Models are sloppy with
JSON, so fragments are parsed leniently: unquoted keys, single-quoted strings
and trailing commas are repaired before giving up on a fragment.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from models.command_models import TERMINAL_KINDS, Command, CommandKind

LOGGER = logging.getLogger(__name__)

DISCRIMINATOR_KEYS = ("command", "kind", "type", "action")
MAX_NAME_DISTANCE = 1
MIN_FUZZY_LENGTH = 6

_UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][\w\-]*)\s*:")
_SINGLE_QUOTED = re.compile(r"'([^'\"\\]*)'")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[\s_\-.]+")

# Wire names the prompts and older model outputs use for the same directives.
ALIASES: Dict[str, CommandKind] = {
    "list-all-services": CommandKind.LIST_SERVICES,
    "list-service": CommandKind.LIST_SERVICES,
    "validate-file": CommandKind.VALIDATE_FILE_RESULT,
    "result-analysis": CommandKind.VALIDATE_FILE_RESULT,
    "file-validation": CommandKind.VALIDATE_FILE_RESULT,
    "set-observation": CommandKind.SET_OBSERVATIONS,
    "set-finish": CommandKind.SET_FINISHES,
    "confirmar-pedido": CommandKind.CONFIRM_ORDER,
    "create-order": CommandKind.CONFIRM_ORDER,
    "solicitud-humano": CommandKind.REQUEST_HUMAN,
    "human-request": CommandKind.REQUEST_HUMAN,
    "advertencia-mal-uso-detectado": CommandKind.REPORT_ABUSE,
    "abuse-detected": CommandKind.REPORT_ABUSE,
    "info-adicional": CommandKind.ADDITIONAL_INFO,
}
_KNOWN_NAMES: Dict[str, CommandKind] = {
    **{kind.value: kind for kind in CommandKind if kind is not CommandKind.UNKNOWN},
    **ALIASES,
}
# Terminal kinds finalize or hand off the conversation and only match exactly.
_FUZZY_NAMES: Dict[str, CommandKind] = {
    name: kind for name, kind in _KNOWN_NAMES.items() if kind not in TERMINAL_KINDS
}


def _canonical(name: str) -> str:
    spaced = _CAMEL_BOUNDARY.sub("-", name.strip())
    return _SEPARATORS.sub("-", spaced).strip("-").lower()


def _verb(canonical: str) -> str:
    return canonical.split("-", 1)[0]


def _fuzzy_match(canonical: str) -> Optional[str]:
    """Closest non-terminal name sharing the same leading verb, within one edit."""
    if len(canonical) < MIN_FUZZY_LENGTH:
        return None
    verb = _verb(canonical)
    candidates = [name for name in _FUZZY_NAMES if _verb(name) == verb]
    if not candidates:
        return None
    match = process.extractOne(
        canonical,
        candidates,
        scorer=Levenshtein.distance,
        score_cutoff=MAX_NAME_DISTANCE,
    )
    return match[0] if match is not None else None


def normalize_kind(name: Any) -> CommandKind:
    """Map a wire name (`SET_MEASURES`, `setMeasures`, `set measures`...) to a kind."""
    if not isinstance(name, str) or not name.strip():
        return CommandKind.UNKNOWN
    canonical = _canonical(name)
    kind = _KNOWN_NAMES.get(canonical)
    if kind is not None:
        return kind

    matched = _fuzzy_match(canonical)
    if matched is None:
        LOGGER.warning("Unrecognized command name %r", name)
        return CommandKind.UNKNOWN
    LOGGER.info("Command name %r matched to %s", name, matched)
    return _FUZZY_NAMES[matched]


def find_fragments(text: str) -> List[Tuple[int, int]]:
    """Return (start, end) spans of every top-level brace-delimited fragment.

    Braces inside double-quoted strings do not count; an unclosed fragment at
    the end of the text is ignored.
    """
    spans: List[Tuple[int, int]] = []
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, char in enumerate(text or ""):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                spans.append((start, index + 1))
    return spans


def _outside_strings(text: str, repair: Callable[[str], str]) -> str:
    """Apply `repair` to the text between double-quoted strings, leaving strings as-is."""
    pieces: List[str] = []
    segment_start = 0
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
                pieces.append(text[segment_start:index + 1])
                segment_start = index + 1
            continue
        if char == '"':
            pieces.append(repair(text[segment_start:index]))
            segment_start = index
            in_string = True
    tail = text[segment_start:]
    pieces.append(tail if in_string else repair(tail))
    return "".join(pieces)


def _repair_structure(segment: str) -> str:
    repaired = _UNQUOTED_KEY.sub(r'\1"\2":', segment)
    return _TRAILING_COMMA.sub(r"\1", repaired)


def sanitize_fragment(fragment: str) -> str:
    """Repair the JSON mistakes models commonly make.

    Repairs only touch text outside double-quoted strings, so values such as
    "hora: 10am" survive untouched.
    """
    repaired = _outside_strings(fragment, lambda segment: _SINGLE_QUOTED.sub(r'"\1"', segment))
    return _outside_strings(repaired, _repair_structure)


def parse_fragment(fragment: str) -> Optional[Dict[str, Any]]:
    for candidate in (fragment, sanitize_fragment(fragment)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        return None
    LOGGER.warning("Discarding unparseable command fragment: %s", fragment[:200])
    return None


def to_command(data: Dict[str, Any]) -> Optional[Command]:
    """Build a Command from a parsed fragment, or None if it names no directive."""
    for key in DISCRIMINATOR_KEYS:
        if key in data:
            raw_name = data[key]
            payload = {k: v for k, v in data.items() if k != key}
            return Command(kind=normalize_kind(raw_name), payload=payload, raw_name=str(raw_name))
    LOGGER.warning("JSON fragment without a command name: %s", data)
    return None


def extract_commands(text: str) -> List[Command]:
    """Parse every embedded directive in order of appearance."""
    commands: List[Command] = []
    for start, end in find_fragments(text):
        data = parse_fragment(text[start:end])
        if data is None:
            continue
        command = to_command(data)
        if command is not None:
            commands.append(command)
    return commands


def strip_commands(text: str) -> str:
    """Remove every brace-delimited fragment and tidy the remaining prose."""
    if not text:
        return ""
    pieces: List[str] = []
    cursor = 0
    for start, end in find_fragments(text):
        pieces.append(text[cursor:start])
        cursor = end
    pieces.append(text[cursor:])
    cleaned = "".join(pieces)
    cleaned = re.sub(r"```(?:json)?\s*```", "", cleaned)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()
