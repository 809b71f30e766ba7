"""Permissive JSON handling for oracle replies.

The oracle is asked for JSON but regularly returns it wrapped in markdown
fences, with Python ``None`` literals, trailing commas, or cut off in the
middle of an array. Everything here degrades to an empty result instead of
raising: a malformed reply costs us entries, never the document.
"""

from __future__ import annotations

import json
import re

from pageindex.errors import MalformedOracleOutput
from pageindex.log import log
from pageindex.models import APPEAR_NO, APPEAR_UNKNOWN, APPEAR_YES, Entry

_TRAILING_COMMA_ARRAY = re.compile(r",\s*]")
_TRAILING_COMMA_OBJECT = re.compile(r",\s*}")
_NON_DIGITS = re.compile(r"[^0-9]")


# ---------------------------------------------------------------------------
# Text cleanup
# ---------------------------------------------------------------------------

def get_json_content(response: str | None) -> str:
    """Strip a ```json ... ``` wrapper, if any."""
    if response is None:
        return "{}"
    start = response.find("```json")
    if start != -1:
        response = response[start + 7:]
    elif response.lstrip().startswith("```"):
        response = response.lstrip()[3:]
    end = response.rfind("```")
    if end != -1:
        response = response[:end]
    return response.strip()


def _loads(text: str):
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedOracleOutput(str(e)) from e


def _clean(response: str) -> str:
    cleaned = get_json_content(response).replace("None", "null")
    return " ".join(cleaned.split())


def _loads_lenient(response: str):
    """Parse after cleanup, retrying once without trailing commas."""
    cleaned = _clean(response)
    try:
        return _loads(cleaned)
    except MalformedOracleOutput:
        pass
    cleaned = _TRAILING_COMMA_ARRAY.sub("]", cleaned)
    cleaned = _TRAILING_COMMA_OBJECT.sub("}", cleaned)
    return _loads(cleaned)


def extract_json(response: str | None):
    """Parse an oracle reply into a dict or list. Returns {} when hopeless."""
    if not response or not response.strip():
        log("Empty oracle response where JSON was expected", "DEBUG")
        return {}
    try:
        return _loads_lenient(response)
    except MalformedOracleOutput as e:
        log(f"Unparseable oracle JSON: {e}", "DEBUG", response=response[:200])
        return {}


# ---------------------------------------------------------------------------
# Truncated output repair
# ---------------------------------------------------------------------------

def truncate_to_last_complete_object(text: str) -> str:
    """Cut a partial JSON buffer just after its last closing brace.

    One extra character is kept so a separating comma survives; the
    continuation then appends the next element directly.
    """
    last = text.rfind("}")
    if last != -1 and last < len(text) - 1:
        return text[:last + 2]
    return text


def close_open_brackets(text: str) -> str:
    """Append the missing ``]`` then ``}`` so the bracket counts balance."""
    text = text.strip()
    text += "]" * max(0, text.count("[") - text.count("]"))
    text += "}" * max(0, text.count("{") - text.count("}"))
    return text


def merge_json_structures(existing: str, addition: str, key: str = "table_of_contents") -> str:
    """Append a continuation to the accumulated buffer.

    When both sides parse as objects holding ``key`` arrays, the arrays are
    concatenated. Otherwise the raw text is glued together and left for
    the final bracket repair.
    """
    try:
        left = _loads_lenient(close_open_brackets(existing))
        right = _loads_lenient(close_open_brackets(addition))
    except MalformedOracleOutput as e:
        log(f"Continuation merge fell back to concatenation: {e}", "DEBUG")
        return existing + addition
    if (isinstance(left, dict) and isinstance(right, dict)
            and isinstance(left.get(key), list) and isinstance(right.get(key), list)):
        left[key].extend(right[key])
        return json.dumps(left, ensure_ascii=False)
    return existing + addition


def parse_repaired(text: str):
    """Bracket-balance a best-effort buffer and parse it; {} on failure."""
    return extract_json(close_open_brackets(get_json_content(text)))


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def parse_physical_index(value) -> int | None:
    """``<physical_index_5>``, ``physical_index_5``, ``"5"`` and ``5`` all give 5."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).replace("<", "").replace(">", "").replace("/", "")
    text = text.replace("physical_index_", "").strip()
    try:
        return int(text)
    except ValueError:
        return None


def convert_page_to_int(value) -> int | None:
    """Nominal TOC page to int. Roman numerals and blanks give None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else None


def _appear_value(raw) -> str:
    if isinstance(raw, str):
        v = raw.strip().lower()
        if v in (APPEAR_YES, APPEAR_NO):
            return v
    return APPEAR_UNKNOWN


def entries_from_json(data) -> list[Entry]:
    """Turn a parsed oracle reply into entries, skipping records without a title.

    Accepts a bare list or an object wrapping it under ``table_of_contents``
    or ``items``.
    """
    if isinstance(data, dict):
        data = data.get("table_of_contents", data.get("items", []))
    if not isinstance(data, list):
        return []
    entries = []
    for item in data:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        if title is None or not str(title).strip():
            continue
        structure = item.get("structure")
        entries.append(Entry(
            title=str(title),
            structure=str(structure) if structure is not None else None,
            page=convert_page_to_int(item.get("page")),
            physical_index=parse_physical_index(item.get("physical_index")),
            appear_start=_appear_value(item.get("appear_start")),
        ))
    return entries


def entries_to_json(entries: list[Entry], include_page: bool = True) -> str:
    return json.dumps([e.to_prompt_dict(include_page) for e in entries],
                      ensure_ascii=False, indent=2)


def yes_answer(data, key: str) -> bool:
    """True when ``data[key]`` is a case-insensitive "yes"."""
    if not isinstance(data, dict):
        return False
    value = data.get(key)
    return isinstance(value, str) and value.strip().lower() == "yes"
