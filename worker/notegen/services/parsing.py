"""Best-effort parsing of free-form model output.

Every function here is pure and never raises on malformed input; each one
walks a fixed list of fallback tiers and reports failure as ``None`` or an
empty value.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Tuple

_HEADER_RE = re.compile(r"^#{1,6}\s+\S", re.MULTILINE)
_SUMMARY_HEADING_RE = re.compile(r"^\s*#{1,6}\s*(summary|overview)\s*:?\s*\n", re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r"^\s*(\d+)")
_CONFIDENCES = ("high", "medium", "low")


def split_summary(text: str, fallback_chars: int = 200) -> Tuple[str, str]:
    """Split model markdown into ``(summary, notes_body)``.

    1. Text before the first section header (a leading "## Summary" heading
       counts as part of it) becomes the summary; the rest is the body.
    2. Otherwise the first printable non-header line, cut to ``fallback_chars``, is the
       summary and the whole text stays the body.
    """
    text = (text or "").strip()
    if not text:
        return "", ""

    search_from = 0
    heading = _SUMMARY_HEADING_RE.match(text)
    if heading:
        search_from = heading.end()
    match = _HEADER_RE.search(text, search_from)
    if match and match.start() > 0:
        lead = text[: match.start()]
        summary = _SUMMARY_HEADING_RE.sub("", lead, count=1).strip()
        if summary:
            return summary, text[match.start():].strip()

    for line in text.splitlines():
        if _HEADER_RE.match(line.strip()):
            continue
        line = line.strip().lstrip("-*•").strip()
        if line and any(ch.isprintable() and not ch.isspace() for ch in line):
            return line[:fallback_chars].strip(), text
    return text[:fallback_chars].strip(), text


def try_parse_json(s: str) -> Optional[Dict[str, Any]]:
    """Attempt to extract and parse a JSON object from the model output.
    Tries whole string first, then the first {...} block.
    """
    s = (s or "").strip()
    try:
        obj = json.loads(s)
        if isinstance(obj, dict):
            return obj
    except ValueError:
        pass
    start = s.find("{")
    end = s.find("}", start + 1) if start != -1 else -1
    while start != -1 and end != -1:
        try:
            obj = json.loads(s[start : end + 1])
            if isinstance(obj, dict):
                return obj
        except ValueError:
            pass
        # Nested objects: widen to the next closing brace
        end = s.find("}", end + 1)
    return None


def _as_index(value: Any, count: int) -> Optional[int]:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if 1 <= number <= count:
        return number - 1
    return None


def parse_choice(text: str, ids: Tuple[str, ...]) -> Optional[Tuple[int, str, str]]:
    """Read a ``(index, confidence, reason)`` choice out of ``text``.

    1. A JSON object with ``number`` (1-based) or an ``id``/``folderId``/
       ``templateId`` naming one of ``ids``.
    2. Only when no JSON object is present: a bare leading number, taken
       as medium confidence.
    3. Nothing usable: ``None``.
    """
    if not text or not ids:
        return None
    count = len(ids)
    obj = try_parse_json(text)
    if obj is not None:
        confidence = str(obj.get("confidence") or "medium").strip().lower()
        if confidence not in _CONFIDENCES:
            confidence = "medium"
        reason = str(obj.get("reason") or "").strip()
        index = _as_index(obj.get("number"), count)
        if index is None:
            for key in ("id", "folderId", "templateId", "folder_id", "template_id"):
                value = obj.get(key)
                if isinstance(value, str) and value in ids:
                    index = ids.index(value)
                    break
        if index is not None:
            return index, confidence, reason
        # An object without a usable choice is a "no match", not a bare number
        return None

    match = _LEADING_NUMBER_RE.match(text)
    if match:
        index = _as_index(match.group(1), count)
        if index is not None:
            return index, "medium", ""
    return None
