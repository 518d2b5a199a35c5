"""
Amora — Strict parser for compatibility-oracle responses.

The oracle returns free text that is expected to embed a JSON array of score
objects.  Nothing is enforced server-side, so this module is the single
boundary where unreliable external data enters the system.  Every public
function returns a ``ParseResult`` and never raises.

Pipeline:
  1. Pull the generated text out of the ``generateContent`` envelope
  2. Prefer the body of a markdown code fence when one is present
  3. Decode the first complete JSON array of objects (truncated output fails)
  4. Normalise each object into an ``OracleScore``

Heterogeneous field names are accepted:
  id            user_id | userId | candidate_id | id
  score         score | compatibility_score | compatibilityScore
  percentage    match_percentage | matchPercentage   (mirrors score if absent)
  reasons       reasons (list) | reason (string)
"""

from __future__ import annotations

import json
import math
import re
import uuid
from dataclasses import dataclass, field
from typing import Any

_CODE_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_ID_KEYS = ("user_id", "userId", "candidate_id", "id")
_SCORE_KEYS = ("score", "compatibility_score", "compatibilityScore")
_PERCENTAGE_KEYS = ("match_percentage", "matchPercentage")

_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class OracleScore:
    candidate_id: uuid.UUID
    score: int
    match_percentage: int
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class ParseResult:
    """Either a non-empty tuple of scores or a failure reason."""

    items: tuple[OracleScore, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, items: list[OracleScore]) -> ParseResult:
        return cls(items=tuple(items))

    @classmethod
    def failure(cls, reason: str) -> ParseResult:
        return cls(error=reason)


# ── Public API ──────────────────────────────────────────────────────────────

def parse_generate_content(payload: Any) -> ParseResult:
    """Parse a decoded ``generateContent`` JSON body."""
    text = extract_text(payload)
    if text is None:
        return ParseResult.failure("response has no candidate text")
    return parse_score_text(text)


def extract_text(payload: Any) -> str | None:
    """Concatenate the text parts of the first candidate, if any."""
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(parts, list):
        return None
    texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    joined = "".join(texts)
    return joined if joined.strip() else None


def parse_score_text(text: str) -> ParseResult:
    """Find and normalise the embedded score array in ``text``."""
    if not text or not text.strip():
        return ParseResult.failure("empty response text")

    cleaned = text.strip()
    fence = _CODE_FENCE.search(cleaned)
    if fence:
        cleaned = fence.group(1).strip()

    array = _first_object_array(cleaned)
    if array is None:
        return ParseResult.failure("no complete JSON array of objects found")
    if not array:
        return ParseResult.failure("empty score array")

    items: list[OracleScore] = []
    for index, raw in enumerate(array):
        item = _normalise_item(raw)
        if item is None:
            return ParseResult.failure(f"malformed score object at index {index}")
        items.append(item)

    return ParseResult.success(items)


# ── Helpers ─────────────────────────────────────────────────────────────────

def _first_object_array(text: str) -> list | None:
    """Decode the first non-empty JSON list of dicts that starts at a ``[``.

    ``raw_decode`` requires a complete value, so a truncated array never
    decodes; trailing prose after the array is ignored.  Empty lists are
    skipped; ``[]`` is returned only when nothing better follows.
    """
    saw_empty = False
    start = text.find("[")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if value == []:
            saw_empty = True
        elif isinstance(value, list) and all(isinstance(v, dict) for v in value):
            return value
        start = text.find("[", start + 1)
    return [] if saw_empty else None


def _first_present(raw: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_percent(value: Any) -> int | None:
    """Coerce to an int clamped to [0, 100]; ``None`` if not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return max(0, min(100, int(round(value))))


def _normalise_item(raw: Any) -> OracleScore | None:
    if not isinstance(raw, dict):
        return None

    raw_id = _first_present(raw, _ID_KEYS)
    try:
        candidate_id = uuid.UUID(str(raw_id))
    except (ValueError, TypeError):
        return None

    score = _as_percent(_first_present(raw, _SCORE_KEYS))
    if score is None:
        return None

    raw_percentage = _first_present(raw, _PERCENTAGE_KEYS)
    percentage = score if raw_percentage is None else _as_percent(raw_percentage)
    if percentage is None:
        return None

    reasons_value = raw.get("reasons", raw.get("reason"))
    if isinstance(reasons_value, str):
        reasons = (reasons_value,) if reasons_value.strip() else ()
    elif isinstance(reasons_value, list):
        reasons = tuple(str(r) for r in reasons_value if str(r).strip())
    else:
        reasons = ()

    return OracleScore(
        candidate_id=candidate_id,
        score=score,
        match_percentage=percentage,
        reasons=reasons,
    )
