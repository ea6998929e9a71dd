"""Free-text postal address canonicalisation."""

from __future__ import annotations

import re
from typing import Iterable

_PUNCTUATION_RE = re.compile(r"[.,'\"#;:()]")
_WHITESPACE_RE = re.compile(r"\s+")
# Applied in order after punctuation is stripped; every replacement is a
# fixed point of the whole table so normalisation is idempotent.
_SYNONYMS = (
    (re.compile(r"\bAPARTMENT\b"), "FLAT"),
    (re.compile(r"\bAPT\b"), "FLAT"),
    (re.compile(r"\bUNIT\b"), "FLAT"),
    (re.compile(r"\bFLOOR\b"), ""),
    (re.compile(r"\bGROUND\b"), "GND"),
)


def normalise_address(raw: str | None) -> str:
    if not raw:
        return ""
    text = raw.upper()
    text = _PUNCTUATION_RE.sub("", text)
    for pattern, replacement in _SYNONYMS:
        text = pattern.sub(replacement, text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def join_address_parts(parts: Iterable[str | None]) -> str:
    return " ".join(part.strip() for part in parts if part and part.strip())
