"""Error signatures.

Two log records that describe the same defect must hash to the same signature,
even when they differ in timestamps, request ids, memory addresses, UUIDs or
source line numbers.
"""

from __future__ import annotations

import hashlib
import re

SIGNATURE_DELIMITER = "|"

# Applied in order; each rule is total over its input.
_NORMALIZE_RULES: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(
            r"\b\d{4}-\d{2}-\d{2}"
            r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?"
        ),
        "[TIMESTAMP]",
    ),
    (
        re.compile(
            r"\b\d{1,4}/\d{1,2}/\d{2,4}(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?)?"
        ),
        "[TIMESTAMP]",
    ),
    (
        re.compile(
            r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b",
            re.IGNORECASE,
        ),
        "[UUID]",
    ),
    (
        re.compile(r"\b((?:request|trace|correlation)[_-]?id)\s*[=:]\s*[^\s,;&)\]]+", re.IGNORECASE),
        r"\1=[ID]",
    ),
    (re.compile(r"\bobject at 0x[0-9a-f]+", re.IGNORECASE), "object at [ADDR]"),
    (re.compile(r"\b0x[0-9a-f]+\b", re.IGNORECASE), "[ADDR]"),
    (re.compile(r"\b(line)\s+\d+", re.IGNORECASE), r"\1 [N]"),
]


def normalize(line: str | None) -> str:
    """Replace volatile tokens in a traceback line with stable placeholders."""
    if not line:
        return ""
    result = line
    for pattern, replacement in _NORMALIZE_RULES:
        result = pattern.sub(replacement, result)
    return result.strip()


def sign(
    severity: str | None,
    error_type: str | None,
    first_traceback_line: str | None,
    affected_function: str | None,
) -> str:
    """Compute the SHA-256 signature (lowercase hex) of an error identity."""
    raw = SIGNATURE_DELIMITER.join(
        [
            severity or "",
            error_type or "",
            normalize(first_traceback_line),
            affected_function or "",
        ]
    )
    return hashlib.sha256(raw.encode("utf-8", errors="ignore")).hexdigest()
