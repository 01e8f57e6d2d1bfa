from __future__ import annotations

import re

SHEET_NAME_MAX_LENGTH = 31
FORBIDDEN_SHEET_CHARS = r"\/?*[]:"

_FORBIDDEN_RE = re.compile(r"[\\/?*\[\]:]")
_WHITESPACE_RE = re.compile(r"\s+")


def _sanitize(raw: str) -> str:
    value = _FORBIDDEN_RE.sub("_", raw)
    value = _WHITESPACE_RE.sub("_", value)
    return value[:SHEET_NAME_MAX_LENGTH]


def encode_sheet_name(record_id: str, label: str | None = None) -> str:
    """Build a workbook sheet name from an ad id and its campaign title.

    ``<id>-<label>`` when the label is present and differs from the id,
    otherwise the id alone. Collisions between records are not resolved here.
    """

    if not record_id:
        raise ValueError("Sheet name requires a non-empty record id.")

    if label and label.strip() and label != record_id:
        base = f"{record_id}-{label}"
    else:
        base = record_id
    return _sanitize(base)
