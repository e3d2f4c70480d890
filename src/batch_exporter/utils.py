"""
Utility functions for the batch exporter.

Includes id/time helpers, lenient integer coercion and NDJSON reading.
"""

import gzip
import json
import math
import re
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# Value written when a numeric field cannot be parsed
INT_SENTINEL = -1


def generate_id() -> str:
    """Generate a UUID string used as a row deduplication token."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def coerce_int(value: Any, default: int = INT_SENTINEL) -> int:
    """
    Coerce a loosely-typed numeric value to int without raising.

    Numbers are truncated; strings are parsed by their leading integer
    ("42ms" -> 42); anything else, including booleans, NaN and infinities,
    yields ``default``.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, (str, bytes)):
        text = value.decode(errors="replace") if isinstance(value, bytes) else value
        m = _LEADING_INT.match(text)
        return int(m.group(1)) if m else default
    return default


def iter_ndjson(path: str) -> Iterator[Dict[str, Any]]:
    """Yield JSON objects from a file, a ``.gz`` file, or ``-`` for stdin."""
    if path == "-":
        stream = sys.stdin
        close = False
    elif path.endswith(".gz"):
        stream = gzip.open(path, "rt", encoding="utf-8")
        close = True
    else:
        stream = open(path, "r", encoding="utf-8")
        close = True
    try:
        for lineno, line in enumerate(stream, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({e.msg})") from e
    finally:
        if close:
            stream.close()
