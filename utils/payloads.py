"""
Decoding of loosely formatted JSON returned by the text-generation service.
"""

import json
from typing import Any


def parse_json_payload(raw: Any) -> Any:
    """
    Best-effort JSON decoding that tolerates code fences or surrounding prose.

    Already-decoded values (dicts, lists) pass through unchanged. Raises
    ValueError when no JSON object or array can be recovered.
    """
    if not isinstance(raw, (str, bytes)):
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    candidate = raw.strip()
    if candidate.startswith("```"):
        candidate = "\n".join(
            line for line in candidate.splitlines() if not line.strip().startswith("```")
        ).strip()
    if not candidate:
        raise ValueError("Response was empty.")

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("[", "]"), ("{", "}")):
        start = candidate.find(opener)
        end = candidate.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(candidate[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError("Response did not contain a JSON object or array.")
