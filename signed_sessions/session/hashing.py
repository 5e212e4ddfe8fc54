"""Content fingerprints for session change detection."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping


def content_hash(content: Mapping[str, Any]) -> str:
    """SHA-1 of the canonical JSON form of ``content``.

    Sessions pass their content mapping only, so cookie attributes and the
    identifier never affect the result.
    """
    # Round-trip first so keys become strings exactly as the stores see them.
    normalized = json.loads(json.dumps(dict(content), default=str))
    payload = json.dumps(normalized, sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()
