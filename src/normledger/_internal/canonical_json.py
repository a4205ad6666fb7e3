"""Centralized JSON serialization for persisted artifacts.

Checkpoint bodies, the manifest, audit.json, metrics.json and norm summaries
are all written through artifact_dumps so two audit runs over identical
violations produce identical bytes.
"""

import json
from typing import Any


def artifact_dumps(obj: Any) -> str:
    """Serialize an artifact payload for writing to disk.

    Key order follows the model field order (already deterministic), indented
    with two spaces and terminated by a newline. Non-ASCII text is kept as
    UTF-8 rather than escaped.
    """
    return json.dumps(obj, indent=2, ensure_ascii=False) + "\n"
