"""
Atomic JSON writes.

Files are written to a temporary sibling, fsynced, then swapped into place
so readers never observe a partially written document.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def write_json_atomic(path: Path | str, payload: Any) -> None:
    target = Path(path)
    serialized = json.dumps(payload, indent=2, ensure_ascii=False)
    target.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        "w", dir=target.parent, delete=False, encoding="utf-8", suffix=".tmp"
    ) as tmp:
        tmp.write(serialized)
        tmp.flush()
        os.fsync(tmp.fileno())
        temp_path = Path(tmp.name)

    try:
        temp_path.replace(target)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
