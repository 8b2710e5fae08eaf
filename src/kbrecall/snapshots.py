"""Whole-file JSON snapshots: atomic writes and tolerant reads."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def write_json_atomic(path: str | Path, payload: Any) -> None:
    """Write JSON to a temp file beside ``path`` and swap it into place."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(path.parent)) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(json.dumps(payload, indent=2))
            tmp.flush()
        except BaseException:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    os.replace(tmp_path, path)


def read_json(path: str | Path, default: Any = None) -> Any:
    """Load a JSON snapshot, or ``default`` when it is missing or corrupt."""
    path = Path(path)
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable snapshot {path}: {e}")
        return default
