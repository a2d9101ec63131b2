"""Flat JSONL file helpers used when no database is configured."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def read_jsonl_file(path: str | Path) -> list[dict[str, Any]]:
    """Read every record from a JSONL file.

    A missing file reads as empty. Blank lines are skipped; a malformed line
    is logged and skipped so one bad record does not hide the rest.
    """
    path = Path(path)
    if not path.exists():
        return []

    records: list[dict[str, Any]] = []
    with open(path, encoding="utf-8") as f:
        for line_num, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping malformed line {line_num} in {path}: {e}")
    return records


def write_jsonl_file(path: str | Path, records: list[dict[str, Any]]) -> None:
    """Rewrite a JSONL file atomically (temp file in the same dir + rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record))
                f.write("\n")
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
