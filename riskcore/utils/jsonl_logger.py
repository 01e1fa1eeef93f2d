"""Simple JSONL file logger utility."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional


class JsonlLogger:
    """Thread-safe JSONL logger for append-only training records."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()

    def log(self, payload: Dict[str, Any], ts: Optional[datetime] = None) -> None:
        record = {
            "timestamp": (ts or datetime.now(timezone.utc)).isoformat(),
            **payload,
        }
        line = json.dumps(record, default=str)
        with self._lock:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read(self) -> List[Dict[str, Any]]:
        """Read back every record (oldest first)."""
        if not self._path.exists():
            return []
        with self._lock:
            with self._path.open("r", encoding="utf-8") as f:
                return [json.loads(line) for line in f if line.strip()]

    @property
    def path(self) -> Path:
        return self._path
