from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Protocol


class EventLogger(Protocol):
    def log(self, event_type: str, **payload: Any) -> None:
        ...


class NoopEventLogger:
    def log(self, event_type: str, **payload: Any) -> None:
        del event_type, payload


class MemoryEventLogger:
    """Keeps events in a list; handy for tests and for inspecting one run."""

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []

    def log(self, event_type: str, **payload: Any) -> None:
        self.records.append({"event": event_type, **payload})

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [r for r in self.records if r["event"] == event_type]


class JsonlEventLogger:
    def __init__(self, path: str):
        log_path = Path(path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._fp = log_path.open("w", encoding="utf-8")

    def log(self, event_type: str, **payload: Any) -> None:
        record = {"event": event_type, **payload}
        self._fp.write(json.dumps(record, sort_keys=True) + "\n")
        self._fp.flush()

    def close(self) -> None:
        self._fp.close()

    def __enter__(self) -> "JsonlEventLogger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
