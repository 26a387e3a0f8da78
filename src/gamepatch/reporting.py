"""Structured reporting of install and uninstall state transitions."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

__all__ = ["EventReporter", "RecordingReporter", "TELEMETRY_LOGGER"]

TELEMETRY_LOGGER = logging.getLogger("gamepatch.telemetry")


def _serialise_event_value(value: Any) -> Any:
    """Convert event payload values into JSON-friendly representations."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (list, tuple, set)):
        return [_serialise_event_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialise_event_value(child) for key, child in value.items()}
    return str(value)


class EventReporter:
    """Emit one compact JSON line per event on the telemetry logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or TELEMETRY_LOGGER

    def emit(self, event: str, **fields: Any) -> None:
        payload: dict[str, Any] = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat()}
        for key, value in fields.items():
            payload[key] = _serialise_event_value(value)
        try:
            message = json.dumps(payload, separators=(",", ":"), ensure_ascii=True)
        except (TypeError, ValueError):
            fallback = {key: _serialise_event_value(value) for key, value in payload.items()}
            message = json.dumps(fallback, separators=(",", ":"), ensure_ascii=True)
        self.logger.info(message)


class RecordingReporter(EventReporter):
    """Reporter that also keeps every event in memory."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        super().__init__(logger)
        self.events: list[dict[str, Any]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append({"event": event, **{key: _serialise_event_value(value) for key, value in fields.items()}})
        super().emit(event, **fields)

    def names(self) -> list[str]:
        return [entry["event"] for entry in self.events]
