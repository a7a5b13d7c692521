"""
Log formatters.

JsonlFormatter writes one JSON object per line for the log file:
    {"ts":"2026-01-15T14:30:05+03:00","level":2,"tag":"INFO","message":"cache_hit",
     "request_id":"abc123","extra":{"key":"5a2b9c01"}}

ColoredConsoleFormatter writes a readable line for the terminal:
    14:30:05 [ INFO  ] (abc123) cache_hit key=5a2b9c01 0.012s

Timing is green below 100ms, yellow below 1s and red above. Cache and
upload outcomes are colored by result so hits and failures stand out.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color


def _paint(text: str, color: str) -> str:
    # Read the flag at format time so it can change after import
    if not colors.USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """Format log records as JSON Lines."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records for the console.

    Output Format:
        HH:MM:SS [ TAG   ] (rid) message key=value 0.123s
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [_paint(ts, Colors.DIM), _paint(f"[{tag:^7}]", get_tag_color(tag))]
        if rid != "-":
            parts.append(_paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_paint(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_paint(f"{k}={v}", self._field_color(k, v)))

        return " ".join(parts)

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        """Pick a color for a structured field based on what it reports."""
        if key in ("cache", "source"):
            if value in ("hit", "cache"):
                return Colors.GREEN
            if value in ("miss", "synthesis"):
                return Colors.YELLOW
        if key == "status" and isinstance(value, int):
            if value < 300:
                return Colors.GREEN
            if value < 500:
                return Colors.YELLOW
            return Colors.RED
        if key in ("error", "error_type"):
            return Colors.RED
        if key == "bytes" and isinstance(value, int):
            return Colors.CYAN if value > 0 else Colors.YELLOW
        return Colors.DIM
