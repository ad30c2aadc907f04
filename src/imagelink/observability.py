"""Structured logging and observability helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TextIO


@dataclass(slots=True)
class StructuredLogger:
    """Collects pipeline records; echoes messages to *stream* when set."""

    records: list[dict[str, Any]] = field(default_factory=list)
    stream: TextIO | None = None

    def log(
        self,
        *,
        operation: str,
        stage: str | None,
        artifact: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "stage": stage,
            "artifact": artifact,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        if self.stream is not None:
            print(message, file=self.stream)

    def records_for_stage(self, stage: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("stage") == stage]


def format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            if unit == "B":
                return f"{size} B"
            return f"{value:.3f} {unit}"
        value /= 1024
    return f"{size} B"
