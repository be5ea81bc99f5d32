"""Утилиты для временных меток в исходящих сообщениях."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp() -> str:
    """ISO-8601 в UTC с миллисекундами и суффиксом `Z`."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = ["utc_timestamp"]
