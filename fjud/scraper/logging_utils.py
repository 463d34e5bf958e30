from __future__ import annotations

from typing import Any

from .utils import log_line


def _crawl_event(label: str, **fields: Any) -> None:
    """Emit a structured crawler log line such as ``[FJUD][POOL] kind='create'``.

    Fields are rendered with ``repr`` in sorted key order so lines stay
    grep-friendly across runs.
    """

    try:
        payload = ", ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        log_line(f"[FJUD][{label.upper()}] {payload}")
    except Exception:
        # Logging must never break a crawl.
        return


__all__ = ["_crawl_event"]
