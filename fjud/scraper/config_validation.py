from __future__ import annotations

from dataclasses import replace
from typing import Literal

from .config import CrawlOptions
from .logging_utils import _crawl_event
from .utils import log_line

Entrypoint = Literal["cli", "replay", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _crawl_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_options(options: CrawlOptions, entrypoint: Entrypoint) -> CrawlOptions:
    """Validate crawl options for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments are logged and applied to the returned copy.
    """

    if options.max_sessions < 1:
        _raise_config_error(
            "max_sessions must be at least 1.",
            entrypoint=entrypoint,
            error="max_sessions_invalid",
        )

    if options.link_read_timeout_ms <= 0:
        _raise_config_error(
            "link_read_timeout_ms must be greater than zero.",
            entrypoint=entrypoint,
            error="invalid_timeout",
        )

    timeout_fields = [
        ("nav_timeout_seconds", options.nav_timeout_seconds),
        ("soft_idle_timeout_seconds", options.soft_idle_timeout_seconds),
        ("eviction_interval_seconds", options.eviction_interval_seconds),
        ("export_timeout_seconds", options.export_timeout_seconds),
    ]
    if options.acquire_timeout_seconds is not None:
        timeout_fields.append(("acquire_timeout_seconds", options.acquire_timeout_seconds))

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    if options.max_waiting_clients < 0:
        _crawl_event(
            "config",
            context="runtime_validation",
            kind="config_adjustment",
            field="max_waiting_clients",
            value=options.max_waiting_clients,
            adjusted=0,
            entrypoint=entrypoint,
        )
        log_line("[CONFIG] max_waiting_clients < 0; clamping to 0.")
        options = replace(options, max_waiting_clients=0)

    if options.export_retries < 1:
        _crawl_event(
            "config",
            context="runtime_validation",
            kind="config_adjustment",
            field="export_retries",
            value=options.export_retries,
            adjusted=1,
            entrypoint=entrypoint,
        )
        log_line("[CONFIG] export_retries < 1; clamping to 1.")
        options = replace(options, export_retries=1)

    _crawl_event(
        "config",
        kind="validated",
        entrypoint=entrypoint,
        max_sessions=options.max_sessions,
        nav_timeout_seconds=options.nav_timeout_seconds,
        export_pdf=options.export_pdf,
    )
    return options


__all__ = ["validate_options", "Entrypoint"]
