"""Configuration constants for the FJUD ruling crawler."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


def _env_flag(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).strip().lower() not in {"0", "false", "no"}


def _parse_timeout_seconds(env_var: str, default: float, *, minimum: float = 1) -> float:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = float(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


PORTAL_ORIGIN: str = os.getenv("FJUD_PORTAL_ORIGIN", "https://law.judicial.gov.tw").rstrip("/")
SEARCH_URL: str = f"{PORTAL_ORIGIN}/FJUD/Default_AD.aspx"
# Frame holding the paginated result listing.
RESULT_FRAME_FRAGMENT: str = "qryresultlst.aspx"
# Listing links that can be resolved to a permanent document.
LISTING_LINK_FRAGMENT: str = "FJUD/data.aspx"
DOCUMENT_PAGE_FRAGMENT: str = "data.aspx"

# 最高法院
TARGET_COURT: str = os.getenv("FJUD_TARGET_COURT", "TPS").strip() or "TPS"
# Minguo year = Gregorian year - ERA_OFFSET
ERA_OFFSET: int = 1911

DOWNLOAD_DIR: Path = Path(os.getenv("FJUD_DOWNLOAD_DIR", "downloads"))
LOG_DIR: Path = Path(os.getenv("FJUD_LOG_DIR", "logs"))
LOG_FILE: Path = LOG_DIR / "latest.log"

# Session pool
MAX_SESSIONS: int = int(os.getenv("FJUD_MAX_SESSIONS", "8"))
MAX_WAITING_CLIENTS: int = int(os.getenv("FJUD_MAX_WAITING_CLIENTS", "600"))
SOFT_IDLE_TIMEOUT_SECONDS: float = _parse_timeout_seconds("FJUD_SOFT_IDLE_TIMEOUT_SECONDS", 600)
EVICTION_INTERVAL_SECONDS: float = _parse_timeout_seconds("FJUD_EVICTION_INTERVAL_SECONDS", 180)
# 0 disables the acquire deadline (waiters queue until served).
ACQUIRE_TIMEOUT_SECONDS: float = float(os.getenv("FJUD_ACQUIRE_TIMEOUT_SECONDS", "0") or 0)

# Browser
HEADLESS: bool = _env_flag("FJUD_HEADLESS", "1")
NAV_TIMEOUT_SECONDS: float = _parse_timeout_seconds("FJUD_NAV_TIMEOUT_SECONDS", 10)
# Hard deadline for reading the permanent link field, in milliseconds.
LINK_READ_TIMEOUT_MS: int = int(os.getenv("FJUD_LINK_READ_TIMEOUT_MS", "300"))
BLOCKED_RESOURCE_TYPES: Tuple[str, ...] = ("image", "stylesheet", "font")
BROWSER_ARGS: Tuple[str, ...] = (
    "--ignore-certificate-errors",
    "--no-sandbox",
    "--disable-dev-shm-usage",
)
UA: str = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Export PDF download
EXPORT_PDF_ENABLED: bool = _env_flag("FJUD_EXPORT_PDF", "1")
EXPORT_DOWNLOAD_TIMEOUT_S: float = _parse_timeout_seconds("FJUD_EXPORT_DOWNLOAD_TIMEOUT_S", 60)
EXPORT_DOWNLOAD_RETRIES: int = int(os.getenv("FJUD_EXPORT_DOWNLOAD_RETRIES", "3"))
# The portal serves an incomplete certificate chain; the browser ignores it too.
EXPORT_VERIFY_TLS: bool = _env_flag("FJUD_EXPORT_VERIFY_TLS", "0")


@dataclass(frozen=True)
class CrawlOptions:
    """Settings passed explicitly to the pool, pipeline and extractor."""

    search_url: str = SEARCH_URL
    portal_origin: str = PORTAL_ORIGIN
    target_court: str = TARGET_COURT
    era_offset: int = ERA_OFFSET
    max_sessions: int = MAX_SESSIONS
    max_waiting_clients: int = MAX_WAITING_CLIENTS
    soft_idle_timeout_seconds: float = SOFT_IDLE_TIMEOUT_SECONDS
    eviction_interval_seconds: float = EVICTION_INTERVAL_SECONDS
    acquire_timeout_seconds: Optional[float] = ACQUIRE_TIMEOUT_SECONDS or None
    nav_timeout_seconds: float = NAV_TIMEOUT_SECONDS
    link_read_timeout_ms: int = LINK_READ_TIMEOUT_MS
    headless: bool = HEADLESS
    blocked_resource_types: Tuple[str, ...] = BLOCKED_RESOURCE_TYPES
    result_frame_fragment: str = RESULT_FRAME_FRAGMENT
    listing_link_fragment: str = LISTING_LINK_FRAGMENT
    document_page_fragment: str = DOCUMENT_PAGE_FRAGMENT
    export_pdf: bool = EXPORT_PDF_ENABLED
    export_timeout_seconds: float = EXPORT_DOWNLOAD_TIMEOUT_S
    export_retries: int = EXPORT_DOWNLOAD_RETRIES
    export_verify_tls: bool = EXPORT_VERIFY_TLS

    @classmethod
    def from_config(cls, **overrides) -> "CrawlOptions":
        """Build options from the current module-level values."""

        values = dict(
            search_url=SEARCH_URL,
            portal_origin=PORTAL_ORIGIN,
            target_court=TARGET_COURT,
            era_offset=ERA_OFFSET,
            max_sessions=MAX_SESSIONS,
            max_waiting_clients=MAX_WAITING_CLIENTS,
            soft_idle_timeout_seconds=SOFT_IDLE_TIMEOUT_SECONDS,
            eviction_interval_seconds=EVICTION_INTERVAL_SECONDS,
            acquire_timeout_seconds=ACQUIRE_TIMEOUT_SECONDS or None,
            nav_timeout_seconds=NAV_TIMEOUT_SECONDS,
            link_read_timeout_ms=LINK_READ_TIMEOUT_MS,
            headless=HEADLESS,
            blocked_resource_types=BLOCKED_RESOURCE_TYPES,
            export_pdf=EXPORT_PDF_ENABLED,
            export_timeout_seconds=EXPORT_DOWNLOAD_TIMEOUT_S,
            export_retries=EXPORT_DOWNLOAD_RETRIES,
            export_verify_tls=EXPORT_VERIFY_TLS,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def nav_timeout_ms(self) -> int:
        return int(self.nav_timeout_seconds * 1000)


__all__ = ["CrawlOptions"]
