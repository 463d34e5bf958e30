"""Centralised error taxonomy for crawler failures.

Codes are emitted in structured log events and in ``CrawlSummary.failures``
so that a run explains why each ruling or page was dropped.
"""
from __future__ import annotations

from typing import Any, Optional


class ErrorCode:
    POOL_CAPACITY = "pool_capacity"
    POOL_CLOSED = "pool_closed"
    SESSION_CREATE = "session_create_failed"
    NAVIGATION = "navigation_error"
    NAV_TIMEOUT = "navigation_timeout"
    SITE_STRUCTURE = "site_structure_changed"
    PAGINATION = "pagination_missing"
    LINK_UNRESOLVED = "link_unresolved"
    MALFORMED_RULING = "malformed_ruling"
    NETWORK = "network_error"
    HTTP_4XX = "http_4xx"
    HTTP_404 = "http_404_not_found"
    HTTP_5XX = "http_5xx"
    RATE_LIMIT = "rate_limit"
    MALFORMED_PDF = "malformed_pdf"
    INTERNAL = "internal_error"


class CrawlError(Exception):
    """Base class for crawler failures carrying an :class:`ErrorCode`."""

    default_code = ErrorCode.INTERNAL

    def __init__(self, message: str, *, error_code: Optional[str] = None, **context: Any) -> None:
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = context


class PoolCapacityError(CrawlError):
    default_code = ErrorCode.POOL_CAPACITY


class PoolClosedError(PoolCapacityError):
    default_code = ErrorCode.POOL_CLOSED


class SessionCreationError(CrawlError):
    default_code = ErrorCode.SESSION_CREATE


class NavigationError(CrawlError):
    default_code = ErrorCode.NAVIGATION


class NavigationTimeout(NavigationError):
    default_code = ErrorCode.NAV_TIMEOUT


class ScrapeError(CrawlError):
    """An expected element or attribute is absent from the page."""

    default_code = ErrorCode.SITE_STRUCTURE


class PaginationError(ScrapeError):
    default_code = ErrorCode.PAGINATION


class LinkResolutionError(CrawlError):
    default_code = ErrorCode.LINK_UNRESOLVED


class ReformatError(CrawlError):
    """Ruling text is missing a landmark the reformatter depends on."""

    default_code = ErrorCode.MALFORMED_RULING

    def __init__(self, message: str, *, section: str, **context: Any) -> None:
        super().__init__(message, section=section, **context)
        self.section = section


class ExportDownloadError(CrawlError):
    """The export PDF could not be fetched or is not a usable PDF."""

    default_code = ErrorCode.NETWORK

    def __init__(self, error_code: str, message: str, *, http_status: Optional[int] = None) -> None:
        super().__init__(message, error_code=error_code, http_status=http_status)
        self.http_status = http_status


__all__ = [
    "ErrorCode",
    "CrawlError",
    "PoolCapacityError",
    "PoolClosedError",
    "SessionCreationError",
    "NavigationError",
    "NavigationTimeout",
    "ScrapeError",
    "PaginationError",
    "LinkResolutionError",
    "ReformatError",
    "ExportDownloadError",
]
