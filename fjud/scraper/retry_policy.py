from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode
from .logging_utils import _crawl_event

RETRYABLE_ERROR_CODES = {
    ErrorCode.NETWORK,
    ErrorCode.HTTP_5XX,
    ErrorCode.RATE_LIMIT,
}

NON_RETRYABLE_ERROR_CODES = {
    ErrorCode.HTTP_404,
    ErrorCode.HTTP_4XX,
    ErrorCode.MALFORMED_PDF,
    ErrorCode.SITE_STRUCTURE,
}


def compute_backoff_seconds(attempt_index: int, *, cap: float = 30) -> float:
    """Return a capped exponential backoff for the given attempt (1-based)."""

    return float(min(2 ** max(0, attempt_index - 1), cap))


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    error: BaseException | None = None,
    *,
    error_code: Optional[str] = None,
    http_status: Optional[int] = None,
) -> bool:
    """Decide whether a failed export download should be retried."""

    code = (error_code or "").strip()

    if attempt_index >= max_attempts:
        will_retry, kind = False, "capped"
    elif code in NON_RETRYABLE_ERROR_CODES:
        will_retry, kind = False, "non_retryable"
    elif code in RETRYABLE_ERROR_CODES or (http_status is not None and http_status >= 500):
        will_retry, kind = True, "retryable"
    else:
        # Unknown failure: allow one more attempt only if another remains after it.
        will_retry = attempt_index < max_attempts - 1
        kind = "unknown" if code else "missing_error_code"

    _crawl_event(
        "export",
        phase="retry_decision",
        kind=kind,
        error_code=code or None,
        attempt=attempt_index,
        max_attempts=max_attempts,
        http_status=http_status,
        will_retry=will_retry,
        error_repr=repr(error) if error is not None and kind != "retryable" else None,
    )
    return will_retry


__all__ = [
    "decide_retry",
    "compute_backoff_seconds",
    "RETRYABLE_ERROR_CODES",
    "NON_RETRYABLE_ERROR_CODES",
]
