from __future__ import annotations

import time
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import requests

from .config import UA
from .error_codes import ErrorCode, ExportDownloadError
from .logging_utils import _crawl_event
from .retry_policy import compute_backoff_seconds, decide_retry
from .utils import log_line

MIN_PDF_BYTES = 1024


@dataclass
class ExportDownloadResult:
    ok: bool
    status_code: Optional[int]
    bytes_written: int
    attempts: int


def _redact_url(url: str) -> str:
    try:
        parsed = urllib.parse.urlparse(url)
        return urllib.parse.urlunparse(parsed._replace(query=""))
    except ValueError:
        return url


def _classify_http_status(status: Optional[int]) -> str:
    if status is None:
        return ErrorCode.INTERNAL
    if status == 404:
        return ErrorCode.HTTP_404
    if status == 429:
        return ErrorCode.RATE_LIMIT
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


def _validate_pdf_bytes(data: bytes) -> None:
    if not data.startswith(b"%PDF"):
        raise ExportDownloadError(ErrorCode.MALFORMED_PDF, "Response is not a PDF")


def _fetch_with_client(http_client: Any, url: str, dest_path: Path, timeout: float) -> tuple[Optional[int], int]:
    response = http_client(url, timeout=timeout)
    status = getattr(response, "status_code", None)
    if status is not None and int(status) >= 400:
        raise ExportDownloadError(
            _classify_http_status(int(status)), f"HTTP {status}", http_status=int(status)
        )
    body = response.content
    body_bytes = body.encode("utf-8") if isinstance(body, str) else bytes(body)
    _validate_pdf_bytes(body_bytes)
    if len(body_bytes) < MIN_PDF_BYTES:
        raise ExportDownloadError(ErrorCode.MALFORMED_PDF, "PDF appears truncated")
    dest_path.write_bytes(body_bytes)
    return status, len(body_bytes)


def _stream_to_file(url: str, dest_path: Path, timeout: float, verify: bool) -> tuple[Optional[int], int]:
    with requests.get(
        url, stream=True, timeout=timeout, verify=verify, headers={"User-Agent": UA}
    ) as resp:
        status = resp.status_code
        resp.raise_for_status()
        first_chunk = True
        with dest_path.open("wb") as handle:
            for chunk in resp.iter_content(chunk_size=8192):
                if not chunk:
                    continue
                if first_chunk:
                    _validate_pdf_bytes(chunk)
                    first_chunk = False
                handle.write(chunk)

    file_size = dest_path.stat().st_size
    if file_size < MIN_PDF_BYTES:
        raise ExportDownloadError(ErrorCode.MALFORMED_PDF, "PDF appears truncated")
    return status, file_size


def download_pdf(
    url: str,
    dest_path: Path,
    *,
    http_client: Optional[Any] = None,
    max_retries: int = 3,
    timeout: float = 60,
    verify: bool = False,
    token: Optional[str] = None,
) -> ExportDownloadResult:
    """Download the export PDF at ``url`` into ``dest_path`` with retries.

    ``http_client`` is an optional ``callable(url, timeout=...)`` returning a
    response with ``status_code`` and ``content``; without it the file is
    streamed with ``requests``. Raises :class:`ExportDownloadError` once the
    retry policy gives up.
    """

    dest_path.parent.mkdir(parents=True, exist_ok=True)

    safe_url = _redact_url(url)
    label = token or safe_url
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    status: Optional[int] = None

    for attempt in range(1, max_retries + 1):
        status = None
        try:
            if http_client is not None:
                status, bytes_written = _fetch_with_client(http_client, url, dest_path, timeout)
            else:
                status, bytes_written = _stream_to_file(url, dest_path, timeout, verify)

            _crawl_event(
                "export",
                phase="download",
                token=label,
                status="ok",
                http_status=status,
                bytes=bytes_written,
                attempt=attempt,
            )
            return ExportDownloadResult(True, status, bytes_written, attempt)

        except ExportDownloadError as exc:
            status = status or exc.http_status
            error_code = exc.error_code
            error_message = str(exc)
        except (requests.Timeout, requests.ConnectionError) as exc:
            error_code = ErrorCode.NETWORK
            error_message = str(exc)
        except requests.HTTPError as exc:
            status = getattr(exc.response, "status_code", status)
            error_code = _classify_http_status(status)
            error_message = str(exc)
        except (requests.RequestException, OSError) as exc:
            error_code = ErrorCode.INTERNAL
            error_message = str(exc)

        should_retry = decide_retry(
            attempt_index=attempt,
            max_attempts=max_retries,
            error_code=error_code,
            http_status=status,
        )
        dest_path.unlink(missing_ok=True)
        backoff = compute_backoff_seconds(attempt)
        _crawl_event(
            "export",
            phase="download_retry",
            token=label,
            attempt=attempt,
            max_attempts=max_retries,
            error_code=error_code,
            http_status=status,
            will_retry=should_retry,
            backoff_seconds=backoff if should_retry else None,
            error_message=error_message,
        )
        log_line(f"[EXPORT] Download attempt {attempt} for {safe_url} failed: {error_message}")

        if not should_retry:
            break
        time.sleep(backoff)

    raise ExportDownloadError(
        error_code or ErrorCode.INTERNAL,
        error_message or "download failed",
        http_status=status,
    )


__all__ = [
    "ExportDownloadResult",
    "download_pdf",
    "MIN_PDF_BYTES",
]
