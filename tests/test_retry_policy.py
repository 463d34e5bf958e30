from __future__ import annotations

import pytest

from fjud.scraper import retry_policy
from fjud.scraper.error_codes import ErrorCode


@pytest.fixture
def event_recorder(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []

    def _record(label: str, **fields: object) -> None:
        events.append((label, fields))

    monkeypatch.setattr(retry_policy, "_crawl_event", _record)
    return events


@pytest.mark.parametrize(
    "attempt, expected, kind",
    [
        (1, True, "retryable"),
        (2, True, "retryable"),
        (3, False, "capped"),
        (5, False, "capped"),
    ],
)
def test_network_errors_retry_until_capped(
    attempt: int, expected: bool, kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    result = retry_policy.decide_retry(attempt, 3, error_code=ErrorCode.NETWORK)

    assert result is expected
    assert len(event_recorder) == 1
    label, fields = event_recorder[0]
    assert label == "export"
    assert fields["phase"] == "retry_decision"
    assert fields["attempt"] == attempt
    assert fields["max_attempts"] == 3
    assert fields["will_retry"] is expected
    assert fields["kind"] == kind


@pytest.mark.parametrize(
    "error_code",
    [ErrorCode.HTTP_404, ErrorCode.HTTP_4XX, ErrorCode.MALFORMED_PDF, ErrorCode.SITE_STRUCTURE],
)
def test_non_retryable_error_codes(error_code: str, event_recorder: list[tuple[str, dict]]) -> None:
    assert retry_policy.decide_retry(1, 3, error_code=error_code) is False

    _, fields = event_recorder[0]
    assert fields["kind"] == "non_retryable"
    assert fields["error_code"] == error_code


def test_server_status_without_code_is_retryable(event_recorder: list[tuple[str, dict]]) -> None:
    assert retry_policy.decide_retry(1, 3, error_code="", http_status=503) is True
    assert event_recorder[0][1]["kind"] == "retryable"


@pytest.mark.parametrize(
    "error_code, expected_kind",
    [
        (None, "missing_error_code"),
        ("", "missing_error_code"),
        ("unexpected_code", "unknown"),
    ],
)
def test_unknown_failures_get_one_more_try(
    error_code: str | None, expected_kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    assert retry_policy.decide_retry(1, 3, RuntimeError("x"), error_code=error_code) is True
    assert retry_policy.decide_retry(2, 3, RuntimeError("x"), error_code=error_code) is False

    assert [fields["kind"] for _, fields in event_recorder] == [expected_kind, expected_kind]
    assert event_recorder[0][1]["error_repr"] == "RuntimeError('x')"


@pytest.mark.parametrize(
    "attempt, expected",
    [(0, 1.0), (1, 1.0), (2, 2.0), (3, 4.0), (5, 16.0), (6, 30.0), (20, 30.0)],
)
def test_compute_backoff_seconds(attempt: int, expected: float) -> None:
    assert retry_policy.compute_backoff_seconds(attempt) == expected


def test_compute_backoff_custom_cap() -> None:
    assert retry_policy.compute_backoff_seconds(4, cap=5) == 5.0
