from __future__ import annotations

import pytest
from pydantic import ValidationError

from recording_worker.domain.errors import KnownJobError, describe_error
from recording_worker.domain.jobs import JobRequest, MeetingProvider, create_correlation_id

PAYLOAD = {
    "bearerToken": "token",
    "url": "https://meet.google.com/abc-defg-hij",
    "name": "Recorder",
    "teamId": "team-1",
    "timezone": "America/Chicago",
    "userId": "user-1",
    "provider": "google",
    "eventId": "event-4",
    "unknownField": "ignored",
}


def test_job_request_reads_camel_case_payload_and_ignores_extras() -> None:
    request = JobRequest.model_validate(PAYLOAD)

    assert request.team_id == "team-1"
    assert request.user_id == "user-1"
    assert request.provider is MeetingProvider.GOOGLE
    assert request.bot_id is None
    assert not hasattr(request, "unknownField")


def test_job_request_requires_known_provider() -> None:
    with pytest.raises(ValidationError):
        JobRequest.model_validate({**PAYLOAD, "provider": "webex"})


def test_entity_id_prefers_bot_id_over_event_id() -> None:
    with_event = JobRequest.model_validate(PAYLOAD)
    with_bot = JobRequest.model_validate({**PAYLOAD, "botId": "bot-2"})
    without_either = JobRequest.model_validate({**PAYLOAD, "eventId": None})

    assert with_event.entity_id == "event-4"
    assert with_bot.entity_id == "bot-2"
    assert without_either.entity_id == ""


@pytest.mark.parametrize(
    ("provider", "prefix"),
    [
        ("google", "Google Meet Recording"),
        ("microsoft", "Microsoft Teams Recording"),
        ("zoom", "Zoom Recording"),
    ],
)
def test_recording_name_prefix_follows_provider(provider: str, prefix: str) -> None:
    request = JobRequest.model_validate({**PAYLOAD, "provider": provider})

    assert request.recording_name_prefix == prefix


def test_correlation_id_is_stable_and_distinguishes_jobs() -> None:
    first = create_correlation_id("team-1", "user-1", None, "event-4", "https://x")
    again = create_correlation_id("team-1", "user-1", None, "event-4", "https://x")
    other = create_correlation_id("team-1", "user-2", None, "event-4", "https://x")

    assert first == again
    assert first != other
    assert len(first) == 16


def test_known_job_errors_default_to_not_retryable() -> None:
    assert KnownJobError("boom").retryable is False

    budgeted = KnownJobError("lobby timeout", retryable=True, max_retries=2)
    assert budgeted.retryable is True
    assert budgeted.max_retries == 2


def test_describe_error_flattens_whitespace() -> None:
    assert describe_error(ValueError("line one\n   line two")) == "ValueError | line one line two"
    assert describe_error(RuntimeError()) == "RuntimeError"
    assert describe_error(None) == "Unknown error (None)"


@pytest.mark.parametrize("user_id", ["../../escaped", "a/b", "a\\b", "..", ".", "", "   "])
def test_job_request_rejects_user_ids_that_are_not_plain_names(user_id: str) -> None:
    with pytest.raises(ValidationError):
        JobRequest.model_validate({**PAYLOAD, "userId": user_id})
