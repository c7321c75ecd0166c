"""Completion Client — backoff, error mapping and structured parsing.

Invariants:
    - 429 is retried with 2s/4s/8s waits, then ProviderThrottledError
    - Any other provider failure is raised immediately, never retried
    - 2xx text becomes ok / malformed / empty, never a partial value
"""

import pytest

from orbit.core.domain_types import CompletionStatus
from orbit.core.errors import (
    EmptyProviderOutputError,
    MalformedProviderOutputError,
    ProviderThrottledError,
    ProviderUnavailableError,
)
from orbit.core.validate_image import ValidatedImage
from orbit.infrastructure.completion_client import parse_json_object
from orbit.schemas.provider import ActionPlanPayload, ExtractedFactsPayload

from tests.services.mock_anthropic import (
    connection_error,
    empty_response,
    make_completion_client,
    rate_limit_error,
    status_error,
    text_response,
)

PLAN_JSON = '{"actions": [{"type": "CreateHabit", "title": "Read"}], "aiMessage": "Done"}'


# ==============================================================================
# Backoff
# ==============================================================================


async def test_rate_limit_retries_then_succeeds(sleeps):
    client = make_completion_client([
        rate_limit_error(), rate_limit_error(), text_response(PLAN_JSON),
    ])

    result = await client.complete("prompt", ActionPlanPayload)

    assert result.is_ok
    assert result.value.ai_message == "Done"
    assert len(client.client.calls) == 3
    assert sleeps == [2.0, 4.0]


async def test_three_rate_limits_then_success_is_invisible_to_caller(sleeps):
    client = make_completion_client([
        rate_limit_error(), rate_limit_error(), rate_limit_error(),
        text_response(PLAN_JSON),
    ])

    result = await client.complete("prompt", ActionPlanPayload)

    assert result.is_ok
    assert sleeps == [2.0, 4.0, 8.0]
    assert len(client.client.calls) == 4


async def test_rate_limit_exhausted_raises_throttled_after_three_waits(sleeps):
    client = make_completion_client([rate_limit_error()] * 4)

    with pytest.raises(ProviderThrottledError) as exc:
        await client.complete("prompt", ActionPlanPayload)

    assert sleeps == [2.0, 4.0, 8.0]
    assert len(client.client.calls) == 4
    assert exc.value.attempts == 4
    assert exc.value.http_status == 503


async def test_retry_budget_is_per_call(sleeps):
    client = make_completion_client([
        rate_limit_error(), text_response(PLAN_JSON),
        rate_limit_error(), text_response(PLAN_JSON),
    ])

    await client.complete("first", ActionPlanPayload)
    await client.complete("second", ActionPlanPayload)

    assert sleeps == [2.0, 2.0]


async def test_server_error_is_not_retried(sleeps):
    client = make_completion_client([status_error(500), text_response(PLAN_JSON)])

    with pytest.raises(ProviderUnavailableError) as exc:
        await client.complete("prompt", ActionPlanPayload)

    assert exc.value.provider_status == 500
    assert len(client.client.calls) == 1
    assert sleeps == []


async def test_connection_error_maps_to_unavailable(sleeps):
    client = make_completion_client([connection_error()])

    with pytest.raises(ProviderUnavailableError) as exc:
        await client.complete("prompt", ActionPlanPayload)

    assert exc.value.provider_status is None
    assert sleeps == []


# ==============================================================================
# Parsing
# ==============================================================================


async def test_fenced_json_is_accepted():
    client = make_completion_client([
        text_response(f"Here you go:\n```json\n{PLAN_JSON}\n```"),
    ])

    result = await client.complete("prompt", ActionPlanPayload)

    assert result.is_ok
    assert result.value.actions[0].title == "Read"


async def test_non_json_text_is_malformed():
    client = make_completion_client([text_response("I cannot do that.")])

    result = await client.complete("prompt", ActionPlanPayload)

    assert result.status == CompletionStatus.MALFORMED
    with pytest.raises(MalformedProviderOutputError):
        result.unwrap("action plan")


async def test_schema_mismatch_is_malformed():
    client = make_completion_client([
        text_response('{"actions": [{"type": "LaunchRocket"}]}'),
    ])

    result = await client.complete("prompt", ActionPlanPayload)

    assert result.status == CompletionStatus.MALFORMED
    assert "ActionPlanPayload" in result.reason


async def test_no_text_is_empty():
    client = make_completion_client([empty_response()])

    result = await client.complete("prompt", ExtractedFactsPayload)

    assert result.status == CompletionStatus.EMPTY
    with pytest.raises(EmptyProviderOutputError):
        result.unwrap("facts")


async def test_blank_text_is_empty():
    client = make_completion_client([text_response("   \n ")])

    result = await client.complete("prompt", ExtractedFactsPayload)

    assert result.status == CompletionStatus.EMPTY


# ==============================================================================
# Request shape
# ==============================================================================


async def test_request_sends_system_prompt_and_disables_sdk_retries():
    client = make_completion_client([text_response(PLAN_JSON)])

    await client.complete("hello", ActionPlanPayload)

    call = client.client.calls[0]
    assert call["model"] == "test-model"
    assert "JSON" in call["system"]
    assert call["messages"][0]["content"] == [{"type": "text", "text": "hello"}]


async def test_image_block_precedes_text():
    client = make_completion_client([text_response(PLAN_JSON)])
    image = ValidatedImage(media_type="image/png", size=3, data=b"abc")

    await client.complete("look", ActionPlanPayload, image=image)

    content = client.client.calls[0]["messages"][0]["content"]
    assert content[0]["type"] == "image"
    assert content[0]["source"]["media_type"] == "image/png"
    assert content[0]["source"]["data"] == "YWJj"
    assert content[1] == {"type": "text", "text": "look"}


def test_parse_json_object_prefers_direct_parse():
    assert parse_json_object(' {"a": 1} ') == {"a": 1}


def test_parse_json_object_extracts_outermost_block():
    assert parse_json_object('noise {"a": {"b": 2}} tail') == {"a": {"b": 2}}
