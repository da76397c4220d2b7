"""Tests for ASGI response helper functions.

This module tests the internal helper functions for sending ASGI HTTP responses,
including headers, body encoding and endpoint error handling.
"""

from __future__ import annotations

import pytest

from scriptprobe.adapters.frameworks.asgi import (
    TEXT_CONTENT_TYPE,
    _handle_endpoint,
    _send_response,
)


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.SendResponse.Headers")
async def test_send_response_sends_correct_headers(asgi_send_capture):
    """_send_response sends http.response.start with correct status."""

    # Arrange: Get send capture fixture
    send, responses = asgi_send_capture

    # Act: Send response with specific status and content type
    await _send_response(send, 400, "text/plain", "Script parameter is missing")

    # Assert: Should send http.response.start with correct headers
    assert len(responses) == 2
    assert responses[0]["type"] == "http.response.start"
    assert responses[0]["status"] == 400
    assert responses[0]["headers"] == [(b"content-type", b"text/plain")]


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.SendResponse.Body")
async def test_send_response_sends_body_as_bytes(asgi_send_capture):
    """_send_response should send http.response.body with body encoded as bytes."""

    # Arrange: Get send capture fixture
    send, responses = asgi_send_capture

    # Act: Send response with string body
    await _send_response(send, 200, TEXT_CONTENT_TYPE, 'up{a="é"} 1\n')

    # Assert: Should send http.response.body with UTF-8 encoded body
    assert responses[1]["type"] == "http.response.body"
    assert responses[1]["body"] == 'up{a="é"} 1\n'.encode()


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Endpoint.Error")
async def test_handle_endpoint_returns_500_on_error(asgi_send_capture):
    """An exception in the endpoint becomes a plain 500 response."""

    # Arrange
    send, responses = asgi_send_capture

    async def failing() -> str:
        raise RuntimeError("boom")

    # Act
    await _handle_endpoint(send, failing, "text/plain", "Endpoint failed")

    # Assert
    assert responses[0]["status"] == 500
    assert responses[1]["body"] == b"Internal Server Error"


@pytest.mark.tier(1)
async def test_handle_endpoint_sends_body(asgi_send_capture):
    send, responses = asgi_send_capture

    async def ok() -> str:
        return "probe_status 0\n"

    await _handle_endpoint(send, ok, "text/plain", "unused")

    assert responses[0]["status"] == 200
    assert responses[1]["body"] == b"probe_status 0\n"
