"""Tests for the HTTP transport and failure classification."""

import json

import httpx
import pytest
import respx
from httpx import Response

from console_text.client import ConsoleTextClient
from console_text.core.config import ClientConfig
from console_text.core.http_client import USER_AGENT, auth_headers
from console_text.exceptions import RejectedError, TransportError
from console_text.models import MessageEnvelope
from console_text.transport import HttpTransport

ENDPOINT = "https://relay.example.com/api/messages"


@pytest.fixture
def envelope():
    return MessageEnvelope.create(
        "Payment failed",
        severity="critical",
        metadata={"order_id": 7},
        project_id="shop",
        environment="production",
        timestamp=1_700_000_000_000,
    )


@pytest.fixture
def http_transport():
    return HttpTransport(endpoint=ENDPOINT, api_key="ct_key")


class TestHttpTransport:
    """Tests for request shape and response handling."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_posts_envelope(self, http_transport, envelope):
        route = respx.post(ENDPOINT).mock(
            return_value=Response(200, json={"success": True, "messageId": "msg_1"})
        )

        response = await http_transport.send(envelope)
        await http_transport.aclose()

        assert response.success is True
        assert response.message_id == "msg_1"

        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer ct_key"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["User-Agent"].startswith("console-text-python/")
        assert json.loads(request.content) == {
            "message": "Payment failed",
            "severity": "critical",
            "metadata": {"order_id": 7},
            "timestamp": 1_700_000_000_000,
            "projectId": "shop",
            "environment": "production",
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_parses_rate_limit_info(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(
            return_value=Response(
                200,
                json={
                    "success": True,
                    "messageId": "msg_2",
                    "rateLimitInfo": {"remaining": 9, "resetTime": 1700000060000},
                },
            )
        )

        response = await http_transport.send(envelope)

        assert response.rate_limit_info.remaining == 9
        assert response.rate_limit_info.reset_time == 1700000060000

    @pytest.mark.asyncio
    @respx.mock
    async def test_unsuccessful_body_is_rejection(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(
            return_value=Response(200, json={"success": False, "error": "Telegram not configured"})
        )

        with pytest.raises(RejectedError) as exc_info:
            await http_transport.send(envelope)

        assert exc_info.value.error == "Telegram not configured"
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_with_body_is_rejection(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(
            return_value=Response(401, json={"error": "Missing or invalid API key"})
        )

        with pytest.raises(RejectedError) as exc_info:
            await http_transport.send(envelope)

        assert exc_info.value.status_code == 401
        assert exc_info.value.error == "Missing or invalid API key"

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_with_text_body_is_rejection(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(return_value=Response(500, text="<html>oops</html>"))

        with pytest.raises(RejectedError) as exc_info:
            await http_transport.send(envelope)

        assert exc_info.value.status_code == 500
        assert "oops" in exc_info.value.error

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_without_body_is_network_failure(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(return_value=Response(503))

        with pytest.raises(TransportError) as exc_info:
            await http_transport.send(envelope)

        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_network_failure(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(side_effect=httpx.ConnectError)

        with pytest.raises(TransportError):
            await http_transport.send(envelope)

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_network_failure(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(side_effect=httpx.ReadTimeout)

        with pytest.raises(TransportError, match="timed out"):
            await http_transport.send(envelope)

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json_is_rejection(self, http_transport, envelope):
        respx.post(ENDPOINT).mock(return_value=Response(200, text="not json"))

        with pytest.raises(RejectedError, match="Invalid JSON"):
            await http_transport.send(envelope)

    @pytest.mark.asyncio
    @respx.mock
    async def test_new_api_key_applies_to_next_request(self, http_transport, envelope):
        route = respx.post(ENDPOINT).mock(
            return_value=Response(200, json={"success": True})
        )

        await http_transport.send(envelope)
        http_transport.api_key = "ct_rotated"
        await http_transport.send(envelope)

        first, second = route.calls
        assert first.request.headers["Authorization"] == "Bearer ct_key"
        assert second.request.headers["Authorization"] == "Bearer ct_rotated"


class TestClientOverHttp:
    """End-to-end tests of the client with the real transport."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_critical_message_delivered(self):
        route = respx.post(ENDPOINT).mock(
            return_value=Response(200, json={"success": True, "messageId": "msg_9"})
        )
        client = ConsoleTextClient(
            ClientConfig(api_key="ct_key", api_endpoint=ENDPOINT, project_id="shop"),
            autostart=False,
        )

        assert await client.critical("Checkout down") is True
        await client.shutdown()

        body = json.loads(route.calls.last.request.content)
        assert body["severity"] == "critical"
        assert body["projectId"] == "shop"

    @pytest.mark.asyncio
    @respx.mock
    async def test_bodiless_server_error_is_queued(self):
        respx.post(ENDPOINT).mock(return_value=Response(502))
        client = ConsoleTextClient(
            ClientConfig(api_key="ct_key", api_endpoint=ENDPOINT),
            autostart=False,
        )

        assert await client.error("Upstream flapping") is False
        assert client.get_status().queue_length == 1
        await client.shutdown()

    @pytest.mark.asyncio
    @respx.mock
    async def test_rotated_key_used_after_update_config(self):
        route = respx.post(ENDPOINT).mock(
            return_value=Response(200, json={"success": True})
        )
        client = ConsoleTextClient(
            ClientConfig(api_key="ct_old", api_endpoint=ENDPOINT),
            autostart=False,
        )

        await client.critical("one")
        client.update_config(api_key="ct_new")
        await client.critical("two")
        await client.shutdown()

        assert route.calls[0].request.headers["Authorization"] == "Bearer ct_old"
        assert route.calls[1].request.headers["Authorization"] == "Bearer ct_new"


def test_auth_headers():
    assert auth_headers("ct_key") == {
        "Authorization": "Bearer ct_key",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
