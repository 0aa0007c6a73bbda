"""Tests for the HTTP adapters using httpx.MockTransport."""

import json

import httpx
import pytest

from swor_stewardship.adapters.directory import AccountDirectoryError, HttpAccountDirectory
from swor_stewardship.adapters.notifications import NotificationDeliveryError, WebhookNotificationSender
from swor_stewardship.core.domain import NotificationPayload

_PAYLOAD = NotificationPayload(
    kind="profile_approved",
    recipient_email="owner@example.com",
    recipient_user_id="owner-1",
    variables={"profile_name": "Ada"},
)


class TestWebhookNotificationSender:
    """Tests for WebhookNotificationSender — raises on every delivery failure."""

    @pytest.mark.asyncio()
    async def test_posts_payload_document(self) -> None:
        received: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(202)

        sender = WebhookNotificationSender("https://notify.example.org/hook", transport=httpx.MockTransport(handler))

        await sender.send(_PAYLOAD)

        assert received == [
            {
                "kind": "profile_approved",
                "recipient_email": "owner@example.com",
                "recipient_user_id": "owner-1",
                "variables": {"profile_name": "Ada"},
            }
        ]

    @pytest.mark.asyncio()
    async def test_rejection_raises_with_status(self) -> None:
        sender = WebhookNotificationSender(
            "https://notify.example.org/hook",
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="template missing")),
        )

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await sender.send(_PAYLOAD)

        assert exc_info.value.status_code == 500
        assert "template missing" in str(exc_info.value)

    @pytest.mark.asyncio()
    async def test_timeout_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        sender = WebhookNotificationSender(
            "https://notify.example.org/hook",
            timeout_ms=250,
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(NotificationDeliveryError, match="250ms"):
            await sender.send(_PAYLOAD)

    @pytest.mark.asyncio()
    async def test_disabled_sender_drops_payload(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        sender = WebhookNotificationSender("", transport=httpx.MockTransport(handler))

        assert sender.enabled is False
        await sender.send(_PAYLOAD)


class TestHttpAccountDirectory:
    """Tests for HttpAccountDirectory — known, unknown and failing lookups."""

    @pytest.mark.asyncio()
    async def test_known_and_unknown_emails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/users"
            if request.url.params["email"] == "known@swor.org":
                return httpx.Response(200, json={"id": 42})
            return httpx.Response(404)

        directory = HttpAccountDirectory("https://id.example.org/", transport=httpx.MockTransport(handler))

        assert await directory.find_user_id("known@swor.org") == "42"
        assert await directory.find_user_id("new@swor.org") is None

    @pytest.mark.asyncio()
    async def test_server_error_raises(self) -> None:
        directory = HttpAccountDirectory(
            "https://id.example.org",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )

        with pytest.raises(AccountDirectoryError):
            await directory.find_user_id("known@swor.org")

    @pytest.mark.asyncio()
    async def test_empty_base_url_reports_unknown(self) -> None:
        assert await HttpAccountDirectory("").find_user_id("known@swor.org") is None
