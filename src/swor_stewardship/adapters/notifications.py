"""Webhook notification sender.

POSTs NotificationPayload documents to the external notification service,
which owns templates and email delivery. The sender raises on any failure;
NotificationDispatcher in core/services.py decides that delivery is
allowed to fail and records the failure.

Request body:
    {"kind": "...", "recipient_email": "...", "recipient_user_id": "...", "variables": {...}}
"""

import httpx

from swor_stewardship.core.domain import NotificationPayload
from swor_stewardship.observability import get_logger

logger = get_logger(__name__)

# Default delivery timeout in milliseconds, overridden by SWOR_NOTIFICATION_TIMEOUT_MS
_DEFAULT_TIMEOUT_MS = 3000


class NotificationDeliveryError(Exception):
    """Raised when the notification service does not accept a payload.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the service (if available).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize NotificationDeliveryError.

        Args:
            message: Error description.
            status_code: Optional HTTP status code.
        """
        super().__init__(message)
        self.status_code = status_code


class WebhookNotificationSender:
    """Async sender posting notification payloads to a webhook.

    Args:
        webhook_url: Endpoint receiving payloads. Empty disables delivery.
        timeout_ms: Hard timeout per delivery in milliseconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_ms: int = _DEFAULT_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout_ms = timeout_ms
        self._timeout_s = timeout_ms / 1000.0
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def send(self, payload: NotificationPayload) -> None:
        """Deliver one payload.

        Args:
            payload: The notification to deliver.

        Raises:
            NotificationDeliveryError: On a non-2xx response, timeout or transport error.
        """
        if not self.enabled:
            logger.debug("Notification delivery disabled, dropping payload", kind=payload.kind)
            return

        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.post(self._webhook_url, json=payload.to_dict())
        except httpx.TimeoutException as exc:
            raise NotificationDeliveryError(
                message=f"Notification delivery timed out after {self._timeout_ms}ms",
            ) from exc
        except httpx.RequestError as exc:
            raise NotificationDeliveryError(message=f"Notification request error: {exc}") from exc

        if response.is_success:
            logger.debug("Notification delivered", kind=payload.kind, status_code=response.status_code)
            return

        raise NotificationDeliveryError(
            message=f"Notification service rejected payload with status {response.status_code}: "
            f"{response.text[:200]}",
            status_code=response.status_code,
        )
