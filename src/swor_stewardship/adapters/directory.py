"""Account directory backed by the identity provider's user lookup endpoint.

Used by steward assignment to decide whether an assigned steward already has
an account or needs an invitation (invite_email_pending).

GET {identity_provider_url}/users?email=<email>
    200 {"id": "..."}  — known account
    404                — unknown email
"""

import httpx

from swor_stewardship.observability import get_logger

logger = get_logger(__name__)


class AccountDirectoryError(Exception):
    """Raised when the identity provider cannot answer a lookup."""


class HttpAccountDirectory:
    """Looks up account ids by email over HTTP.

    With no base URL configured every email is reported unknown, so every
    assignment is created with an invite pending.

    Args:
        base_url: Identity provider base URL.
        timeout_s: Request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    async def find_user_id(self, email: str) -> str | None:
        """Return the account id for an email, or None when unknown.

        Raises:
            AccountDirectoryError: On transport errors or unexpected status codes.
        """
        if not self._base_url:
            return None

        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.get(f"{self._base_url}/users", params={"email": email})
        except httpx.RequestError as exc:
            logger.error("Account lookup failed", error=str(exc))
            raise AccountDirectoryError(f"Account lookup request error: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise AccountDirectoryError(f"Account lookup failed with status {response.status_code}")

        user_id = response.json().get("id")
        return str(user_id) if user_id else None
