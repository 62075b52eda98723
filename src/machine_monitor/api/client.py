"""
HTTP transport for the monitoring service.

Every call goes through ``ApiClient.request``, which attaches the bearer token,
decodes the JSON body and turns failures into the classified exceptions in
``machine_monitor.errors``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from machine_monitor.config import Settings
from machine_monitor.errors import AuthError, ConnectionError, ServerError
from machine_monitor.session import Session

logger = logging.getLogger(__name__)

CONNECTION_MESSAGE = (
    "Unable to connect to the server. Please check your internet connection and try again."
)
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."

AUTH_REJECTION_STATUSES = frozenset({401, 403})


def server_message(body: Any) -> str | None:
    """Extract the service's human-readable ``message`` field, if any."""
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return None


class ApiClient:
    """
    Async client bound to one service base URL and one session.

    Args:
        session: Session whose token authorises protected calls
        settings: Base URL and timeout
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.session = session
        self.settings = settings or Settings()
        self._client = httpx.AsyncClient(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        protected: bool = True,
        failure_message: str = "Request failed",
    ) -> Any:
        """
        Send one request and return the decoded body.

        Unprotected (auth) endpoints report any rejection as ``AuthError``.
        Protected endpoints report 401/403 as ``AuthError`` and end the
        session; other rejections become ``ServerError``.

        Raises:
            ConnectionError: no response was received
            AuthError: credentials or token rejected
            ServerError: any other non-2xx response
        """
        headers = self.session.auth_headers() if protected else {}
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.debug("%s %s failed without a response: %r", method, path, e)
            raise ConnectionError(CONNECTION_MESSAGE, cause=e) from e

        logger.debug("%s %s -> %s", method, path, response.status_code)
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        if response.is_success:
            return body

        message = server_message(body)
        if not protected:
            raise AuthError(message or failure_message)
        if response.status_code in AUTH_REJECTION_STATUSES:
            logger.info("Token rejected on %s %s, ending session", method, path)
            await self.session.end()
            raise AuthError(message or SESSION_EXPIRED_MESSAGE)
        raise ServerError(message or failure_message, status_code=response.status_code)
