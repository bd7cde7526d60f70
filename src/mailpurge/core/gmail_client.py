"""Gmail REST client wrapper for token refresh, message listing and batch delete."""

import asyncio
import time
from collections.abc import Sequence
from typing import Any

import requests

from mailpurge.core.config import API_TIMEOUT, GMAIL_API_BASE_URL, GOOGLE_TOKEN_URL
from mailpurge.core.exceptions import AuthError, MailPurgeError, wrap_http_error
from mailpurge.core.interfaces import MessagePage
from mailpurge.utils.logging_utils import get_logger

# Google token request timeout in seconds
TOKEN_REQUEST_TIMEOUT = 10

# Seconds shaved off the advertised lifetime so a token is never used at the edge
EXPIRY_SKEW = 30

logger = get_logger(__name__)


class GmailTokenProvider:
    """Caches a Gmail access token and refreshes it with an OAuth refresh token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str | None,
        token_url: str = GOOGLE_TOKEN_URL,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the token provider.

        Args:
            client_id: Google OAuth client id
            client_secret: Google OAuth client secret
            refresh_token: Long-lived refresh token for the mailbox
            token_url: OAuth token endpoint
            session: Optional requests session (shared connection pool)
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._token_url = token_url
        self._session = session or requests.Session()
        self._access_token: str | None = None
        self._expires_at: float = 0.0

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "GmailTokenProvider":
        return cls(
            client_id=config["client_id"],
            client_secret=config["client_secret"],
            refresh_token=config.get("refresh_token"),
            token_url=config.get("token_url", GOOGLE_TOKEN_URL),
        )

    def has_refresh_token(self) -> bool:
        return bool(self._refresh_token)

    def peek(self) -> str | None:
        return self._access_token

    def time_remaining(self) -> float:
        if self._access_token is None:
            return 0.0
        return max(0.0, self._expires_at - time.time())

    async def get_token(self) -> str:
        """Return the cached token, refreshing it when it has expired."""
        if self._access_token is not None and self.time_remaining() > 0:
            return self._access_token
        return await self.force_refresh()

    async def force_refresh(self) -> str:
        """Exchange the refresh token for a new access token.

        Raises:
            AuthError: If no refresh token is configured or the exchange fails
        """
        if not self._refresh_token:
            raise AuthError("No Gmail refresh token available", reason="not_connected")

        token, expires_in = await asyncio.to_thread(self._request_token)
        self._access_token = token
        self._expires_at = time.time() + max(0, expires_in - EXPIRY_SKEW)
        logger.info(
            "Refreshed Gmail access token",
            extra={"operation": "token_refresh", "status": "success"},
        )
        return token

    def _request_token(self) -> tuple[str, int]:
        try:
            response = self._session.post(
                self._token_url,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=TOKEN_REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Failed to refresh Gmail token: {e}",
                extra={"operation": "token_refresh", "status": "failed"},
            )
            raise AuthError(f"Failed to refresh Gmail access token: {e}") from e
        except ValueError as e:
            raise AuthError("Token endpoint returned invalid JSON") from e

        if "access_token" not in payload:
            raise AuthError("Access token not found in token response")

        return str(payload["access_token"]), int(payload.get("expires_in", 3600))


class GmailMessageStore:
    """Gmail ``users.messages`` endpoints used by the deletion loop."""

    def __init__(
        self,
        base_url: str = GMAIL_API_BASE_URL,
        session: requests.Session | None = None,
        timeout: float = API_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def is_ready(self) -> bool:
        return self._session is not None

    async def fetch_page(
        self,
        credential: str,
        query: str,
        cursor: str | None,
        page_size: int,
    ) -> MessagePage:
        """List one page of message ids for ``query``."""
        params: dict[str, Any] = {"q": query, "maxResults": page_size}
        if cursor:
            params["pageToken"] = cursor

        payload = await asyncio.to_thread(
            self._request, "GET", "messages", credential, params=params
        )
        messages = payload.get("messages", []) if payload else []
        return MessagePage(
            ids=[m["id"] for m in messages if "id" in m],
            next_cursor=payload.get("nextPageToken") if payload else None,
        )

    async def delete_batch(self, credential: str, ids: Sequence[str]) -> None:
        """Permanently delete up to 1000 messages in one call."""
        if not ids:
            return
        await asyncio.to_thread(
            self._request,
            "POST",
            "messages/batchDelete",
            credential,
            json={"ids": list(ids)},
        )

    def _request(
        self, method: str, endpoint: str, credential: str, **kwargs: Any
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        headers = {"Authorization": f"Bearer {credential}"}
        try:
            response = self._session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            wrapped = wrap_http_error(e, endpoint=endpoint)
            logger.warning(
                f"Gmail API call failed: {wrapped}",
                extra={"operation": endpoint, "status": "failed"},
            )
            raise wrapped from e

        # batchDelete answers 204 with an empty body
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise MailPurgeError(
                "Gmail API returned invalid JSON", details=f"Endpoint: {endpoint}"
            ) from e
        return data if isinstance(data, dict) else {}
