"""Keeps a usable Gmail credential in hand before every batch."""

from collections.abc import Callable

from ..core.config import TOKEN_REFRESH_THRESHOLD
from ..core.exceptions import AuthError
from ..core.interfaces import TokenProvider
from ..utils.estimate import format_duration
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class TokenGuard:
    """Hands out a credential, refreshing it early when it is about to expire.

    A cached token with less than ``threshold`` seconds of life left is
    refreshed unconditionally. Anything else, including the very first
    acquisition, goes through the provider's lazy path.
    Every failure is reported as :class:`AuthError` and forwarded to
    ``on_auth_failure`` so the caller can prompt for re-authentication.
    """

    def __init__(
        self,
        provider: TokenProvider,
        threshold: float = TOKEN_REFRESH_THRESHOLD,
        on_auth_failure: Callable[[AuthError], None] | None = None,
    ) -> None:
        self.provider = provider
        self.threshold = threshold
        self.on_auth_failure = on_auth_failure

    async def acquire(self) -> str:
        """Return a credential valid for at least the next batch.

        Raises:
            AuthError: If the token cannot be obtained or refreshed
        """
        remaining = self.provider.time_remaining()
        try:
            if self.provider.peek() is not None and remaining < self.threshold:
                logger.warning(
                    f"Token expiring soon (in {format_duration(remaining)}), forcing refresh...",
                    extra={"operation": "token_refresh"},
                )
                return await self.provider.force_refresh()
            return await self.provider.get_token()
        except Exception as e:
            logger.error(
                f"Token acquisition failed for batch: {e}",
                extra={"operation": "token_refresh", "status": "failed"},
            )
            error = AuthError(
                "Gmail authentication failed during deletion.",
                details=str(e) or type(e).__name__,
            )
            if self.on_auth_failure is not None:
                self.on_auth_failure(error)
            raise error from e
