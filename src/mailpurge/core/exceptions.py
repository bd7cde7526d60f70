"""Custom exception hierarchy for the mailpurge bulk deletion engine."""

import requests


class MailPurgeError(Exception):
    """Base exception for mailpurge.

    This is the root exception class for all mailpurge-specific errors.
    All other custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: str | None = None):
        """Initialize the exception.

        Args:
            message: The main error message
            details: Optional additional details about the error
        """
        self.message = message
        self.details = details
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the complete error message."""
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ValidationError(MailPurgeError):
    """Precondition errors.

    Raised when a run cannot start because its inputs or environment are not
    acceptable: no signed-in caller, no targets, a store client that is not
    ready, or a run already in progress. A run that fails validation never
    creates an action log.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: str | None = None,
        details: str | None = None,
    ):
        """Initialize the validation error.

        Args:
            message: The main error message
            field: The field that failed validation
            value: The invalid value
            details: Optional additional details about the error
        """
        self.field = field
        self.value = value
        super().__init__(message, details)

    def _format_message(self) -> str:
        parts = [self.message]

        if self.field:
            parts.append(f"Field: {self.field}")

        if self.value:
            parts.append(f"Value: {self.value}")

        if self.details:
            parts.append(f"Details: {self.details}")

        return " | ".join(parts)


class AuthError(MailPurgeError):
    """Credential errors.

    Raised when no usable credential exists or a refresh fails. The caller
    is expected to surface a re-authentication prompt.
    """

    def __init__(
        self,
        message: str,
        reason: str = "expired",
        details: str | None = None,
    ):
        self.reason = reason
        super().__init__(message, details)


class ApiError(MailPurgeError):
    """Message store API errors.

    Raised when a page fetch or batch delete fails because of quota,
    permission or transient server problems.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
        details: str | None = None,
    ):
        """Initialize the API error.

        Args:
            message: The main error message
            status_code: The HTTP status code from the API response
            endpoint: The API endpoint that failed
            details: Optional additional details about the error
        """
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message, details)

    def _format_message(self) -> str:
        parts = [self.message]

        if self.status_code:
            parts.append(f"Status: {self.status_code}")

        if self.endpoint:
            parts.append(f"Endpoint: {self.endpoint}")

        if self.details:
            parts.append(f"Details: {self.details}")

        return " | ".join(parts)


class RateLimitError(ApiError):
    """Quota errors from the message store.

    Contains retry-after information when the API provides it.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
        endpoint: str | None = None,
        details: str | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(
            message=message,
            status_code=429,
            endpoint=endpoint,
            details=details,
        )

    def _format_message(self) -> str:
        msg = super()._format_message()
        if self.retry_after:
            msg += f" | Retry after: {self.retry_after}s"
        return msg


class RunawayGuardError(MailPurgeError):
    """Pagination did not terminate within the iteration cap for one target.

    Distinguishes a misbehaving page cursor from an ordinary API failure.
    """

    def __init__(self, target: str, attempts: int, details: str | None = None):
        self.target = target
        self.attempts = attempts
        super().__init__(
            f"Reached maximum processing attempts for {target}.", details
        )


class ActionLogError(MailPurgeError):
    """Action log storage errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: str | None = None,
    ):
        self.operation = operation
        super().__init__(message, details)

    def _format_message(self) -> str:
        parts = [self.message]

        if self.operation:
            parts.append(f"Operation: {self.operation}")

        if self.details:
            parts.append(f"Details: {self.details}")

        return " | ".join(parts)


def _error_message_from_response(response: requests.Response) -> str:
    """Pull the human readable message out of a Google API error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "Unknown error"

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or "Unknown error")
    if isinstance(error, str):
        return str(body.get("error_description") or error)
    return "Unknown error"


def wrap_http_error(exc: Exception, endpoint: str | None = None) -> MailPurgeError:
    """Wrap ``requests`` exceptions into the mailpurge exception hierarchy.

    Args:
        exc: The original exception raised by ``requests``
        endpoint: Optional endpoint context

    Returns:
        MailPurgeError: Wrapped exception
    """
    if isinstance(exc, MailPurgeError):
        return exc

    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        response = exc.response
        status_code = response.status_code
        error_msg = _error_message_from_response(response)

        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                message=error_msg,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                endpoint=endpoint,
            )

        if status_code == 401:
            return AuthError(
                message=f"Authentication failed: {error_msg}",
                details=f"Status: {status_code}",
            )

        return ApiError(
            message=error_msg,
            status_code=status_code,
            endpoint=endpoint,
        )

    if isinstance(exc, requests.exceptions.RequestException):
        return ApiError(
            message=f"Request failed: {exc}",
            endpoint=endpoint,
            details=f"Type: {type(exc).__name__}",
        )

    return MailPurgeError(
        message=f"Unexpected error: {exc}",
        details=f"Endpoint: {endpoint}, Type: {type(exc).__name__}"
        if endpoint
        else f"Type: {type(exc).__name__}",
    )


class JobStateError(MailPurgeError):
    """Illegal job status transition or unknown job id in the job runner."""

    def __init__(self, message: str, job_id: str | None = None, details: str | None = None):
        self.job_id = job_id
        super().__init__(message, details)
