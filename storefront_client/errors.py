"""Client error hierarchy and response-to-error mapping.

All storefront client errors extend StorefrontApiError and carry enough
context (status code, message, field errors, endpoint, method, raw payload)
for a caller to branch without re-reading the HTTP response.

Taxonomy:
- TransportError: network failure or timeout (retryable)
- ValidationError: envelope/schema mismatch or server-reported field errors
- AuthError: 401 / 403
- RateLimitError: 429
- ServerError: any other non-2xx (retryable when 5xx)
- RequestCancelledError: the owning engine was closed mid-flight
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import pydantic

from storefront_client.models.envelope import FieldError

if TYPE_CHECKING:
    from storefront_client.notifications import Notifier

logger = logging.getLogger(__name__)

FieldErrorSetter = Callable[[str, str], None]


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class StorefrontApiError(Exception):
    """Base error for every failure surfaced by the client."""

    status_code: int | None = None
    message: str = "An error occurred"
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        field_errors: list[FieldError] | None = None,
        payload: Any = None,
        endpoint: str | None = None,
        method: str | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        if status_code is not None:
            self.status_code = status_code
        self.field_errors = list(field_errors or [])
        self.payload = payload
        self.endpoint = endpoint
        self.method = method
        super().__init__(self.message)


class TransportError(StorefrontApiError):
    """Network failure or timeout; no HTTP response was received."""

    message = "Network error"
    retryable = True


class ValidationError(StorefrontApiError):
    """Envelope/schema mismatch, or field-level errors reported by the server."""

    message = "Validation error"

    def __init__(
        self,
        message: str | None = None,
        *,
        schema_errors: list[FieldError] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        # Envelope/schema mismatches; never routed to form fields.
        self.schema_errors = list(schema_errors or [])


class AuthError(StorefrontApiError):
    """Missing, expired or insufficient credentials (401 / 403)."""

    status_code = 401
    message = "Unauthorized: Please log in again"


class RateLimitError(StorefrontApiError):
    """Too many requests (429)."""

    status_code = 429
    message = "Too Many Requests: Please try again later"


class ServerError(StorefrontApiError):
    """Any other non-2xx response."""

    status_code = 500
    message = "An error occurred"

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code is None or self.status_code >= 500


class RequestCancelledError(StorefrontApiError):
    """The request was aborted because its engine was closed. Never notified."""

    message = "Request cancelled"


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def parse_field_errors(raw: Any) -> list[FieldError]:
    """Extract well-formed ``{field, message}`` entries from an ``errors`` list."""
    if not isinstance(raw, list):
        return []
    errors: list[FieldError] = []
    for item in raw:
        try:
            errors.append(FieldError.model_validate(item))
        except pydantic.ValidationError:
            logger.debug("Ignoring malformed field error entry: %r", item)
    return errors


def field_errors_from_pydantic(exc: pydantic.ValidationError) -> list[FieldError]:
    """Convert a pydantic ValidationError into envelope-style field errors."""
    return [
        FieldError(
            field=".".join(str(loc) for loc in err["loc"]),
            message=err["msg"],
            code=err["type"],
        )
        for err in exc.errors()
    ]


def error_from_response(
    status_code: int,
    payload: Any,
    *,
    endpoint: str | None = None,
    method: str | None = None,
) -> StorefrontApiError:
    """Map a non-2xx response to the matching StorefrontApiError subclass.

    ``payload`` is the decoded JSON body (or None when the body is not JSON).
    401, 403 and 429 use fixed user-facing messages; everything else takes
    the envelope's ``message`` when present.
    """
    body = payload if isinstance(payload, dict) else {}
    server_message = body.get("message") or body.get("error")
    field_errors = parse_field_errors(body.get("errors"))
    context: dict[str, Any] = {
        "status_code": status_code,
        "field_errors": field_errors,
        "payload": payload,
        "endpoint": endpoint,
        "method": method,
    }

    if status_code == 401:
        return AuthError("Unauthorized: Please log in again", **context)
    if status_code == 403:
        return AuthError("Forbidden: You lack permission", **context)
    if status_code == 429:
        return RateLimitError(**context)
    if 400 <= status_code < 500 and field_errors:
        return ValidationError(server_message, **context)
    return ServerError(
        server_message or f"Request failed with status code {status_code}", **context
    )


def handle_api_error(
    error: BaseException,
    set_field_error: FieldErrorSetter | None = None,
    notifier: Notifier | None = None,
) -> None:
    """Route an error to form fields when possible, otherwise notify its message.

    Cancelled requests are ignored.
    """
    if isinstance(error, RequestCancelledError):
        return

    if isinstance(error, StorefrontApiError) and error.field_errors and set_field_error:
        for field_error in error.field_errors:
            set_field_error(field_error.field, field_error.message)
        return

    if notifier is None:
        from storefront_client.notifications import LoggingNotifier

        notifier = LoggingNotifier()

    if isinstance(error, StorefrontApiError):
        notifier.error(error.message)
    elif str(error):
        notifier.error(str(error))
    else:
        notifier.error("An unexpected error occurred")
