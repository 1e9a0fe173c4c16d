"""Per-consumer request context.

Each engine owns its context, so concurrent consumers with different
tokens (e.g. an admin and a shopper session in the same process) never
share auth headers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class ClientContext:
    """Auth token and extra default headers for one consumer."""

    token: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def with_token(self, token: str | None) -> ClientContext:
        return replace(self, token=token)

    def build_headers(self, *, auth: bool) -> dict[str, str]:
        """Default headers, with ``Authorization`` only when auth is requested and a token exists."""
        headers = dict(self.headers)
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        else:
            headers.pop("Authorization", None)
        return headers
