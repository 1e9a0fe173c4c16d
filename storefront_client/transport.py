"""HTTP transport construction and upload progress reporting."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import IO, Union

import httpx

from storefront_client.config.settings import ClientSettings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
UploadSource = Union[bytes, str, Path, IO[bytes]]


def build_client(
    settings: ClientSettings,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the AsyncClient an engine sends every request through.

    ``transport`` replaces the network layer (tests pass ``httpx.MockTransport``
    or ``httpx.ASGITransport``).
    """
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=settings.timeout_seconds,
        headers=headers or {},
        transport=transport,
    )


def read_upload(source: UploadSource, filename: str | None = None) -> tuple[str, bytes]:
    """Load an upload source into memory so every retry resends the same bytes.

    Returns ``(filename, content)``. Paths supply their own name; raw bytes and
    file objects fall back to ``filename`` or the object's ``name``.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        return filename or path.name, path.read_bytes()
    if isinstance(source, (bytes, bytearray)):
        return filename or "upload", bytes(source)
    content = source.read()
    name = filename or Path(getattr(source, "name", "upload") or "upload").name
    return name, content


class ProgressByteStream(httpx.AsyncByteStream):
    """Wraps a request body stream and reports the fraction sent after each chunk."""

    def __init__(
        self,
        stream: httpx.AsyncByteStream,
        total: int,
        on_progress: ProgressCallback,
    ) -> None:
        self._stream = stream
        self._total = total
        self._on_progress = on_progress

    async def __aiter__(self) -> AsyncIterator[bytes]:
        sent = 0
        async for chunk in self._stream:
            sent += len(chunk)
            if self._total > 0:
                self._on_progress(min(sent / self._total, 1.0))
            yield chunk

    async def aclose(self) -> None:
        await self._stream.aclose()


def attach_progress(request: httpx.Request, on_progress: ProgressCallback) -> None:
    """Swap ``request``'s body stream for one that reports upload progress."""
    total = int(request.headers.get("Content-Length", 0))
    if total == 0:
        logger.debug("Upload to %s has no Content-Length, progress disabled", request.url)
        return
    request.stream = ProgressByteStream(request.stream, total, on_progress)  # type: ignore[arg-type]
