"""Request engine: the single entry point for storefront HTTP calls.

Each engine owns an httpx.AsyncClient, an auth context and its in-flight
tasks, and shares a ResponseCache with other engines. Every call goes
through one response contract (the JSON envelope) and one failure policy:

- GET: optional debounce, envelope/schema validation, retries (default 3),
  result cached under the endpoint key, concurrent fetches of a key shared.
- POST/PUT/PATCH/DELETE: optional optimistic cache update, retries only when
  requested (default 0), affected keys revalidated after success or failure.
- Closing the engine cancels in-flight calls. They raise
  RequestCancelledError without notifications, on_error calls or cache writes.

Request lifecycle:
    idle → in-flight → success
                     → retrying → in-flight (up to retry_count times)
                     → failed
                     → cancelled (engine closed)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Coroutine, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx
import pydantic

from storefront_client.cache import CacheEntry, CacheSnapshot, Fetcher, ResponseCache
from storefront_client.config.invalidation import (
    BUNDLED_RULES_PATH,
    InvalidationRules,
    load_invalidation_rules,
)
from storefront_client.config.settings import ClientSettings
from storefront_client.context import ClientContext
from storefront_client.debounce import Debouncer
from storefront_client.errors import (
    FieldErrorSetter,
    RequestCancelledError,
    StorefrontApiError,
    TransportError,
    ValidationError,
    error_from_response,
    field_errors_from_pydantic,
)
from storefront_client.models.envelope import ApiResponse
from storefront_client.notifications import LoggingNotifier, Notifier
from storefront_client.transport import (
    ProgressCallback,
    UploadSource,
    attach_progress,
    build_client,
    read_upload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnError = Callable[[StorefrontApiError, str, str], None]


@dataclass
class RequestConfig:
    """Per-call options. Nothing here outlives the call."""

    message: bool = True  # Success notification (mutations only)
    silent: bool = False  # Suppress every notification
    retry_count: int | None = None  # None = engine default for the verb
    retry_delay: float | None = None  # Seconds; None = settings default
    optimistic_update: Any = None  # New value, or callable(current) -> value
    invalidate: Sequence[str] = ()  # Extra keys to revalidate after a mutation
    set_field_error: FieldErrorSetter | None = None
    request_options: dict[str, Any] = field(default_factory=dict)  # headers, params, timeout, cookies

    def __post_init__(self) -> None:
        if self.retry_count is not None and self.retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {self.retry_count}")
        if self.retry_delay is not None and self.retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {self.retry_delay}")


@dataclass
class RequestResult(Generic[T]):
    """Parsed outcome of a successful call."""

    data: T | None
    response: ApiResponse[T]
    affected_keys: list[str] = field(default_factory=list)


@dataclass
class BatchRequest:
    method: str
    endpoint: str
    body: Any = None


@dataclass
class BatchItemResult:
    """Per-item outcome of ``batch(..., return_exceptions=True)``."""

    request: BatchRequest
    result: RequestResult | None = None
    error: StorefrontApiError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RequestEngine:
    """Envelope-aware HTTP client with caching, retries and cancellation.

    Parameters
    ----------
    endpoint:
        Optional endpoint this engine is bound to; ``data``, ``response`` and
        ``error`` read its cache entry and ``refresh()`` fetches it.
    settings:
        Client settings (base URL, timeout, retry and debounce defaults).
    context:
        Auth token and default headers for this engine only.
    cache:
        Response cache, usually shared between engines. A private one is
        created when omitted.
    notifier:
        Receives success / error notifications (default: log records).
    data_schema:
        Type the envelope's ``data`` must validate against.
    auth:
        Send ``Authorization: Bearer <token>`` when the context has a token.
    on_error:
        Called with ``(error, endpoint, method)`` for every surfaced failure.
    debounce:
        Collapse rapid GETs of the same key into one request.
    debounce_delay:
        Debounce window in seconds (default from settings).
    immediate:
        Fetch the bound endpoint when entering ``async with``.
    invalidation_rules:
        Extra keys revalidated after a mutation (default: the bundled rules,
        or ``settings.invalidation_rules_path``).
    transport:
        Replacement httpx transport (tests).
    """

    def __init__(
        self,
        endpoint: str | None = None,
        *,
        settings: ClientSettings | None = None,
        context: ClientContext | None = None,
        cache: ResponseCache | None = None,
        notifier: Notifier | None = None,
        data_schema: Any = None,
        auth: bool = False,
        on_error: OnError | None = None,
        debounce: bool = False,
        debounce_delay: float | None = None,
        immediate: bool = True,
        invalidation_rules: InvalidationRules | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._settings = settings or ClientSettings()
        self._context = context or ClientContext()
        self._auth = auth
        self._cache = cache if cache is not None else ResponseCache()
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._envelope: Any = ApiResponse[data_schema] if data_schema is not None else ApiResponse[Any]
        self._on_error = on_error
        self._immediate = immediate

        self._debouncer: Debouncer | None = None
        if debounce:
            delay = self._settings.debounce_delay_seconds if debounce_delay is None else debounce_delay
            self._debouncer = Debouncer(delay)

        if invalidation_rules is None:
            invalidation_rules = load_invalidation_rules(
                self._settings.invalidation_rules_path or str(BUNDLED_RULES_PATH),
                api_prefix=self._settings.api_prefix,
            )
        self._rules = invalidation_rules

        self._client = build_client(
            self._settings, self._context.build_headers(auth=auth), transport
        )
        self._tasks: set[asyncio.Task] = set()
        self._registered: dict[str, Fetcher] = {}
        self._fetching = 0
        self._mutating = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RequestEngine:
        if self._immediate and self.endpoint is not None:
            try:
                await self.refresh()
            except StorefrontApiError as exc:
                # Already notified and recorded on the cache entry.
                logger.debug("Initial fetch of %s failed: %s", self.endpoint, exc.message)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel in-flight calls, drop this engine's fetchers and close the transport."""
        if self._closed:
            return
        self._closed = True

        if self._debouncer is not None:
            self._debouncer.cancel_all()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug("Cancelled %d in-flight request(s)", len(tasks))

        for key, fetcher in self._registered.items():
            self._cache.unregister(key, fetcher)
        self._registered.clear()

        await self._client.aclose()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def context(self) -> ClientContext:
        return self._context

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_fetching(self) -> bool:
        if self._fetching > 0:
            return True
        return self.endpoint is not None and self._cache.is_validating(self.endpoint)

    @property
    def is_mutating(self) -> bool:
        return self._mutating > 0

    @property
    def entry(self) -> CacheEntry | None:
        return self._cache.get(self.endpoint) if self.endpoint is not None else None

    @property
    def data(self) -> Any:
        entry = self.entry
        return entry.data if entry is not None else None

    @property
    def response(self) -> ApiResponse | None:
        entry = self.entry
        return entry.response if entry is not None else None

    @property
    def error(self) -> BaseException | None:
        entry = self.entry
        return entry.error if entry is not None else None

    def set_token(self, token: str | None) -> None:
        """Rebind this engine's auth token. Other engines are unaffected."""
        self._context = self._context.with_token(token)
        if self._auth and token:
            self._client.headers["Authorization"] = f"Bearer {token}"
        else:
            self._client.headers.pop("Authorization", None)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def refresh(self, config: RequestConfig | None = None) -> RequestResult:
        """Fetch the bound endpoint."""
        if self.endpoint is None:
            raise ValueError("refresh() requires an engine bound to an endpoint")
        return await self.get(self.endpoint, config)

    async def get(self, endpoint: str, config: RequestConfig | None = None) -> RequestResult:
        return await self._guard(self._get(endpoint, config or RequestConfig()))

    async def post(
        self, endpoint: str, body: Any = None, config: RequestConfig | None = None
    ) -> RequestResult:
        return await self._guard(self._mutate("POST", endpoint, body, config or RequestConfig()))

    async def put(
        self, endpoint: str, body: Any = None, config: RequestConfig | None = None
    ) -> RequestResult:
        return await self._guard(self._mutate("PUT", endpoint, body, config or RequestConfig()))

    async def patch(
        self, endpoint: str, body: Any = None, config: RequestConfig | None = None
    ) -> RequestResult:
        return await self._guard(self._mutate("PATCH", endpoint, body, config or RequestConfig()))

    async def delete(
        self, endpoint: str, body: Any = None, config: RequestConfig | None = None
    ) -> RequestResult:
        return await self._guard(self._mutate("DELETE", endpoint, body, config or RequestConfig()))

    async def upload_file(
        self,
        endpoint: str,
        file: UploadSource,
        on_progress: ProgressCallback | None = None,
        *,
        filename: str | None = None,
        content_type: str = "application/octet-stream",
        config: RequestConfig | None = None,
    ) -> RequestResult:
        """POST ``file`` as multipart form field ``file``.

        ``on_progress`` receives the fraction of the body sent so far (0.0–1.0).
        """
        name, content = read_upload(file, filename)
        files = {"file": (name, content, content_type)}
        return await self._guard(
            self._mutate(
                "POST",
                endpoint,
                None,
                config or RequestConfig(),
                files=files,
                on_progress=on_progress,
            )
        )

    async def batch(
        self,
        requests: Iterable[BatchRequest | tuple],
        *,
        return_exceptions: bool = False,
        silent: bool = False,
    ) -> list[Any]:
        """Run several requests concurrently, with no ordering among them.

        By default the first failure fails the whole batch. With
        ``return_exceptions=True`` a BatchItemResult is returned per request,
        in input order, so successful siblings are not masked.
        """
        normalized = [r if isinstance(r, BatchRequest) else BatchRequest(*r) for r in requests]
        return await self._guard(self._batch(normalized, return_exceptions, silent))

    async def invalidate(self, keys: str | Iterable[str] | None) -> list[str]:
        """Revalidate the given cache key(s); no-op for empty input."""
        return await self._cache.invalidate(keys)

    def mutate(self, update: Any, key: str | None = None) -> CacheSnapshot:
        """Locally replace cached data for ``key`` (default: the bound endpoint)."""
        target = key or self.endpoint
        if target is None:
            raise ValueError("mutate() requires a key or an engine bound to an endpoint")
        return self._cache.mutate(target, update)

    def affected_keys(self, endpoint: str, config: RequestConfig | None = None) -> list[str]:
        """Cache keys a mutation on ``endpoint`` revalidates, in order, without duplicates."""
        keys = [endpoint]
        if config is not None:
            keys.extend(config.invalidate)
        keys.extend(self._rules.keys_for(endpoint))
        return list(dict.fromkeys(keys))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _guard(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` as a task this engine can cancel on close."""
        if self._closed:
            coro.close()
            raise RequestCancelledError()

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._closed and task.cancelled():
                raise RequestCancelledError() from None
            raise
        finally:
            self._tasks.discard(task)

    def _ensure_open(self, method: str, endpoint: str) -> None:
        if self._closed:
            raise RequestCancelledError(endpoint=endpoint, method=method)

    async def _get(self, endpoint: str, cfg: RequestConfig) -> RequestResult:
        retry_count = self._settings.retry_count if cfg.retry_count is None else cfg.retry_count

        async def fetcher() -> RequestResult:
            task = asyncio.current_task()
            if task is not None:
                self._tasks.add(task)
            try:
                return await self._with_retries("GET", endpoint, None, cfg, retry_count)
            finally:
                if task is not None:
                    self._tasks.discard(task)

        self._cache.register(endpoint, fetcher)
        self._registered[endpoint] = fetcher

        self._fetching += 1
        try:
            if self._debouncer is not None:
                return await self._debouncer.call(
                    endpoint, lambda: self._cache.fetch(endpoint, fetcher)
                )
            return await self._cache.fetch(endpoint, fetcher)
        except RequestCancelledError:
            raise
        except StorefrontApiError as exc:
            self._report_failure(exc, "GET", endpoint, cfg)
            raise
        finally:
            self._fetching -= 1

    async def _mutate(
        self,
        method: str,
        endpoint: str,
        body: Any,
        cfg: RequestConfig,
        *,
        files: dict | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RequestResult:
        retry_count = (
            self._settings.mutation_retry_count if cfg.retry_count is None else cfg.retry_count
        )
        affected = self.affected_keys(endpoint, cfg)
        snapshot: CacheSnapshot | None = None

        self._mutating += 1
        try:
            if cfg.optimistic_update is not None:
                snapshot = self._cache.mutate(endpoint, cfg.optimistic_update)

            try:
                result = await self._with_retries(
                    method, endpoint, body, cfg, retry_count, files=files, on_progress=on_progress
                )
            except (RequestCancelledError, asyncio.CancelledError):
                if snapshot is not None:
                    self._cache.restore(snapshot)
                raise
            except StorefrontApiError as exc:
                self._report_failure(exc, method, endpoint, cfg)
                # Discard any optimistic value in favour of server state.
                await self._cache.invalidate(affected)
                raise

            if cfg.message and not cfg.silent and result.response.success:
                self._notifier.success(
                    result.response.message or "Operation completed successfully"
                )
            result.affected_keys = await self._cache.invalidate(affected)
            return result
        finally:
            self._mutating -= 1

    async def _batch(
        self, requests: list[BatchRequest], return_exceptions: bool, silent: bool
    ) -> list[Any]:
        self._mutating += 1
        try:
            outcomes = await asyncio.gather(
                *(
                    self._send(
                        r.method.upper(),
                        r.endpoint,
                        r.body,
                        None,
                        request_id=str(uuid.uuid4()),
                        attempt=1,
                    )
                    for r in requests
                ),
                return_exceptions=return_exceptions,
            )
        except RequestCancelledError:
            raise
        except StorefrontApiError as exc:
            logger.warning(
                "Batch of %d request(s) failed: %s",
                len(requests),
                exc.message,
                extra={"endpoint": exc.endpoint, "method": exc.method, "error_reason": exc.message},
            )
            if not silent:
                self._notifier.error(exc.message or "Batch request failed")
            raise
        finally:
            self._mutating -= 1

        if not return_exceptions:
            return list(outcomes)

        items: list[BatchItemResult] = []
        for request, outcome in zip(requests, outcomes):
            if isinstance(outcome, StorefrontApiError):
                items.append(BatchItemResult(request=request, error=outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                items.append(BatchItemResult(request=request, result=outcome))

        failed = sum(1 for item in items if not item.ok)
        if failed and not silent:
            self._notifier.error(f"{failed} of {len(items)} batch requests failed")
        return items

    async def _with_retries(
        self,
        method: str,
        endpoint: str,
        body: Any,
        cfg: RequestConfig,
        retry_count: int,
        *,
        files: dict | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RequestResult:
        """Send with up to ``retry_count`` retries of retryable failures.

        Delay between attempts is fixed (``retry_delay``). Only the last
        failure is raised.
        """
        retry_delay = (
            self._settings.retry_delay_seconds if cfg.retry_delay is None else cfg.retry_delay
        )
        request_id = str(uuid.uuid4())
        last_exception: StorefrontApiError | None = None

        for attempt in range(retry_count + 1):
            self._ensure_open(method, endpoint)
            try:
                result = await self._send(
                    method,
                    endpoint,
                    body,
                    cfg.request_options,
                    request_id=request_id,
                    attempt=attempt + 1,
                    files=files,
                    on_progress=on_progress,
                )
            except StorefrontApiError as exc:
                if not exc.retryable:
                    raise
                last_exception = exc
                if attempt < retry_count:
                    logger.warning(
                        "%s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                        method,
                        endpoint,
                        attempt + 1,
                        retry_count + 1,
                        retry_delay,
                        exc.message,
                        extra={
                            "request_id": request_id,
                            "endpoint": endpoint,
                            "method": method,
                            "attempt": attempt + 1,
                            "error_reason": exc.message,
                        },
                    )
                    await asyncio.sleep(retry_delay)
                continue

            # A close during the last attempt must not leak into the cache.
            self._ensure_open(method, endpoint)
            return result

        logger.error(
            "%s %s failed after %d attempt(s)",
            method,
            endpoint,
            retry_count + 1,
            extra={"request_id": request_id, "endpoint": endpoint, "method": method},
        )
        raise last_exception  # type: ignore[misc]

    async def _send(
        self,
        method: str,
        endpoint: str,
        body: Any,
        options: dict[str, Any] | None,
        *,
        request_id: str,
        attempt: int,
        files: dict | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RequestResult:
        """One HTTP round trip, mapped onto the error taxonomy."""
        options = dict(options or {})
        headers = {"X-Request-ID": request_id}
        if files is None:
            headers["Content-Type"] = "application/json"
        headers.update(options.pop("headers", None) or {})

        request = self._client.build_request(
            method,
            endpoint,
            json=self._encode_body(body),
            files=files,
            headers=headers,
            **options,
        )
        if on_progress is not None:
            attach_progress(request, on_progress)

        started = time.monotonic()
        try:
            response = await self._client.send(request)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Request timed out after {self._settings.timeout_seconds:g}s",
                endpoint=endpoint,
                method=method,
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                str(exc) or "Network error", endpoint=endpoint, method=method
            ) from exc

        logger.debug(
            "%s %s -> %d",
            method,
            endpoint,
            response.status_code,
            extra={
                "request_id": request_id,
                "endpoint": endpoint,
                "method": method,
                "status_code": response.status_code,
                "attempt": attempt,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )

        payload = self._decode(response)
        if response.is_error:
            raise error_from_response(
                response.status_code, payload, endpoint=endpoint, method=method
            )
        return self._parse(payload, method, endpoint, response.status_code)

    @staticmethod
    def _encode_body(body: Any) -> Any:
        if isinstance(body, pydantic.BaseModel):
            return body.model_dump(mode="json", exclude_none=True)
        return body

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def _parse(self, payload: Any, method: str, endpoint: str, status_code: int) -> RequestResult:
        """Validate the envelope (and ``data`` against the schema, if any)."""
        context: dict[str, Any] = {
            "status_code": status_code,
            "payload": payload,
            "endpoint": endpoint,
            "method": method,
        }
        if payload is None:
            raise ValidationError("Invalid API response: body is not JSON", **context)

        try:
            envelope = self._envelope.model_validate(payload)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(loc) for loc in first["loc"]) or "body"
            raise ValidationError(
                f"Invalid API response: {location}: {first['msg']}",
                schema_errors=field_errors_from_pydantic(exc),
                **context,
            ) from exc

        if not envelope.success and envelope.errors:
            raise ValidationError(envelope.message, field_errors=envelope.errors, **context)

        return RequestResult(data=envelope.data, response=envelope)

    def _report_failure(
        self, exc: StorefrontApiError, method: str, endpoint: str, cfg: RequestConfig
    ) -> None:
        """Notify (or route field errors) and call on_error for a surfaced failure."""
        if isinstance(exc, RequestCancelledError):
            return

        logger.warning(
            "%s %s failed: %s",
            method,
            endpoint,
            exc.message,
            extra={
                "endpoint": endpoint,
                "method": method,
                "status_code": exc.status_code,
                "error_reason": exc.message,
            },
        )

        if exc.field_errors and cfg.set_field_error is not None:
            for field_error in exc.field_errors:
                cfg.set_field_error(field_error.field, field_error.message)
        elif not cfg.silent:
            self._notifier.error(exc.message)

        if self._on_error is not None:
            self._on_error(exc, endpoint, method)
