"""Resilient HTTP client: timeout, retry with backoff + jitter, GET cache."""

from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from typing import Any, Awaitable, Callable

import httpx

from lawdesk.cache.interface import make_cache_key
from lawdesk.context import RequestContext
from lawdesk.core.cancellation import TIMEOUT, CancellationToken
from lawdesk.core.errors import (
    ApiError,
    ApiErrorKind,
    HttpStatusError,
    RequestCancelled,
    RequestTimeout,
)
from lawdesk.core.models import CacheEntry, ClientOptions, HttpMethod, RequestDescriptor

logger = logging.getLogger(__name__)

JSON_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

BACKOFF_FACTOR = 1.5

_UNSET: Any = object()


class ResilientApiClient:
    """Issues one logical request as up to ``retries + 1`` sequential attempts.

    Only network and timeout failures are retried; any other failure ends
    the loop unless it was already the last attempt. Successful GETs (with
    caching enabled) land in the context's response cache, which also backs
    the offline short-circuit and the stale serve after total failure.
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        context: RequestContext | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._options = options or ClientOptions()
        self._context = context or RequestContext()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=None, follow_redirects=True)
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def context(self) -> RequestContext:
        return self._context

    # -- configuration ------------------------------------------------------

    def set_auth_token(self, token: str) -> None:
        headers = dict(self._options.headers)
        headers["Authorization"] = f"Bearer {token}"
        self._options = self._options.model_copy(update={"headers": headers})

    def clear_cache(self) -> None:
        self._context.cache.clear()

    def build_descriptor(
        self,
        endpoint: str,
        method: HttpMethod | str = HttpMethod.GET,
        body: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = _UNSET,
        retries: int | None = None,
        retry_delay: float | None = None,
        cache: bool | None = None,
        cache_ttl: float | None = None,
    ) -> RequestDescriptor:
        """Merge client defaults with call overrides; the call wins."""
        opts = self._options
        if endpoint.startswith(("http://", "https://")):
            url = endpoint
        else:
            url = f"{opts.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        if params:
            url = str(httpx.URL(url).copy_merge_params(params))
        return RequestDescriptor(
            method=HttpMethod(method.upper() if isinstance(method, str) else method),
            url=url,
            headers={**JSON_HEADERS, **opts.headers, **(headers or {})},
            body=body,
            timeout=opts.timeout if timeout is _UNSET else timeout,
            retries=opts.retries if retries is None else retries,
            retry_delay=opts.retry_delay if retry_delay is None else retry_delay,
            cache=opts.cache if cache is None else cache,
            cache_ttl=opts.cache_ttl if cache_ttl is None else cache_ttl,
        )

    # -- public verbs -------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        method: HttpMethod | str = HttpMethod.GET,
        body: Any = None,
        *,
        cancel_token: CancellationToken | None = None,
        **overrides: Any,
    ) -> Any:
        descriptor = self.build_descriptor(endpoint, method, body, **overrides)
        return await self.send(descriptor, cancel_token=cancel_token)

    async def get(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, HttpMethod.GET, **kwargs)

    async def post(self, endpoint: str, data: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, HttpMethod.POST, data, **kwargs)

    async def put(self, endpoint: str, data: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, HttpMethod.PUT, data, **kwargs)

    async def patch(self, endpoint: str, data: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, HttpMethod.PATCH, data, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, HttpMethod.DELETE, **kwargs)

    # -- engine -------------------------------------------------------------

    async def send(
        self,
        descriptor: RequestDescriptor,
        cancel_token: CancellationToken | None = None,
    ) -> Any:
        request_id = uuid.uuid4().hex[:8]
        t_start = time.time()
        outcome = "error"
        await self._trace(request_id, "request_start", {
            "method": descriptor.method.value,
            "url": descriptor.url,
            "retries": descriptor.retries,
            "cache": descriptor.is_cacheable,
        })
        try:
            result = await self._send(descriptor, request_id, cancel_token)
            outcome = "ok"
            return result
        except RequestCancelled:
            outcome = "cancelled"
            raise
        finally:
            await self._trace(request_id, "request_done", {
                "url": descriptor.url,
                "outcome": outcome,
                "total_latency_ms": round((time.time() - t_start) * 1000, 2),
            })
            await self._flush(request_id)

    async def _send(
        self,
        descriptor: RequestDescriptor,
        request_id: str,
        cancel_token: CancellationToken | None,
    ) -> Any:
        cache = self._context.cache
        connectivity = self._context.connectivity
        url = descriptor.url
        key = make_cache_key(descriptor.method.value, url, descriptor.body)

        # 1. Offline short-circuit -----------------------------------------
        if connectivity.is_offline():
            logger.warning("[%s] Network is offline", request_id)
            if descriptor.is_cacheable:
                cached = cache.get(key)
                if cached is not None:
                    logger.info("[%s] Returning cached response for %s", request_id, url)
                    await self._trace(request_id, "cache_hit", {"url": url, "offline": True})
                    return cached.value
            raise ApiError(ApiErrorKind.NETWORK, "Network is offline")

        # 2./3. Fresh hit, or lazy eviction of a stale entry -----------------
        stale: CacheEntry | None = None
        if descriptor.is_cacheable:
            cached = cache.get(key)
            if cached is not None:
                age = cache.now() - cached.stored_at
                if cache.is_fresh(cached, descriptor.cache_ttl):
                    logger.info("[%s] Returning cached response for %s (age: %.3fs)", request_id, url, age)
                    await self._trace(request_id, "cache_hit", {"url": url, "age_s": round(age, 3)})
                    return cached.value
                logger.info("[%s] Cache expired for %s, fetching fresh data", request_id, url)
                cache.evict(key)
                stale = cached

        # 4. Attempt loop --------------------------------------------------
        total = descriptor.retries + 1
        last_error: ApiError | None = None
        attempt = 0
        while attempt <= descriptor.retries:
            if cancel_token is not None and cancel_token.is_cancelled():
                raise RequestCancelled(f"Request to {url} was cancelled")

            logger.info("[%s] Request attempt %d/%d to %s", request_id, attempt + 1, total, url)
            t0 = time.time()
            try:
                data = await self._attempt(descriptor, cancel_token)
            except RequestCancelled:
                logger.info("[%s] Request to %s cancelled", request_id, url)
                raise
            except Exception as exc:
                last_error = ApiError.from_exception(exc, connectivity.is_likely_network_issue)
                if last_error.kind == ApiErrorKind.NETWORK:
                    connectivity.record_failure()
                logger.warning(
                    "[%s] Request attempt %d failed: %s (%s)",
                    request_id, attempt + 1, last_error.message, last_error.kind.value,
                )
                await self._trace(request_id, "attempt_failed", {
                    "attempt": attempt + 1,
                    "kind": last_error.kind.value,
                    "status": last_error.status,
                    "error": last_error.message,
                })

                # Non-transient errors are not retried blindly.
                if attempt >= descriptor.retries or not last_error.retryable:
                    break

                delay = self.retry_delay(attempt, descriptor.retry_delay)
                logger.info("[%s] Retrying in %.3fs...", request_id, delay)
                await self._trace(request_id, "retry_scheduled", {
                    "attempt": attempt + 1,
                    "delay_s": round(delay, 3),
                })
                await self._backoff(delay, cancel_token, url)
                attempt += 1
                continue

            elapsed = time.time() - t0
            connectivity.record_success()
            logger.info("[%s] Request to %s succeeded in %.3fs", request_id, url, elapsed)
            await self._trace(request_id, "attempt", {
                "attempt": attempt + 1,
                "status": "ok",
                "latency_ms": round(elapsed * 1000, 2),
            })
            if descriptor.is_cacheable:
                cache.set(key, data)
                logger.info("[%s] Cached response for %s", request_id, url)
            return data

        # 5. Final failure: last-resort stale serve ------------------------
        if descriptor.is_cacheable:
            fallback = cache.get(key) or stale
            if fallback is not None:
                logger.warning("[%s] Returning stale cached data after all retries failed", request_id)
                await self._trace(request_id, "stale_served", {"url": url})
                return fallback.value

        if last_error is None:
            raise ApiError(ApiErrorKind.UNKNOWN, f"No request attempts were made to {url}")
        logger.error("[%s] All %d request attempts to %s failed", request_id, attempt + 1, url)
        raise last_error

    def retry_delay(self, attempt: int, base_delay: float) -> float:
        """``base * 1.5^attempt`` plus up to ``retry_jitter`` seconds of jitter."""
        backoff = base_delay * BACKOFF_FACTOR ** attempt
        return backoff + self._rng.uniform(0, self._options.retry_jitter)

    async def _backoff(self, delay: float, cancel_token: CancellationToken | None, url: str) -> None:
        if cancel_token is None:
            await self._sleep(delay)
            return
        sleeper = asyncio.ensure_future(self._sleep(delay))
        unregister = cancel_token.register(sleeper.cancel)
        try:
            await sleeper
        except asyncio.CancelledError:
            if not cancel_token.is_cancelled():
                raise
            raise RequestCancelled(f"Request to {url} was cancelled") from None
        finally:
            unregister()

    async def _attempt(
        self,
        descriptor: RequestDescriptor,
        cancel_token: CancellationToken | None,
    ) -> Any:
        token = CancellationToken(parent=cancel_token)
        if descriptor.timeout:
            token.cancel_after(descriptor.timeout, reason=TIMEOUT)
        task = asyncio.ensure_future(self._fetch(descriptor))
        unregister = token.register(task.cancel)
        try:
            return await task
        except asyncio.CancelledError:
            if not token.is_cancelled():
                raise
            if token.reason == TIMEOUT:
                raise RequestTimeout(f"Request timed out after {descriptor.timeout}s") from None
            raise RequestCancelled(f"Request to {descriptor.url} was cancelled") from None
        finally:
            unregister()
            token.dispose()

    async def _fetch(self, descriptor: RequestDescriptor) -> Any:
        kwargs: dict[str, Any] = {"headers": descriptor.headers}
        if descriptor.body is not None:
            if isinstance(descriptor.body, (str, bytes)):
                kwargs["content"] = descriptor.body
            else:
                kwargs["json"] = descriptor.body
        response = await self._http.request(descriptor.method.value, descriptor.url, **kwargs)

        if not response.is_success:
            raise _status_error(response)

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return response.json()
        return response.text

    # -- telemetry (never allowed to break a request) -----------------------

    async def _trace(self, request_id: str, event_type: str, data: dict[str, Any]) -> None:
        try:
            await self._context.trace.emit(request_id, event_type, data)
        except Exception as exc:
            logger.warning("trace emit failed for %s: %s", request_id, exc)

    async def _flush(self, request_id: str) -> None:
        try:
            await self._context.trace.flush(request_id)
        except Exception as exc:
            logger.warning("trace flush failed for %s: %s", request_id, exc)

    # -- lifecycle ----------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> ResilientApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _status_error(response: httpx.Response) -> HttpStatusError:
    status = response.status_code
    try:
        payload = response.json()
    except ValueError:
        payload = None
    message = None
    if isinstance(payload, dict):
        for field in ("message", "detail", "error"):
            value = payload.get(field)
            if isinstance(value, str) and value:
                message = value
                break
    if message is None:
        return HttpStatusError(status, f"HTTP error {status}")
    return HttpStatusError(status, message, from_body=True)
