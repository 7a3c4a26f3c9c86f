"""
BaseAPIService - Async HTTP core shared by every domain service.

Combines:
- CacheStore for read-call response caching
- InterceptorPipeline for request/response transforms
- RetryPolicy for transient-failure retries with backoff
- BatchOrchestrator for bounded-concurrency batch operations
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Mapping, Sequence, TypeVar
from urllib.parse import urlencode

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from mindnote.services.batch import (
    BatchOperationResult,
    BatchOptions,
    BatchOrchestrator,
)
from mindnote.services.cache import CacheStore
from mindnote.services.errors import (
    HTTPStatusFailure,
    ServiceError,
    classify_error,
)
from mindnote.services.interceptors import (
    InterceptorPipeline,
    RequestInterceptor,
    ResponseInterceptor,
)
from mindnote.services.responses import (
    ApiResponse,
    ErrorInfo,
    PaginatedResponse,
)
from mindnote.services.retry import Fail, RetryPolicy
from mindnote.services.validation import Rule, validate_params
from mindnote.settings import Settings, global_settings

T = TypeVar("T")
R = TypeVar("R")

READ_METHODS = frozenset({"GET"})


@dataclass
class ServiceConfig:
    """Service-level defaults for every call."""

    base_url: str
    timeout: float = 30.0  # seconds
    retries: int = 3
    retry_delay: float = 1.0  # seconds
    backoff_factor: float = 1.0
    enable_logging: bool = True
    enable_caching: bool = True
    cache_ttl: timedelta = timedelta(minutes=5)
    cache_max_size: int = 500
    auth_token: str | None = None
    default_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> "ServiceConfig":
        """Build a config from application settings."""
        settings = settings or global_settings
        config = cls(
            base_url=settings.api_base_url,
            timeout=settings.api_timeout,
            retries=settings.api_retries,
            retry_delay=settings.api_retry_delay,
            backoff_factor=settings.api_backoff_factor,
            enable_logging=settings.api_enable_logging,
            enable_caching=settings.api_enable_caching,
            cache_ttl=timedelta(seconds=settings.api_cache_ttl_seconds),
            cache_max_size=settings.api_cache_max_size,
            auth_token=settings.api_auth_token,
        )
        return replace(config, **overrides)


@dataclass
class RequestOptions:
    """Per-call overrides. None means "use the service default"."""

    method: str = "GET"
    body: Any = None
    params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] | None = None
    custom_headers: Mapping[str, str] | None = None
    timeout: float | None = None
    retries: int | None = None
    retry_delay: float | None = None
    cache_ttl: timedelta | None = None
    skip_auth: bool = False
    skip_cache: bool = False

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if self.retries is not None and self.retries < 0:
            raise ValueError("retries must be >= 0")

    @property
    def is_read(self) -> bool:
        return self.method in READ_METHODS


class BaseAPIService:
    """
    Base class for API services.

    Usage:
        class TagsService(BaseAPIService):
            async def get_tag(self, tag_id: str) -> ApiResponse:
                return await self.get(f"/tags/{tag_id}")

        async with TagsService(ServiceConfig(base_url="https://api.example.com")) as tags:
            response = await tags.get_tag("t1")
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: CacheStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or ServiceConfig.from_settings()
        self._sleep = sleep

        self._cache = cache if cache is not None else CacheStore(
            max_size=self.config.cache_max_size,
            default_ttl=self.config.cache_ttl,
            clock=clock,
        )
        self._interceptors = InterceptorPipeline()
        self._retry_policy = RetryPolicy(
            delay=self.config.retry_delay,
            backoff_factor=self.config.backoff_factor,
        )
        self._batch = BatchOrchestrator(sleep=sleep)

        # HTTP client (lazy initialization)
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._transport = transport

    @property
    def service_name(self) -> str:
        return type(self).__name__

    @property
    def cache(self) -> CacheStore:
        return self._cache

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
            )
        return self._http_client

    # Interceptors

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> None:
        """Register a transform applied to every outgoing request."""
        self._interceptors.add_request_interceptor(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> None:
        """Register a transform applied to every successful response."""
        self._interceptors.add_response_interceptor(interceptor)

    # Cache management

    def clear_cache(self) -> int:
        """Drop every cached response."""
        return self._cache.clear()

    def clear_expired_cache(self) -> int:
        """Drop cached responses past their TTL."""
        return self._cache.cleanup_expired()

    # Logging

    def log(self, level: str, message: str, **data: Any) -> None:
        """Emit a structured log record. Never raises."""
        if not self.config.enable_logging:
            return
        try:
            logger.bind(service=self.service_name, **data).log(
                level.upper(), f"[API:{self.service_name}] {message}"
            )
        except Exception:  # logging is best-effort
            pass

    # Envelopes

    def create_api_response(
        self,
        data: Any = None,
        success: bool = True,
        message: str | None = None,
        request_id: str | None = None,
    ) -> ApiResponse[Any]:
        """Create a standard success envelope."""
        return ApiResponse(
            success=success,
            data=data,
            message=message,
            request_id=request_id,
        )

    def create_error_response(
        self,
        error: BaseException,
        request_id: str | None = None,
    ) -> ApiResponse[Any]:
        """Create a failure envelope from any exception."""
        if isinstance(error, ServiceError):
            info = ErrorInfo(**error.to_dict())
            request_id = request_id or error.request_id
        else:
            info = ErrorInfo(code="INTERNAL_ERROR", message=str(error))
        return ApiResponse(success=False, error=info, request_id=request_id)

    def validate_params(
        self,
        params: Mapping[str, Any],
        rules: Mapping[str, Sequence[Rule]],
    ) -> None:
        """Raise ValidationError if `params` breaks any rule."""
        validate_params(params, rules)

    # Core request

    @staticmethod
    def _generate_request_id() -> str:
        return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    def _build_url(self, endpoint: str, params: Mapping[str, Any] | None) -> str:
        url = f"{self.config.base_url}{endpoint}"
        if params:
            query = urlencode(_flatten_params(params))
            if query:
                url = f"{url}{'&' if '?' in url else '?'}{query}"
        return url

    async def request(
        self,
        endpoint: str,
        options: RequestOptions | None = None,
    ) -> ApiResponse[Any]:
        """
        Execute a call with caching, interceptors, deadline and retries.

        Args:
            endpoint: Path appended to the configured base URL
            options: Per-call overrides

        Returns:
            ApiResponse envelope parsed from the response body

        Raises:
            ServiceError: Classified failure after retries are exhausted
        """
        options = options or RequestOptions()
        request_id = self._generate_request_id()
        url = self._build_url(endpoint, options.params)

        use_cache = (
            self.config.enable_caching and options.is_read and not options.skip_cache
        )
        cache_key = (
            self._cache.generate_key(options.method, url, options.body)
            if use_cache
            else None
        )

        if cache_key is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self.log("info", "Cache hit", endpoint=endpoint, request_id=request_id)
                cached.request_id = request_id
                return cached

        remaining = options.retries if options.retries is not None else self.config.retries
        attempt = 0

        while True:
            attempt += 1
            started = time.perf_counter()
            try:
                response = await self._attempt(url, options, request_id)
                result = self._parse_envelope(response, request_id)
            except Exception as e:
                duration = _elapsed_ms(started)
                error = classify_error(e, context=endpoint, request_id=request_id)
                self.log(
                    "error",
                    "Request failed",
                    endpoint=endpoint,
                    request_id=request_id,
                    attempt=attempt,
                    duration=duration,
                    status=error.status_code,
                    error=error.message,
                    code=error.code,
                )

                decision = self._retry_policy.decide(
                    error, remaining, attempt=attempt, delay=options.retry_delay
                )
                if isinstance(decision, Fail):
                    if decision.error is e:
                        raise
                    raise decision.error from e

                self.log(
                    "info",
                    "Retrying request",
                    endpoint=endpoint,
                    request_id=request_id,
                    attempt=attempt + 1,
                    delay=decision.delay,
                )
                remaining -= 1
                await self._sleep(decision.delay)
                continue

            self.log(
                "info",
                "Request successful",
                endpoint=endpoint,
                request_id=request_id,
                attempt=attempt,
                duration=_elapsed_ms(started),
                status=response.status_code,
            )
            break

        # Only successful envelopes are cached
        if cache_key is not None and result.success:
            self._cache.set(cache_key, result, options.cache_ttl)

        return result

    async def _attempt(
        self,
        url: str,
        options: RequestOptions,
        request_id: str,
    ) -> httpx.Response:
        """One exchange: build, transform, send under deadline, check status."""
        client = await self._get_http_client()
        timeout = options.timeout if options.timeout is not None else self.config.timeout
        request = client.build_request(
            options.method,
            url,
            headers=self._build_headers(options, request_id),
            json=options.body if options.body is not None else None,
            timeout=httpx.Timeout(timeout),
        )
        request = self._interceptors.apply_request(request)

        response = await asyncio.wait_for(client.send(request), timeout=timeout)

        if not response.is_success:
            raise _status_failure(response)

        return self._interceptors.apply_response(response)

    def _build_headers(self, options: RequestOptions, request_id: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Request-ID": request_id,
            **self.config.default_headers,
        }
        if self.config.auth_token and not options.skip_auth:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        if options.custom_headers:
            headers.update(options.custom_headers)
        if options.headers:
            headers.update(options.headers)
        return headers

    @staticmethod
    def _parse_envelope(response: httpx.Response, request_id: str) -> ApiResponse[Any]:
        payload = response.json() if response.content else None
        if isinstance(payload, dict) and "success" in payload:
            envelope = ApiResponse.model_validate(payload)
            if envelope.request_id is None:
                envelope.request_id = request_id
            return envelope
        return ApiResponse(success=True, data=payload, request_id=request_id)

    # Convenience wrappers

    async def get(
        self, endpoint: str, options: RequestOptions | None = None
    ) -> ApiResponse[Any]:
        return await self.request(endpoint, _with(options, method="GET"))

    async def post(
        self, endpoint: str, data: Any = None, options: RequestOptions | None = None
    ) -> ApiResponse[Any]:
        return await self.request(endpoint, _with(options, method="POST", body=data))

    async def put(
        self, endpoint: str, data: Any = None, options: RequestOptions | None = None
    ) -> ApiResponse[Any]:
        return await self.request(endpoint, _with(options, method="PUT", body=data))

    async def patch(
        self, endpoint: str, data: Any = None, options: RequestOptions | None = None
    ) -> ApiResponse[Any]:
        return await self.request(endpoint, _with(options, method="PATCH", body=data))

    async def delete(
        self, endpoint: str, options: RequestOptions | None = None
    ) -> ApiResponse[Any]:
        return await self.request(endpoint, _with(options, method="DELETE"))

    async def get_paginated(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> PaginatedResponse[Any]:
        """GET a listing endpoint and return its page."""
        merged = dict(options.params or {}) if options else {}
        merged.update(params or {})
        response = await self.request(
            endpoint, _with(options, method="GET", params=merged)
        )
        try:
            return PaginatedResponse.model_validate(response.data)
        except PydanticValidationError as e:
            raise classify_error(
                e, context=endpoint, request_id=response.request_id
            ) from e

    async def batch_operation(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[R]],
        options: BatchOptions | None = None,
    ) -> BatchOperationResult[R]:
        """Run `operation` over `items` with bounded concurrency."""
        result = await self._batch.run(items, operation, options)
        self.log(
            "info",
            "Batch operation finished",
            total=result.total_processed,
            succeeded=len(result.successful),
            failed=len(result.failed),
            success_rate=result.success_rate,
            aborted=result.aborted,
        )
        return result

    # Lifecycle

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug(f"{self.service_name} closed")

    async def __aenter__(self) -> "BaseAPIService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _with(options: RequestOptions | None, **changes: Any) -> RequestOptions:
    if options is None:
        return RequestOptions(**changes)
    return replace(options, **changes)


def _flatten_params(params: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Drop None values and comma-join sequences."""
    flat: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            value = ",".join(str(v) for v in value)
        elif isinstance(value, bool):
            value = "true" if value else "false"
        flat.append((key, str(value)))
    return flat


def _status_failure(response: httpx.Response) -> HTTPStatusFailure:
    """Read the structured error body of a non-success response."""
    message = response.reason_phrase or f"HTTP {response.status_code}"
    details = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error_body = body.get("error") if isinstance(body.get("error"), dict) else body
        message = error_body.get("message") or message
        details = error_body.get("details")
    return HTTPStatusFailure(response.status_code, message, details)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
