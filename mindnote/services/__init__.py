"""
Service layer infrastructure - the resilient remote-call core.

Provides:
- BaseAPIService: Async HTTP core with caching, retries and interceptors
- CacheStore: Bounded TTL cache for read responses
- SlotPool: FIFO concurrency limiter
- BatchOrchestrator: Chunked batch execution with failure aggregation
- RetryPolicy: Retry decisions for classified failures
"""

from mindnote.services.errors import (
    ErrorKind,
    ServiceError,
    ValidationError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    RateLimitError,
    ServiceUnavailableError,
    classify_error,
)
from mindnote.services.cache import CacheStore, CacheEntry, CacheStats
from mindnote.services.interceptors import InterceptorPipeline, header_injector
from mindnote.services.semaphore import SlotPool
from mindnote.services.retry import RetryPolicy, Retry, Fail
from mindnote.services.batch import (
    BatchOrchestrator,
    BatchOptions,
    BatchOperationResult,
    BatchFailure,
)
from mindnote.services.responses import ApiResponse, ErrorInfo, PaginatedResponse
from mindnote.services.client import BaseAPIService, ServiceConfig, RequestOptions
from mindnote.services.notes import NotesService

__all__ = [
    # Errors
    "ErrorKind",
    "ServiceError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "ServiceUnavailableError",
    "classify_error",
    # Cache
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    # Interceptors
    "InterceptorPipeline",
    "header_injector",
    # Concurrency
    "SlotPool",
    "BatchOrchestrator",
    "BatchOptions",
    "BatchOperationResult",
    "BatchFailure",
    # Retry
    "RetryPolicy",
    "Retry",
    "Fail",
    # Envelopes
    "ApiResponse",
    "ErrorInfo",
    "PaginatedResponse",
    # Client
    "BaseAPIService",
    "ServiceConfig",
    "RequestOptions",
    "NotesService",
]
