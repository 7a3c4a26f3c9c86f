"""
BatchOrchestrator - Chunked, bounded-concurrency batch execution.

Items are processed in ordered chunks. A single SlotPool per run bounds the
number of operations in flight across the whole batch, failures are
classified and collected, and chunks are separated by a throttle delay.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from loguru import logger

from mindnote.services.errors import classify_error
from mindnote.services.semaphore import SlotPool

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class BatchOptions:
    """Tuning knobs for a batch run."""

    chunk_size: int = 10
    inter_chunk_delay: float = 0.1  # seconds
    continue_on_error: bool = True
    max_concurrency: int = 5

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.inter_chunk_delay < 0:
            raise ValueError("inter_chunk_delay must not be negative")


@dataclass(frozen=True)
class BatchFailure(Generic[T]):
    """One failed item with its classified error."""

    item: T
    error_code: str
    error_message: str


@dataclass(frozen=True)
class BatchOperationResult(Generic[R]):
    """Aggregated outcome of a batch run."""

    successful: tuple[R, ...]
    failed: tuple[BatchFailure[Any], ...]
    total_processed: int
    success_rate: float
    aborted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": list(self.successful),
            "failed": [
                {
                    "item": f.item,
                    "error": {"code": f.error_code, "message": f.error_message},
                }
                for f in self.failed
            ],
            "totalProcessed": self.total_processed,
            "successRate": self.success_rate,
            "aborted": self.aborted,
        }


class BatchOrchestrator:
    """
    Runs an async operation over many items.

    Usage:
        orchestrator = BatchOrchestrator()
        result = await orchestrator.run(
            note_ids,
            lambda note_id: service.delete(f"/notes/{note_id}"),
            BatchOptions(chunk_size=20, max_concurrency=4),
        )
    """

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep

    async def run(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[R]],
        options: BatchOptions | None = None,
    ) -> BatchOperationResult[R]:
        """
        Execute `operation` for every item.

        Args:
            items: Items to process, in order
            operation: Async callable invoked once per item
            options: Chunking, concurrency and error policy

        Returns:
            BatchOperationResult. With continue_on_error=False the run stops
            launching items after the first failure and the result is
            marked aborted; unlaunched items are in neither list.
        """
        options = options or BatchOptions()
        items = list(items)
        pool = SlotPool(options.max_concurrency)

        successful: list[R] = []
        failed: list[BatchFailure[T]] = []
        state = {"aborted": False}

        async def process(item: T) -> None:
            async with pool.slot():
                if state["aborted"]:
                    return
                try:
                    result = await operation(item)
                except Exception as e:
                    error = classify_error(e)
                    failed.append(
                        BatchFailure(
                            item=item,
                            error_code=error.code,
                            error_message=error.message,
                        )
                    )
                    if not options.continue_on_error:
                        state["aborted"] = True
                    return
                successful.append(result)

        chunks = [
            items[i : i + options.chunk_size]
            for i in range(0, len(items), options.chunk_size)
        ]

        for index, chunk in enumerate(chunks):
            await asyncio.gather(*(process(item) for item in chunk))

            if state["aborted"]:
                logger.warning(
                    f"Batch aborted after chunk {index + 1}/{len(chunks)}: "
                    f"{len(failed)} failed, {len(successful)} succeeded"
                )
                break

            if index + 1 < len(chunks) and options.inter_chunk_delay > 0:
                await self._sleep(options.inter_chunk_delay)

        total = len(items)
        success_rate = (len(successful) / total * 100) if total else 0.0

        return BatchOperationResult(
            successful=tuple(successful),
            failed=tuple(failed),
            total_processed=total,
            success_rate=success_rate,
            aborted=state["aborted"],
        )
