"""Timeout and retry policy for gateway calls.

Reads are idempotent and may be retried once; writes are attempted exactly
once so a slow acknowledgement can never produce a duplicate message.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from chat.exceptions import NotFoundError, PersistenceError

T = TypeVar("T")

logger = structlog.get_logger("chat.resilience")


class GatewayCaller:
    def __init__(
        self,
        *,
        timeout: float = 10.0,
        read_retries: int = 1,
        retry_delay: float = 0.2,
    ):
        self.timeout = timeout
        self.read_retries = max(0, min(read_retries, 1))
        self.retry_delay = retry_delay

    async def read(self, operation: str, factory: Callable[[], Awaitable[T]]) -> T:
        return await self._call(operation, factory, retries=self.read_retries)

    async def write(self, operation: str, factory: Callable[[], Awaitable[T]]) -> T:
        return await self._call(operation, factory, retries=0)

    async def _call(
        self, operation: str, factory: Callable[[], Awaitable[T]], *, retries: int
    ) -> T:
        for attempt in range(retries + 1):
            try:
                return await asyncio.wait_for(factory(), timeout=self.timeout)
            except NotFoundError:
                raise
            except Exception as e:
                if attempt == retries:
                    logger.warning(
                        "gateway.call.failed",
                        operation=operation,
                        attempts=attempt + 1,
                        error=str(e) or type(e).__name__,
                    )
                    if isinstance(e, PersistenceError):
                        raise
                    if isinstance(e, asyncio.TimeoutError):
                        raise PersistenceError(
                            operation, f"timed out after {self.timeout}s"
                        ) from e
                    raise PersistenceError(operation, str(e)) from e
                logger.info(
                    "gateway.call.retrying",
                    operation=operation,
                    attempt=attempt + 1,
                    error=str(e) or type(e).__name__,
                )
                await asyncio.sleep(self.retry_delay)
        raise PersistenceError(operation, "no attempts made")
