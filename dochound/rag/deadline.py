from __future__ import annotations

"""Explicit time bounds for calls to external services."""

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")


class DeadlineExceededError(TimeoutError):
    """Raised when an embedding or language-model call exceeds its deadline."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} exceeded deadline of {timeout:g}s")
        self.operation = operation
        self.timeout = timeout


async def with_deadline(awaitable: Awaitable[T], timeout: float | None, operation: str) -> T:
    """Await `awaitable`, raising DeadlineExceededError after `timeout` seconds."""
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except DeadlineExceededError:
        raise
    except asyncio.TimeoutError as exc:
        raise DeadlineExceededError(operation, timeout) from exc
