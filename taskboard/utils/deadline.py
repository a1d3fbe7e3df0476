"""Deadline wrapper for remote calls."""

import asyncio
from typing import Awaitable, Optional, TypeVar

from taskboard.utils.errors import TransportError

T = TypeVar("T")


async def call_with_deadline(awaitable: Awaitable[T], seconds: Optional[float], operation: str = "remote call") -> T:
    """
    Await a remote call, cancelling it once the deadline passes.

    A timeout surfaces as TransportError. ``seconds=None`` disables the deadline.
    """
    if seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise TransportError(f"{operation} timed out after {seconds:g}s") from e
