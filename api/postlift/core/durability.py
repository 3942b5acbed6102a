"""Durability policy for store calls.

Every store method takes a ``durability`` argument.  ``required`` calls
surface backend failures as :class:`PersistenceError`; ``best_effort``
calls log the failure and hand back a neutral fallback value so the caller
keeps operating on in-memory state.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from postlift.core.exceptions import PersistenceError

T = TypeVar("T")


class Durability(str, enum.Enum):
    best_effort = "best_effort"
    required = "required"


async def guarded(
    operation: str,
    call: Callable[[], Awaitable[T]],
    durability: Durability,
    fallback: T,
    logger: logging.Logger,
) -> T:
    """Run ``call`` under the given durability policy.

    Parameters
    ----------
    operation : str
        Human-readable operation name used in logs and error messages.
    call : Callable[[], Awaitable[T]]
        Zero-argument coroutine factory performing the backend work.
    durability : Durability
        ``required`` re-raises as ``PersistenceError``; ``best_effort``
        logs and returns ``fallback``.
    fallback : T
        Value returned when a best-effort call fails.
    logger : logging.Logger
        Logger of the calling adapter.
    """
    try:
        return await call()
    except Exception as exc:
        if durability is Durability.required:
            raise PersistenceError(f"{operation} failed: {exc}") from exc
        logger.exception("Best-effort %s failed", operation)
        return fallback
