from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


class SharedPayload(Generic[T]):
    """Memoizes one async payload for a short window.

    Concurrent callers share a single in-flight load. A failed load is
    never cached: every caller waiting on it sees the error and the next
    call starts a fresh load.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[T]],
        *,
        ttl: float = 30.0,
        name: str = "payload",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl
        self._name = name
        self._clock = clock
        self._value: Optional[T] = None
        self._loaded_at: Optional[float] = None
        self._inflight: Optional[asyncio.Task[T]] = None

    @property
    def is_fresh(self) -> bool:
        return self._loaded_at is not None and self._clock() - self._loaded_at < self._ttl

    def invalidate(self) -> None:
        self._value = None
        self._loaded_at = None

    async def get(self) -> T:
        if self.is_fresh:
            return self._value  # type: ignore[return-value]

        if self._inflight is None:
            self._inflight = asyncio.create_task(self._load())
        return await asyncio.shield(self._inflight)

    async def _load(self) -> T:
        try:
            value = await self._loader()
        except Exception as exc:
            logger.debug("Shared {} load failed: {}", self._name, exc)
            raise
        finally:
            self._inflight = None

        self._value = value
        self._loaded_at = self._clock()
        return value
