"""Fixed-interval refresh loop for the market board."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger

from .market_board import InstrumentQuote, MarketBoard


class DashboardPoller:
    """Keeps the latest market snapshot fresh on a fixed interval.

    ``start()`` refreshes once before launching the background loop so the
    first snapshot is available immediately. A tick that fires while a
    refresh is still running joins that refresh instead of queueing a new
    one, and the most recently completed snapshot is what ``latest()``
    returns.
    """

    def __init__(self, board: MarketBoard, interval: float = 60.0) -> None:
        self._board = board
        self._interval = interval
        self._latest: Optional[List[InstrumentQuote]] = None
        self._updated_at: Optional[datetime] = None
        self._inflight: Optional[asyncio.Task[List[InstrumentQuote]]] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._refresh_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def updated_at(self) -> Optional[datetime]:
        return self._updated_at

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    def latest(self) -> List[InstrumentQuote]:
        if self._latest is None:
            return self._board.loading_snapshot()
        return list(self._latest)

    async def start(self) -> None:
        if self.running:
            return
        await self.refresh()
        self._task = asyncio.create_task(self._poll_loop(), name="market-poller")
        logger.info("Market poller started: {} instruments, {:.1f}s interval", len(self._board.instruments), self._interval)

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        if self._inflight and not self._inflight.done():
            self._inflight.cancel()
            try:
                await self._inflight
            except asyncio.CancelledError:
                pass
        self._inflight = None
        logger.info("Market poller stopped")

    async def refresh(self) -> List[InstrumentQuote]:
        if self._inflight is not None and not self._inflight.done():
            logger.debug("Refresh already in progress; joining it")
            return await asyncio.shield(self._inflight)

        self._inflight = asyncio.create_task(self._refresh_once())
        return await asyncio.shield(self._inflight)

    async def _refresh_once(self) -> List[InstrumentQuote]:
        snapshot = await self._board.snapshot()
        self._latest = snapshot
        self._updated_at = datetime.now(timezone.utc)
        self._refresh_count += 1
        return snapshot

    async def _poll_loop(self) -> None:
        """Poll on interval. First refresh already happened in start()."""
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.refresh()
            except Exception as exc:
                logger.error("Market refresh failed: {}", exc)
