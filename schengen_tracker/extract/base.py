"""Shared scanning loop for device signal collectors."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import AsyncIterator, Callable, Generic, Optional, Sequence, TypeVar

from schengen_tracker.errors import Cancelled, PermissionDenied, SourceUnavailable
from schengen_tracker.models import ImportPhase, ImportProgress, RawSignal, SignalKind

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]
ItemT = TypeVar("ItemT")


class CancelToken:
    """Cooperative cancellation flag, checked between progress batches."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self):
        if self._cancelled:
            raise Cancelled("Scan cancelled")


class DeviceProvider(ABC, Generic[ItemT]):
    """Access to one device data source (calendar store, photo library)."""

    @abstractmethod
    async def request_permission(self) -> bool:
        ...

    @abstractmethod
    async def fetch(self, start: date, end: date) -> Sequence[ItemT]:
        """Items dated within [start, end], oldest first.

        May raise SourceUnavailable when the device has no such store.
        """


class SignalCollector(ABC, Generic[ItemT]):
    """Turns device items into RawSignals.

    `scan` is a lazy async generator; calling it again restarts from the
    beginning of the range.
    """

    kind: SignalKind
    batch_size: int

    def __init__(self, provider: DeviceProvider[ItemT]):
        self.provider = provider

    async def ensure_permission(self):
        if not await self.provider.request_permission():
            raise PermissionDenied(f"{self.kind.value} access not granted")

    async def scan(
        self,
        start: date,
        end: date,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> AsyncIterator[RawSignal]:
        cancel = cancel or CancelToken()
        cancel.raise_if_cancelled()

        try:
            items = await self.provider.fetch(start, end)
        except SourceUnavailable as exc:
            logger.info("No %s data: %s", self.kind.value, exc)
            items = []

        total = len(items)
        if on_progress:
            on_progress(ImportProgress(0, total, ImportPhase.SCANNING))

        emitted = 0
        for i, item in enumerate(items, start=1):
            signal = self.to_signal(item, start, end)
            if signal is not None:
                emitted += 1
                yield signal

            if i % self.batch_size == 0:
                if on_progress:
                    on_progress(ImportProgress(i, total, ImportPhase.SCANNING))
                # Let the caller's loop breathe, then honour cancellation
                await asyncio.sleep(0)
                cancel.raise_if_cancelled()

        if on_progress:
            on_progress(ImportProgress(total, total, ImportPhase.SCANNING))
        logger.debug("%s scan: %d items, %d signals", self.kind.value, total, emitted)

    @abstractmethod
    def to_signal(self, item: ItemT, start: date, end: date) -> Optional[RawSignal]:
        """Return a signal for a qualifying item, None to ignore it."""
