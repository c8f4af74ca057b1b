"""Fan-out of job progress events to the one observer currently listening."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

from .events import EventType, ProgressEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Live feed of one job's events for one observer.

    Iterate with ``async for``. The feed ends when the job completes, fails
    fatally, the observer unsubscribes, or a newer subscription for the same
    job takes over.
    """

    def __init__(self, broadcaster: "ProgressBroadcaster", job_id: str) -> None:
        self._broadcaster = broadcaster
        self.job_id = job_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, event: ProgressEvent) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(event)
        if event.is_terminal:
            self._close()
        return True

    def _close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def get(self) -> Optional[ProgressEvent]:
        """Next event, or ``None`` once the feed has ended."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the sentinel so later readers also see the end.
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        self._broadcaster.unsubscribe(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class ProgressBroadcaster:
    """Routes events by job id to at most one subscription.

    Events for a job nobody is watching are dropped; there is no buffering
    and no replay. Subscribing again for the same job replaces the previous
    subscription, which is closed and receives nothing further.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, Subscription] = {}

    def subscribe(self, job_id: str) -> Subscription:
        subscription = Subscription(self, job_id)
        previous = self._subscriptions.get(job_id)
        self._subscriptions[job_id] = subscription
        if previous is not None:
            previous._close()
            logger.info(f"Job {job_id}: new observer replaced the previous one")
        subscription._deliver(
            ProgressEvent(type=EventType.CONNECTED, job_id=job_id, message="Connected")
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove ``subscription`` if it is still the current one for its job."""
        if self._subscriptions.get(subscription.job_id) is subscription:
            del self._subscriptions[subscription.job_id]
            logger.debug(f"Job {subscription.job_id}: observer disconnected")
        subscription._close()

    def has_subscriber(self, job_id: str) -> bool:
        return job_id in self._subscriptions

    def publish(self, job_id: str, event: ProgressEvent) -> bool:
        """Deliver ``event`` to the observer of ``job_id``. Returns ``False`` when dropped."""
        subscription = self._subscriptions.get(job_id)
        if subscription is None:
            return False
        delivered = subscription._deliver(event)
        if subscription.closed and self._subscriptions.get(job_id) is subscription:
            del self._subscriptions[job_id]
        return delivered

    def step_started(self, job_id: str, step: str, message: Optional[str] = None) -> bool:
        return self.publish(
            job_id,
            ProgressEvent(type=EventType.STEP_STARTED, job_id=job_id, step=step, message=message),
        )

    def step_completed(
        self, job_id: str, step: str, data: Any = None, message: Optional[str] = None
    ) -> bool:
        return self.publish(
            job_id,
            ProgressEvent(
                type=EventType.STEP_COMPLETED, job_id=job_id, step=step, data=data, message=message
            ),
        )

    def error(self, job_id: str, message: str, step: Optional[str] = None) -> bool:
        """Report an error. Without ``step`` the error is fatal and ends the feed."""
        return self.publish(
            job_id,
            ProgressEvent(type=EventType.ERROR, job_id=job_id, step=step, message=message),
        )

    def complete(self, job_id: str, data: Any = None, message: Optional[str] = None) -> bool:
        return self.publish(
            job_id,
            ProgressEvent(type=EventType.COMPLETE, job_id=job_id, data=data, message=message),
        )
