"""
Events - Best-effort event recording for managed resources.

Events are keyed by the ingress that owns the resource, similar to
Kubernetes events, and fanned out over an in-memory pub/sub bus so the
HTTP API can stream them as Server-Sent Events.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

from resources import ResourceIdentity

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event severity, as in Kubernetes."""

    NORMAL = "Normal"
    WARNING = "Warning"


@dataclass
class ResourceEvent:
    """Event emitted while reconciling a managed resource."""

    event_type: EventType
    reason: str
    namespace: str
    name: str
    message: str
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return data

    def to_sse(self) -> str:
        """
        Format the event as an SSE message.

        Returns:
            SSE-formatted string with event type and JSON data lines.
        """
        json_data = json.dumps(self.to_dict())
        return f"event: {self.event_type.value}\ndata: {json_data}\n\n"

    @classmethod
    def create(
        cls,
        identity: ResourceIdentity,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> "ResourceEvent":
        return cls(
            event_type=event_type,
            reason=reason,
            namespace=identity.namespace,
            name=identity.name,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )


class EventSubscription:
    """
    Async iterator for consuming events from a subscription.

    A ``None`` sentinel value stops iteration.
    """

    def __init__(
        self,
        queue: asyncio.Queue,
        filter_fn: Optional[Callable[[ResourceEvent], bool]] = None,
    ):
        self._queue = queue
        self._filter_fn = filter_fn

    def __aiter__(self) -> AsyncIterator[ResourceEvent]:
        return self

    async def __anext__(self) -> ResourceEvent:
        while True:
            event = await self._queue.get()

            if event is None:
                raise StopAsyncIteration

            if self._filter_fn is None or self._filter_fn(event):
                return event


class EventBus:
    """
    In-memory pub/sub bus for resource events.

    Each subscriber gets its own bounded queue. Publishing never blocks:
    events for a subscriber whose queue is full are dropped.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscribers: Dict[str, asyncio.Queue] = {}

    def publish(self, event: ResourceEvent) -> None:
        for subscriber_id, queue in list(self._subscribers.items()):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Dropped event for subscriber {subscriber_id}: queue full"
                )

    def subscribe(
        self,
        filter_fn: Optional[Callable[[ResourceEvent], bool]] = None,
    ) -> Tuple[str, EventSubscription]:
        """
        Subscribe to events.

        Returns:
            A tuple of ``(subscriber_id, EventSubscription)``.
        """
        subscriber_id = str(uuid.uuid4())
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[subscriber_id] = queue
        logger.info(f"New event subscriber: {subscriber_id}")
        return subscriber_id, EventSubscription(queue, filter_fn)

    def unsubscribe(self, subscriber_id: str) -> None:
        """Remove a subscriber and terminate its iterator."""
        queue = self._subscribers.pop(subscriber_id, None)
        if queue is not None:
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                pass
            logger.info(f"Unsubscribed: {subscriber_id}")

    def subscriber_count(self) -> int:
        return len(self._subscribers)


class EventRecorder:
    """
    Records events against managed resources.

    Recording is best effort: a failure to publish is logged and never
    propagates into reconciliation.
    """

    def __init__(self, event_bus: Optional[EventBus] = None):
        self._event_bus = event_bus

    def eventf(
        self,
        identity: ResourceIdentity,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        log = logger.warning if event_type == EventType.WARNING else logger.info
        log(f"{identity} {reason}: {message}")

        if self._event_bus is None:
            return
        try:
            self._event_bus.publish(
                ResourceEvent.create(identity, event_type, reason, message)
            )
        except Exception as e:
            logger.warning(f"Failed to record event for {identity}: {e}")
