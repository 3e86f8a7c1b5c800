"""Score change notification and the fan-out transport interface.

This module provides:
- Notifier: Abstract topic-scoped publish/subscribe transport
- NotifierSubscription: Abstract reader of the payloads of one topic
- InMemoryNotifier: In-process implementation for tests and demos
- ScoreUpdate: The payload published after every successful mutation
- ChangeNotifier: Builds score updates and hands them to a Notifier
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Literal

from pydantic import Field

from .domain import (
    AggregateState,
    DeliveryRecord,
    DeliverySummary,
    DocumentModel,
    new_operation_id,
    utc_now,
)

LOGGER = logging.getLogger(__name__)

Trigger = Literal["delivery", "correction", "undo", "redo"]


class ScoreUpdate(DocumentModel):
    """Full score of a match plus the change that produced it.

    Every update is self-sufficient: it carries the whole current state, not
    a diff, so a subscriber that missed earlier updates is resynchronized by
    the next one.
    """

    broadcast_id: str = Field(default_factory=new_operation_id)
    match_id: str
    trigger: Trigger
    state: AggregateState
    event: DeliverySummary | None = None
    operation_id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class NotifierSubscription(ABC):
    """Reader of the updates published to one topic after it subscribed."""

    topic: str

    @abstractmethod
    async def depth(self) -> int:
        """Get the number of unread updates.

        Note:
            This is a snapshot value; it grows as updates are published.
        """
        ...

    @abstractmethod
    async def next(self) -> ScoreUpdate:
        """Return the oldest unread update and advance past it."""
        ...


class Notifier(ABC):
    """Abstract interface for the real-time fan-out of score updates.

    Topics are match ids. Implementations deliver every published payload
    to all current subscribers of its topic and to no other topic.

    Implementations might use:
    - In-memory queues (for tests or single-process apps)
    - WebSocket rooms
    - Pub/sub systems (Redis, Google Pub/Sub)

    Delivery is best effort. The score is always recomputable from the
    store, so a lost update is repaired by the next one.
    """

    @abstractmethod
    async def subscribe(self, topic: str) -> NotifierSubscription:
        """Start receiving updates published to ``topic`` from now on."""
        ...

    @abstractmethod
    async def unsubscribe(self, subscription: NotifierSubscription) -> None:
        """Stop delivering updates to ``subscription``. Unknown subscriptions are ignored."""
        ...

    @abstractmethod
    async def publish(self, topic: str, payload: ScoreUpdate) -> None:
        """Deliver ``payload`` to every current subscriber of ``topic``."""
        ...


class InMemoryNotifierSubscription(NotifierSubscription):
    """Queue of the updates delivered to one in-memory subscriber.

    Limitations:
    - No blocking: next() raises IndexError when nothing is pending
    """

    def __init__(self, topic: str) -> None:
        self.topic = topic
        self.pending: list[ScoreUpdate] = []

    async def depth(self) -> int:
        return len(self.pending)

    async def next(self) -> ScoreUpdate:
        """Pop the oldest pending update.

        Raises:
            IndexError: If no update is pending.
        """
        return self.pending.pop(0)


class InMemoryNotifier(Notifier):
    """Topic-scoped in-memory notifier.

    Keeps the subscriptions of each topic and a log of everything published,
    which tests can inspect directly.
    """

    def __init__(self) -> None:
        self.subscriptions: dict[str, list[InMemoryNotifierSubscription]] = defaultdict(list)
        self.published: list[tuple[str, ScoreUpdate]] = []

    async def subscribe(self, topic: str) -> InMemoryNotifierSubscription:
        subscription = InMemoryNotifierSubscription(topic)
        self.subscriptions[topic].append(subscription)
        return subscription

    async def unsubscribe(self, subscription: NotifierSubscription) -> None:
        subscribers = self.subscriptions.get(subscription.topic, [])
        if subscription in subscribers:
            subscribers.remove(subscription)  # type: ignore[arg-type]

    async def publish(self, topic: str, payload: ScoreUpdate) -> None:
        self.published.append((topic, payload))
        for subscription in self.subscriptions.get(topic, []):
            subscription.pending.append(payload)


class ChangeNotifier:
    """Publishes the full score after each committed mutation.

    A transport failure is logged and reported as ``False``. It never undoes
    the mutation that triggered it: by the time an update is published the
    store has already accepted the write.
    """

    __slots__ = ("notifier",)

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    async def publish(
        self,
        match_id: str,
        state: AggregateState,
        trigger: Trigger,
        triggering_event: DeliveryRecord | DeliverySummary | None = None,
        operation_id: str | None = None,
    ) -> bool:
        """Wrap ``state`` in a :class:`ScoreUpdate` and publish it to ``match_id``.

        Args:
            match_id: Topic to publish to.
            state: The recomputed score.
            trigger: Which mutation produced it.
            triggering_event: The delivery that changed, for single-delivery mutations.
            operation_id: The undo operation, for undo and redo.

        Returns:
            True if the transport accepted the update.
        """
        if isinstance(triggering_event, DeliveryRecord):
            triggering_event = DeliverySummary.from_record(triggering_event)

        update = ScoreUpdate(
            match_id=match_id,
            trigger=trigger,
            state=state,
            event=triggering_event,
            operation_id=operation_id,
        )
        try:
            await self.notifier.publish(match_id, update)
        except Exception:
            LOGGER.exception(
                "Failed to publish score update",
                extra={"match_id": match_id, "broadcast_id": update.broadcast_id},
            )
            return False

        LOGGER.debug(
            "Published score update",
            extra={"match_id": match_id, "broadcast_id": update.broadcast_id, "trigger": trigger},
        )
        return True
