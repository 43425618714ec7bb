"""Live mirror of terminals, unsold tokens and sales.

This is the only component allowed to replace the mirrored collections.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from vendconsole._recordstore import DocumentSnapshot, RecordStore, Unsubscribe
from vendconsole.config import ConsoleConfig
from vendconsole.exceptions import VendAuthenticationError, VendSubscriptionError
from vendconsole.models import Sale, Terminal, Token, VendBaseModel
from vendconsole.sync.events import SnapshotEvent, SubscriptionErrorEvent, SyncSnapshot, TopicStatus
from vendconsole.sync.topics import Topic, TopicDefinition, build_topic_definitions

_logger = logging.getLogger(__name__)

SnapshotListener = Callable[[SnapshotEvent], None]
ErrorListener = Callable[[SubscriptionErrorEvent], None]


class SubscriptionHandle:
    """Disposer for one live query.

    Calling it more than once is harmless. Once disposed, callbacks that
    the store still delivers for this query are dropped.
    """

    def __init__(self, topic: Topic, generation: int) -> None:
        self.topic = topic
        self.generation = generation
        self._unsubscribe: Unsubscribe | None = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _attach(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribe = unsubscribe
        if not self._active:
            # Disposed while the store was still attaching.
            self._release()

    def _release(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return
        try:
            unsubscribe()
        except Exception:
            _logger.debug("Unsubscribe failed topic=%s", self.topic, exc_info=True)

    def dispose(self) -> None:
        self._active = False
        self._release()

    def __call__(self) -> None:
        self.dispose()


class SyncStore:
    """Keeps the three topic collections fresh and notifies dependents.

    Usage::

        sync = SyncStore(record_store, config)
        sync.add_listener(on_snapshot)
        sync.start(session.actor_id)
        ...
        sync.stop()
    """

    def __init__(self, record_store: RecordStore, config: ConsoleConfig) -> None:
        self._record_store = record_store
        self._definitions: dict[Topic, TopicDefinition] = build_topic_definitions(config)
        self._collections: dict[Topic, tuple[VendBaseModel, ...]] = {topic: () for topic in Topic}
        self._status: dict[Topic, TopicStatus] = {topic: TopicStatus.PENDING for topic in Topic}
        self._errors: dict[Topic, VendSubscriptionError | None] = {topic: None for topic in Topic}
        self._handles: dict[Topic, SubscriptionHandle] = {}
        self._generation = 0
        self._actor_id: str | None = None
        self._listeners: list[SnapshotListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._versions: dict[Topic, int] = {topic: 0 for topic in Topic}
        self._waiters: dict[Topic, list[asyncio.Event]] = {}

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def actor_id(self) -> str | None:
        return self._actor_id

    def start(self, actor_id: str) -> None:
        """Subscribe every topic on behalf of *actor_id*.

        A repeated call for the same actor is a no-op. A different actor
        tears the previous subscriptions down first.
        """
        actor = actor_id.strip()
        if not actor:
            raise VendAuthenticationError("Cannot synchronize without an actor identifier")
        if self._actor_id is not None and self._actor_id != actor:
            _logger.debug("Actor changed; re-subscribing all topics")
            self.stop()
        self._actor_id = actor
        for topic in Topic:
            self.subscribe(topic)

    def stop(self) -> None:
        """Detach every live query and forget the session's data."""
        for topic in Topic:
            self.unsubscribe(topic)
            self._collections[topic] = ()
            self._errors[topic] = None
        self._actor_id = None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, topic: Topic) -> SubscriptionHandle:
        """Start the live query for *topic* and return its disposer.

        While a subscription for *topic* is active it is returned again
        rather than duplicated.
        """
        if self._actor_id is None:
            raise VendAuthenticationError(f"Cannot subscribe to {topic} before an actor identifier is available")

        existing = self._handles.get(topic)
        if existing is not None and existing.active:
            return existing

        definition = self._definitions[topic]
        self._generation += 1
        handle = SubscriptionHandle(topic, self._generation)
        self._handles[topic] = handle
        self._status[topic] = TopicStatus.PENDING
        _logger.debug(
            "Subscribing topic=%s collection=%s generation=%d", topic, definition.collection, handle.generation
        )

        try:
            unsubscribe = self._record_store.subscribe_query(
                definition.collection,
                definition.query,
                lambda docs: self._on_snapshot(handle, docs),
                lambda exc: self._on_error(handle, exc),
            )
        except Exception as exc:
            self._on_error(handle, exc)
            return handle
        handle._attach(unsubscribe)  # noqa: SLF001
        return handle

    def unsubscribe(self, topic: Topic) -> None:
        handle = self._handles.pop(topic, None)
        if handle is not None:
            handle.dispose()
        self._status[topic] = TopicStatus.CLOSED

    def retry(self, topic: Topic) -> SubscriptionHandle:
        """Re-subscribe *topic*, typically after a subscription error."""
        handle = self._handles.pop(topic, None)
        if handle is not None:
            handle.dispose()
        return self.subscribe(topic)

    def _on_snapshot(self, handle: SubscriptionHandle, docs: list[DocumentSnapshot]) -> None:
        if not handle.active:
            _logger.debug("Dropping late snapshot topic=%s generation=%d", handle.topic, handle.generation)
            return

        topic = handle.topic
        definition = self._definitions[topic]
        records: list[VendBaseModel] = []
        for doc in docs:
            try:
                records.append(definition.model.from_document(doc.id, doc.data))
            except ValidationError:
                _logger.warning("Skipping malformed %s document id=%s", topic, doc.id, exc_info=True)

        collection = definition.order(records)
        self._collections[topic] = collection
        self._status[topic] = TopicStatus.LIVE
        self._errors[topic] = None
        _logger.debug("Snapshot topic=%s size=%d", topic, len(collection))

        self._notify_waiters(topic)
        event = SnapshotEvent(topic=topic, records=collection, generation=handle.generation)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.debug("Snapshot listener failed topic=%s", topic, exc_info=True)

    def _on_error(self, handle: SubscriptionHandle, exc: Exception) -> None:
        if not handle.active:
            return
        topic = handle.topic
        # The store's query is dead; a fresh subscription is needed.
        handle.dispose()
        if self._handles.get(topic) is handle:
            self._handles.pop(topic)

        error = VendSubscriptionError(f"Live query for {topic} failed: {exc}", topic=topic)
        error.__cause__ = exc
        self._status[topic] = TopicStatus.ERROR
        self._errors[topic] = error
        _logger.warning("Subscription error topic=%s: %s", topic, exc)

        event = SubscriptionErrorEvent(topic=topic, error=error)
        for listener in list(self._error_listeners):
            try:
                listener(event)
            except Exception:
                _logger.debug("Error listener failed topic=%s", topic, exc_info=True)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register *listener* for every snapshot event; returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        """Register *listener* on the error channel; returns a remover."""
        self._error_listeners.append(listener)

        def _remove() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return _remove

    def _notify_waiters(self, topic: Topic) -> None:
        self._versions[topic] += 1
        for waiter in self._waiters.pop(topic, []):
            waiter.set()

    async def wait_for_snapshot(self, topic: Topic, timeout_seconds: float) -> bool:
        """Wait until the next snapshot for *topic* arrives.

        Returns ``False`` on timeout.
        """
        if timeout_seconds <= 0:
            return False
        waiter = asyncio.Event()
        self._waiters.setdefault(topic, []).append(waiter)
        try:
            await asyncio.wait_for(waiter.wait(), timeout_seconds)
            return True
        except TimeoutError:
            return False
        finally:
            pending = self._waiters.get(topic)
            if pending is not None:
                self._waiters[topic] = [cand for cand in pending if cand is not waiter]
                if not self._waiters[topic]:
                    self._waiters.pop(topic, None)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def status(self, topic: Topic) -> TopicStatus:
        return self._status[topic]

    def last_error(self, topic: Topic) -> VendSubscriptionError | None:
        return self._errors[topic]

    def version(self, topic: Topic) -> int:
        """Number of snapshots received for *topic* so far."""
        return self._versions[topic]

    @property
    def terminals(self) -> tuple[Terminal, ...]:
        return self._typed(Topic.TERMINALS)

    @property
    def unsold_tokens(self) -> tuple[Token, ...]:
        return self._typed(Topic.UNSOLD_TOKENS)

    @property
    def sales(self) -> tuple[Sale, ...]:
        return self._typed(Topic.SALES)

    def _typed(self, topic: Topic) -> Any:
        return self._collections[topic]

    def snapshot(self) -> SyncSnapshot:
        return SyncSnapshot(
            terminals=self.terminals,
            unsold_tokens=self.unsold_tokens,
            sales=self.sales,
            topic_status={topic.value: self._status[topic] for topic in Topic},
            topic_errors={topic.value: str(error) for topic, error in self._errors.items() if error is not None},
        )
