"""Events published by the sync store.

Every snapshot event carries the complete collection. Consumers replace
their copy; there is never a diff to merge.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from vendconsole.exceptions import VendSubscriptionError
from vendconsole.models import Sale, Terminal, Token, TopicStatus, VendBaseModel
from vendconsole.sync.topics import Topic


class SnapshotEvent(BaseModel):
    """A full, authoritative replacement of one topic's collection."""

    model_config = ConfigDict(frozen=True)

    topic: Topic
    records: tuple[VendBaseModel, ...] = ()
    generation: int = 0
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SubscriptionErrorEvent(BaseModel):
    """A live query died; the topic's collection is frozen."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    topic: Topic
    error: VendSubscriptionError
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SyncSnapshot(BaseModel):
    """Point-in-time view of all three topics.

    ``topic_status`` and ``topic_errors`` are keyed by topic name and say
    which collections are live and which are frozen at their last value.
    """

    model_config = ConfigDict(frozen=True)

    terminals: tuple[Terminal, ...] = ()
    unsold_tokens: tuple[Token, ...] = ()
    sales: tuple[Sale, ...] = ()
    topic_status: dict[str, TopicStatus] = Field(default_factory=dict)
    topic_errors: dict[str, str] = Field(default_factory=dict)
