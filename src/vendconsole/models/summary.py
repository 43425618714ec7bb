"""Derived dashboard structures."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class TopicStatus(enum.StrEnum):
    """Liveness of one synchronized topic."""

    PENDING = "pending"
    LIVE = "live"
    ERROR = "error"
    CLOSED = "closed"


class TerminalSales(BaseModel):
    """Sales folded per terminal display name."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    total_revenue: int = 0
    total_franchisee_fee: int = 0


class DashboardSummary(BaseModel):
    """Fleet-wide financial and stock aggregates over one snapshot.

    ``topic_status`` tells an empty collection apart from one that never
    loaded or stopped updating: a zero ``total_revenue`` next to a sales
    topic in ``ERROR`` means "unknown", not "no sales".
    """

    model_config = ConfigDict(frozen=True)

    total_revenue: int = 0
    total_franchisee_revenue: int = 0
    total_sales: int = 0
    total_terminals: int = 0
    available_tokens: int = 0
    low_stock_terminal_count: int = 0
    tokens_by_price: dict[int, int] = Field(default_factory=dict)
    """Unsold token count per price tier, ordered by ascending price."""
    topic_status: dict[str, TopicStatus] = Field(default_factory=dict)
    topic_errors: dict[str, str] = Field(default_factory=dict)
    """Last error message per failed topic."""

    @property
    def stale_topics(self) -> tuple[str, ...]:
        """Topics whose figures are not backed by a live subscription."""
        return tuple(topic for topic, status in self.topic_status.items() if status != TopicStatus.LIVE)

    @property
    def is_stale(self) -> bool:
        return bool(self.stale_topics)
