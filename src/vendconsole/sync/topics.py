"""Live query definitions per synchronized topic."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from vendconsole._recordstore import FieldFilter, QuerySpec
from vendconsole.config import ConsoleConfig
from vendconsole.models import Sale, Terminal, Token, VendBaseModel
from vendconsole.models._base import timestamp_sort_key


class Topic(enum.StrEnum):
    TERMINALS = "terminals"
    UNSOLD_TOKENS = "unsoldTokens"
    SALES = "sales"


@dataclass(frozen=True)
class TopicDefinition:
    """How one topic is fetched from the store and ordered locally.

    The store is never asked to sort: a filter plus an order on another
    field would need a composite index. ``sort_attr`` names the model
    attribute the bounded window is sorted on, newest first.
    """

    topic: Topic
    collection: str
    query: QuerySpec
    model: type[VendBaseModel]
    sort_attr: str | None = None

    def order(self, records: Iterable[VendBaseModel]) -> tuple[VendBaseModel, ...]:
        if self.sort_attr is None:
            return tuple(records)
        attr = self.sort_attr
        return tuple(sorted(records, key=lambda rec: timestamp_sort_key(getattr(rec, attr)), reverse=True))


def build_topic_definitions(config: ConsoleConfig) -> dict[Topic, TopicDefinition]:
    return {
        Topic.TERMINALS: TopicDefinition(
            topic=Topic.TERMINALS,
            collection=config.terminals_path,
            query=QuerySpec(),
            model=Terminal,
        ),
        Topic.UNSOLD_TOKENS: TopicDefinition(
            topic=Topic.UNSOLD_TOKENS,
            collection=config.tokens_path,
            query=QuerySpec(filters=(FieldFilter("isSold", False),), limit=config.window_limit),
            model=Token,
            sort_attr="imported_at",
        ),
        Topic.SALES: TopicDefinition(
            topic=Topic.SALES,
            collection=config.sales_path,
            query=QuerySpec(limit=config.window_limit),
            model=Sale,
            sort_attr="timestamp",
        ),
    }
