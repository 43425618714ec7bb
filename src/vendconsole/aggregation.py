"""Dashboard aggregates derived from a sync snapshot.

Everything here is a pure function of the collections passed in. Nothing
is cached between calls; the inputs are bounded (two 200-row windows plus
the terminal list) so recomputing on every snapshot is cheap.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from vendconsole._constants import LOW_PAPER_THRESHOLD, PAPER_WARNING_THRESHOLD, UNKNOWN_TERMINAL
from vendconsole.config import ConsoleConfig
from vendconsole.models import DashboardSummary, PaperStatus, Sale, Terminal, TerminalSales, Token
from vendconsole.sync.events import SyncSnapshot


def total_revenue(sales: Iterable[Sale]) -> int:
    return sum(sale.price for sale in sales)


def total_franchisee_revenue(sales: Iterable[Sale]) -> int:
    return sum(sale.fee_or_zero for sale in sales)


def low_stock_terminal_count(terminals: Iterable[Terminal], threshold: int = LOW_PAPER_THRESHOLD) -> int:
    return sum(1 for terminal in terminals if terminal.paper_level < threshold)


def tokens_by_price(tokens: Iterable[Token]) -> dict[int, int]:
    """Count unsold tokens per price tier, ascending by price."""
    counts = Counter(token.price for token in tokens)
    return dict(sorted(counts.items()))


@dataclass
class _SalesAccumulator:
    count: int = 0
    total_revenue: int = 0
    total_franchisee_fee: int = 0

    def add(self, sale: Sale) -> None:
        self.count += 1
        self.total_revenue += sale.price
        self.total_franchisee_fee += sale.fee_or_zero

    def freeze(self) -> TerminalSales:
        return TerminalSales(
            count=self.count,
            total_revenue=self.total_revenue,
            total_franchisee_fee=self.total_franchisee_fee,
        )


def sales_by_terminal(
    sales: Iterable[Sale],
    terminals: Iterable[Terminal],
    *,
    unknown_label: str = UNKNOWN_TERMINAL,
) -> dict[str, TerminalSales]:
    """Fold sales into per-terminal totals keyed by display name.

    A sale whose ``machine_id`` matches no known terminal is bucketed
    under *unknown_label*. Terminals sharing a name share a bucket.
    """
    names = {terminal.id: terminal.name for terminal in terminals}
    buckets: dict[str, _SalesAccumulator] = {}
    for sale in sales:
        name = names.get(sale.machine_id or "") or unknown_label
        buckets.setdefault(name, _SalesAccumulator()).add(sale)
    return {name: acc.freeze() for name, acc in buckets.items()}


def paper_status(
    level: int,
    *,
    low_threshold: int = LOW_PAPER_THRESHOLD,
    warning_threshold: int = PAPER_WARNING_THRESHOLD,
) -> PaperStatus:
    if level < low_threshold:
        return PaperStatus.LOW
    if level < warning_threshold:
        return PaperStatus.WARNING
    return PaperStatus.OK


def recent_sales(sales: Sequence[Sale], limit: int = 10) -> tuple[Sale, ...]:
    """Newest *limit* sales; *sales* must already be sorted newest first."""
    return tuple(sales[: max(limit, 0)])


def filter_tokens(tokens: Iterable[Token], query: str) -> tuple[Token, ...]:
    """Case-insensitive substring match on token code or plan."""
    needle = query.strip().lower()
    if not needle:
        return tuple(tokens)
    return tuple(token for token in tokens if needle in token.code.lower() or needle in token.plan.lower())


def summarize(snapshot: SyncSnapshot, *, low_threshold: int = LOW_PAPER_THRESHOLD) -> DashboardSummary:
    return DashboardSummary(
        total_revenue=total_revenue(snapshot.sales),
        total_franchisee_revenue=total_franchisee_revenue(snapshot.sales),
        total_sales=len(snapshot.sales),
        total_terminals=len(snapshot.terminals),
        available_tokens=len(snapshot.unsold_tokens),
        low_stock_terminal_count=low_stock_terminal_count(snapshot.terminals, low_threshold),
        tokens_by_price=tokens_by_price(snapshot.unsold_tokens),
        topic_status=dict(snapshot.topic_status),
        topic_errors=dict(snapshot.topic_errors),
    )


class AggregationEngine:
    """Config-bound entry point for the aggregate functions.

    Methods take a whole :class:`SyncSnapshot` so an incrementally
    maintained engine could replace this one without touching callers.
    """

    def __init__(self, config: ConsoleConfig | None = None) -> None:
        cfg = config or ConsoleConfig()
        self._low_threshold = cfg.low_paper_threshold
        self._warning_threshold = cfg.paper_warning_threshold

    def dashboard(self, snapshot: SyncSnapshot) -> DashboardSummary:
        return summarize(snapshot, low_threshold=self._low_threshold)

    def sales_by_terminal(self, snapshot: SyncSnapshot) -> dict[str, TerminalSales]:
        return sales_by_terminal(snapshot.sales, snapshot.terminals)

    def paper_status(self, terminal: Terminal) -> PaperStatus:
        return paper_status(
            terminal.paper_level,
            low_threshold=self._low_threshold,
            warning_threshold=self._warning_threshold,
        )
