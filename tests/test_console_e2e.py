"""End-to-end console flow over the in-process record store."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from vendconsole import (
    ConsoleConfig,
    DashboardSummary,
    MemoryRecordStore,
    PaperStatus,
    Session,
    StaticIdentity,
    SubscriptionErrorEvent,
    Topic,
    TopicStatus,
    VendConsole,
    VendError,
)

CONFIG = ConsoleConfig(app_id="test-app")
NOW = datetime(2026, 6, 1, 9, 30, tzinfo=UTC)

BATCH = "Login,Price,SellerFee\nABC123,8000,1000\nXYZ789,8000,1000\nQQQ000,15000,2000\n"


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_full_operator_flow() -> None:
    store = MemoryRecordStore(clock=lambda: NOW)
    dashboards: list[DashboardSummary] = []

    async with VendConsole(
        CONFIG,
        record_store=store,
        identity=StaticIdentity("operator-1"),
        on_dashboard=dashboards.append,
    ) as console:
        session = await console.login()
        assert session.actor_id == "operator-1"
        assert await console.wait_until_synced(1.0)

        terminal_id = await console.register_terminal("Lobby", "Building A")
        await console.import_tokens(BATCH.replace("QQQ000,15000,2000\n", ""), 10000)
        await console.import_tokens("Login,Price,SellerFee\nQQQ000,15000,2000\n", 20000)
        await _settle()

        assert console.dashboard().tokens_by_price == {10000: 2, 20000: 1}
        assert console.dashboard().available_tokens == 3

        # A terminal redeems ABC123: it flips the token and records the sale.
        await store.update_one(CONFIG.tokens_path, "ABC123", {"isSold": True, "machineId": terminal_id})
        await store.update_one(CONFIG.terminals_path, terminal_id, {"paperLevel": 15, "status": "online"})
        await store.write_one(
            CONFIG.sales_path,
            None,
            {"machineId": terminal_id, "tokenCode": "ABC123", "price": 10000, "franchiseeFee": 1000, "timestamp": NOW},
        )
        await _settle()

        summary = console.dashboard()
        assert summary.total_revenue == 10000
        assert summary.total_franchisee_revenue == 1000
        assert summary.low_stock_terminal_count == 1
        assert summary.tokens_by_price == {10000: 1, 20000: 1}
        assert dashboards[-1] == summary
        assert console.sales_by_terminal()["Lobby"].count == 1
        assert [s.token_code for s in console.recent_sales()] == ["ABC123"]
        assert [t.code for t in console.search_tokens("qqq")] == ["QQQ000"]

        terminal = console.snapshot().terminals[0]
        assert console.paper_status(terminal) == PaperStatus.LOW
        await console.refill_paper(terminal_id)
        await console.delete_token("XYZ789")
        await _settle()

        assert console.snapshot().terminals[0].paper_level == 100
        assert [t.code for t in console.snapshot().unsold_tokens] == ["QQQ000"]

    assert console.sync.status(Topic.SALES) == TopicStatus.CLOSED


@pytest.mark.asyncio
async def test_subscription_errors_reach_callback() -> None:
    store = MemoryRecordStore()
    errors: list[SubscriptionErrorEvent] = []

    async with VendConsole(
        CONFIG,
        record_store=store,
        identity=StaticIdentity("operator-1"),
        on_error=errors.append,
    ) as console:
        await console.login()
        await _settle()
        store.fail_listeners(CONFIG.sales_path, PermissionError("permission denied"))

        assert [e.topic for e in errors] == [Topic.SALES]
        assert console.sync.status(Topic.SALES) == TopicStatus.ERROR
        assert console.sync.status(Topic.TERMINALS) == TopicStatus.LIVE


@pytest.mark.asyncio
async def test_console_requires_context_manager() -> None:
    console = VendConsole(CONFIG, record_store=MemoryRecordStore(), identity=StaticIdentity("operator-1"))

    with pytest.raises(VendError):
        console.dashboard()


class _ExpiringIdentity:
    """Anonymous identity whose sessions expire immediately.

    Every sign-in would mint a new actor; refreshes keep the current one.
    """

    def __init__(self) -> None:
        self.sign_ins = 0
        self.refreshes = 0

    async def sign_in(self) -> Session:
        self.sign_ins += 1
        return Session(actor_id=f"anon-{self.sign_ins}", id_token="t0", refresh_token="rt", ttl=0.0)

    async def refresh(self, session: Session) -> Session:
        self.refreshes += 1
        return Session(actor_id=session.actor_id, id_token=f"t{self.refreshes}", refresh_token="rt", ttl=0.0)


@pytest.mark.asyncio
async def test_expired_session_is_renewed_for_the_same_actor() -> None:
    store = MemoryRecordStore()
    identity = _ExpiringIdentity()

    async with VendConsole(CONFIG, record_store=store, identity=identity) as console:
        await console.login()
        terminal_id = await console.register_terminal("Lobby", "Building A")
        await _settle()
        assert [t.id for t in console.snapshot().terminals] == [terminal_id]

        await console.refill_paper(terminal_id)

        assert identity.sign_ins == 1
        assert identity.refreshes == 2
        assert console.sync.actor_id == "anon-1"
        assert [t.id for t in console.snapshot().terminals] == [terminal_id]
        assert console.sync.status(Topic.TERMINALS) == TopicStatus.LIVE

        session = await console.ensure_session()
        assert session.actor_id == "anon-1"
        assert session.id_token == "t3"


@pytest.mark.asyncio
async def test_dashboard_reports_failed_topic_as_stale() -> None:
    store = MemoryRecordStore()
    dashboards: list[DashboardSummary] = []

    async with VendConsole(
        CONFIG,
        record_store=store,
        identity=StaticIdentity("operator-1"),
        on_dashboard=dashboards.append,
    ) as console:
        await console.login()
        await _settle()
        healthy = console.dashboard()
        assert not healthy.is_stale
        assert healthy.topic_status == {"terminals": "live", "unsoldTokens": "live", "sales": "live"}
        emitted = len(dashboards)

        store.fail_listeners(CONFIG.sales_path, PermissionError("permission denied"))

        assert len(dashboards) == emitted + 1
        latest = dashboards[-1]
        assert latest.total_revenue == 0
        assert latest.is_stale
        assert latest.stale_topics == ("sales",)
        assert latest.topic_status["sales"] == TopicStatus.ERROR
        assert "permission denied" in latest.topic_errors["sales"]
        assert console.dashboard() == latest
