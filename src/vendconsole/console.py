"""High-level async facade for the operator console."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from vendconsole._firestore import FirestoreRecordStore
from vendconsole._recordstore import RecordStore
from vendconsole._transport import JsonTransport
from vendconsole.aggregation import AggregationEngine, filter_tokens, recent_sales
from vendconsole.config import ConsoleConfig
from vendconsole.exceptions import VendError
from vendconsole.identity import FirebaseIdentity, IdentityProvider, Session
from vendconsole.ingestion.pipeline import ImportPipeline, ImportResult
from vendconsole.lifecycle import TerminalLifecycle
from vendconsole.models import DashboardSummary, PaperStatus, Sale, Terminal, TerminalSales, Token
from vendconsole.sync.events import SnapshotEvent, SubscriptionErrorEvent, SyncSnapshot
from vendconsole.sync.store import SyncStore
from vendconsole.sync.topics import Topic

_logger = logging.getLogger(__name__)


class VendConsole:
    """Async console over the vending fleet's record store.

    Usage::

        async with VendConsole(config) as console:
            await console.login()
            await console.wait_until_synced()
            print(console.dashboard())

    Passing ``record_store`` and ``identity`` skips the HTTP stack
    entirely, which is how tests and local tooling run the console.
    """

    def __init__(
        self,
        config: ConsoleConfig,
        *,
        record_store: RecordStore | None = None,
        identity: IdentityProvider | None = None,
        session: aiohttp.ClientSession | None = None,
        on_dashboard: Callable[[DashboardSummary], None] | None = None,
        on_error: Callable[[SubscriptionErrorEvent], None] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._record_store = record_store
        self._identity = identity
        self._session: Session | None = None
        self._session_lock = asyncio.Lock()
        self._sync: SyncStore | None = None
        self._pipeline: ImportPipeline | None = None
        self._lifecycle: TerminalLifecycle | None = None
        self._aggregation = AggregationEngine(config)
        self._on_dashboard = on_dashboard
        self._on_error = on_error

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> VendConsole:
        if self._record_store is None or self._identity is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            if self._identity is None:
                self._identity = FirebaseIdentity(self._config, JsonTransport(self._http_session))
            if self._record_store is None:
                transport = JsonTransport(self._http_session, token_provider=self._id_token)
                self._record_store = FirestoreRecordStore(self._config, transport)

        store = self._record_store
        self._sync = SyncStore(store, self._config)
        self._sync.add_listener(self._on_snapshot)
        self._sync.add_error_listener(self._on_subscription_error)
        self._pipeline = ImportPipeline(store, self._config)
        self._lifecycle = TerminalLifecycle(store, self._config)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._sync is not None:
            self._sync.stop()
        if isinstance(self._record_store, FirestoreRecordStore):
            await self._record_store.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._session = None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def login(self) -> Session:
        """Resolve the actor identity and start synchronizing."""
        if self._identity is None:
            raise VendError("Console not initialized. Use 'async with VendConsole(...) as console:'")
        session = await self._identity.sign_in()
        self._session = session
        self._require_sync().start(session.actor_id)
        _logger.debug("Synchronization started")
        return session

    async def ensure_session(self) -> Session:
        """Return an active session, renewing it if expired.

        Renewal keeps the actor id, so the live topics and their
        collections carry on untouched. Only a first call signs in.
        """
        async with self._session_lock:
            session = self._session
            if session is not None and not session.is_expired:
                return session
            if session is None:
                return await self.login()
            if self._identity is None:
                raise VendError("Console not initialized. Use 'async with VendConsole(...) as console:'")
            renewed = await self._identity.refresh(session)
            self._session = renewed
            _logger.debug("Session renewed after %.0fs", session.age)
            # No-op unless the provider had to fall back to a new actor.
            self._require_sync().start(renewed.actor_id)
            return renewed

    async def _id_token(self) -> str | None:
        if self._session is None:
            return None
        session = await self.ensure_session()
        return session.id_token or None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_sync(self) -> SyncStore:
        if self._sync is None:
            raise VendError("Console not initialized. Use 'async with VendConsole(...) as console:'")
        return self._sync

    def _require_pipeline(self) -> ImportPipeline:
        if self._pipeline is None:
            raise VendError("Console not initialized. Use 'async with VendConsole(...) as console:'")
        return self._pipeline

    def _require_lifecycle(self) -> TerminalLifecycle:
        if self._lifecycle is None:
            raise VendError("Console not initialized. Use 'async with VendConsole(...) as console:'")
        return self._lifecycle

    def _on_snapshot(self, _event: SnapshotEvent) -> None:
        self._emit_dashboard()

    def _emit_dashboard(self) -> None:
        if self._on_dashboard is None:
            return
        try:
            self._on_dashboard(self.dashboard())
        except Exception:
            _logger.debug("on_dashboard callback failed", exc_info=True)

    def _on_subscription_error(self, event: SubscriptionErrorEvent) -> None:
        # The summary now reports the topic as stale.
        self._emit_dashboard()
        if self._on_error is None:
            return
        try:
            self._on_error(event)
        except Exception:
            _logger.debug("on_error callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Synchronized views
    # ------------------------------------------------------------------

    @property
    def sync(self) -> SyncStore:
        return self._require_sync()

    def snapshot(self) -> SyncSnapshot:
        return self._require_sync().snapshot()

    async def wait_until_synced(self, timeout_seconds: float = 10.0) -> bool:
        """Wait until every topic has delivered at least one snapshot."""
        sync = self._require_sync()
        for topic in Topic:
            if sync.version(topic) > 0:
                continue
            if not await sync.wait_for_snapshot(topic, timeout_seconds):
                return False
        return True

    def dashboard(self) -> DashboardSummary:
        return self._aggregation.dashboard(self.snapshot())

    def sales_by_terminal(self) -> dict[str, TerminalSales]:
        return self._aggregation.sales_by_terminal(self.snapshot())

    def paper_status(self, terminal: Terminal) -> PaperStatus:
        return self._aggregation.paper_status(terminal)

    def recent_sales(self, limit: int = 10) -> tuple[Sale, ...]:
        return recent_sales(self._require_sync().sales, limit)

    def search_tokens(self, query: str) -> tuple[Token, ...]:
        return filter_tokens(self._require_sync().unsold_tokens, query)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def import_tokens(self, payload: str | bytes, sale_price: int) -> ImportResult:
        """Import a batch file with *sale_price* applied to every token."""
        await self.ensure_session()
        return await self._require_pipeline().import_batch(payload, sale_price)

    async def register_terminal(self, name: str, location: str) -> str:
        await self.ensure_session()
        return await self._require_lifecycle().register(name, location)

    async def refill_paper(self, terminal_id: str) -> None:
        await self.ensure_session()
        await self._require_lifecycle().refill_paper(terminal_id)

    async def delete_token(self, code: str) -> None:
        await self.ensure_session()
        await self._require_lifecycle().delete_token(code)
