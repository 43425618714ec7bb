"""vendconsole - Inventory and ledger synchronization for a vending terminal fleet."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vendconsole")
except PackageNotFoundError:
    __version__ = "0+local"

from vendconsole._memory import MemoryRecordStore
from vendconsole._recordstore import SERVER_TIMESTAMP, DocumentSnapshot, FieldFilter, QuerySpec, RecordStore
from vendconsole.aggregation import AggregationEngine
from vendconsole.config import ConsoleConfig
from vendconsole.console import VendConsole
from vendconsole.exceptions import (
    VendAlreadySoldError,
    VendAuthenticationError,
    VendConfigError,
    VendError,
    VendImportError,
    VendSubscriptionError,
    VendTransportError,
    VendValidationError,
    VendWriteError,
)
from vendconsole.identity import FirebaseIdentity, Session, StaticIdentity
from vendconsole.ingestion.pipeline import ImportPipeline, ImportResult
from vendconsole.lifecycle import TerminalLifecycle
from vendconsole.models import (
    DashboardSummary,
    PaperStatus,
    Sale,
    Terminal,
    TerminalSales,
    TerminalStatus,
    Token,
    TopicStatus,
)
from vendconsole.sync.events import SnapshotEvent, SubscriptionErrorEvent, SyncSnapshot
from vendconsole.sync.store import SyncStore
from vendconsole.sync.topics import Topic

__all__ = [
    "__version__",
    "SERVER_TIMESTAMP",
    "AggregationEngine",
    "ConsoleConfig",
    "DashboardSummary",
    "DocumentSnapshot",
    "FieldFilter",
    "FirebaseIdentity",
    "ImportPipeline",
    "ImportResult",
    "MemoryRecordStore",
    "PaperStatus",
    "QuerySpec",
    "RecordStore",
    "Sale",
    "Session",
    "SnapshotEvent",
    "StaticIdentity",
    "SubscriptionErrorEvent",
    "SyncSnapshot",
    "SyncStore",
    "Terminal",
    "TerminalLifecycle",
    "TerminalSales",
    "TerminalStatus",
    "Token",
    "Topic",
    "TopicStatus",
    "VendAlreadySoldError",
    "VendAuthenticationError",
    "VendConfigError",
    "VendConsole",
    "VendError",
    "VendImportError",
    "VendSubscriptionError",
    "VendTransportError",
    "VendValidationError",
    "VendWriteError",
]
