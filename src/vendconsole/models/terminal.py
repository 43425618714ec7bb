"""Terminal (vending unit) model."""

from __future__ import annotations

import enum

from pydantic import Field

from vendconsole.models._base import StoreTimestamp, VendBaseModel


class TerminalStatus(enum.StrEnum):
    """Connectivity status reported by the terminal's own heartbeat."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> TerminalStatus:
        return cls.UNKNOWN


class PaperStatus(enum.StrEnum):
    """Consumable level band used by the terminal overview."""

    OK = "ok"
    WARNING = "warning"
    LOW = "low"


class Terminal(VendBaseModel):
    """A vending unit.

    ``status`` is written by the terminal itself; the console only reads it.
    """

    id: str
    name: str = ""
    location: str = ""
    paper_level: int = Field(default=0, ge=0, le=100)
    status: TerminalStatus = TerminalStatus.OFFLINE
    created_at: StoreTimestamp = None

    @property
    def is_online(self) -> bool:
        return self.status == TerminalStatus.ONLINE

    @property
    def is_paper_full(self) -> bool:
        return self.paper_level >= 100
