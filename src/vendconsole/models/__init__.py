"""Record models for vendconsole.

Document models map the store's camelCase fields onto snake_case
attributes; summary models are derived and never stored.
"""

from vendconsole.models._base import StoreTimestamp, VendBaseModel, parse_store_timestamp
from vendconsole.models.sale import Sale
from vendconsole.models.summary import DashboardSummary, TerminalSales, TopicStatus
from vendconsole.models.terminal import PaperStatus, Terminal, TerminalStatus
from vendconsole.models.token import Token

__all__ = [
    "DashboardSummary",
    "PaperStatus",
    "Sale",
    "StoreTimestamp",
    "TerminalSales",
    "Terminal",
    "TerminalStatus",
    "Token",
    "TopicStatus",
    "VendBaseModel",
    "parse_store_timestamp",
]
