"""Terminal lifecycle writes and token write-off."""

from __future__ import annotations

import logging

from vendconsole._constants import PAPER_FULL
from vendconsole._recordstore import SERVER_TIMESTAMP, RecordStore
from vendconsole.config import ConsoleConfig
from vendconsole.exceptions import VendValidationError, VendWriteError
from vendconsole.models import TerminalStatus

_logger = logging.getLogger(__name__)


def _require(value: str, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise VendValidationError(f"Terminal {field} must not be blank", field=field)
    return text


class TerminalLifecycle:
    """Mutations on single documents.

    Results are not returned as records; they show up through the live
    subscriptions like any other write.
    """

    def __init__(self, record_store: RecordStore, config: ConsoleConfig) -> None:
        self._record_store = record_store
        self._config = config

    async def register(self, name: str, location: str) -> str:
        """Create a terminal with a full paper roll; returns its new id."""
        fields = {
            "name": _require(name, "name"),
            "location": _require(location, "location"),
            "paperLevel": PAPER_FULL,
            "status": TerminalStatus.OFFLINE.value,
            "createdAt": SERVER_TIMESTAMP,
        }
        try:
            terminal_id = await self._record_store.write_one(self._config.terminals_path, None, fields)
        except Exception as exc:
            _logger.warning("Registering terminal %r failed: %s", fields["name"], exc)
            raise VendWriteError(f"Could not register terminal {fields['name']!r}: {exc}") from exc
        _logger.info("Registered terminal id=%s", terminal_id)
        return terminal_id

    async def refill_paper(self, terminal_id: str) -> None:
        """Set the terminal's paper level back to 100, whatever it was."""
        try:
            await self._record_store.update_one(self._config.terminals_path, terminal_id, {"paperLevel": PAPER_FULL})
        except Exception as exc:
            _logger.warning("Refilling terminal %s failed: %s", terminal_id, exc)
            raise VendWriteError(f"Could not refill terminal {terminal_id}: {exc}", doc_id=terminal_id) from exc

    async def delete_token(self, code: str) -> None:
        """Write off an unsold token. Irreversible."""
        try:
            await self._record_store.delete_one(self._config.tokens_path, code)
        except Exception as exc:
            _logger.warning("Deleting token %s failed: %s", code, exc)
            raise VendWriteError(f"Could not delete token {code}: {exc}", doc_id=code) from exc
        _logger.info("Deleted token %s", code)
