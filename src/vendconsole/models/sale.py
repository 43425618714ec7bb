"""Sale (completed redemption) model."""

from __future__ import annotations

from vendconsole.models._base import StoreTimestamp, VendBaseModel


class Sale(VendBaseModel):
    """An immutable record of one token redeemed at a terminal.

    ``price`` and ``franchisee_fee`` are copied at sale time and are the
    source of truth for what was charged. ``machine_id`` is a soft
    reference and may not resolve to a known terminal.
    """

    id: str
    machine_id: str | None = None
    token_code: str = ""
    price: int = 0
    franchisee_fee: int | None = None
    timestamp: StoreTimestamp = None

    @property
    def fee_or_zero(self) -> int:
        return self.franchisee_fee or 0
