"""Prepaid access token model."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from vendconsole.models._base import StoreTimestamp, VendBaseModel


class Token(VendBaseModel):
    """A single prepaid access code.

    The code doubles as the document id, so ``id == code`` always holds.
    ``is_sold`` only ever moves from ``False`` to ``True``, and that
    transition happens at the terminal, never here.
    """

    id: str
    code: str = ""
    plan: str = ""
    price: int = Field(default=0, ge=0)
    cost_price: int = Field(default=0, ge=0)
    franchisee_fee: int = Field(default=0, ge=0)
    is_sold: bool = False
    machine_id: str | None = None
    imported_at: StoreTimestamp = None

    @model_validator(mode="before")
    @classmethod
    def _code_from_id(cls, values: Any) -> Any:
        if isinstance(values, dict) and not values.get("code") and values.get("id"):
            values = {**values, "code": values["id"]}
        return values
