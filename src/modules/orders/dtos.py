"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2, immutable
(``frozen=True``).

- ``DraftItemDTO``: one line item accumulated on a draft; stored as JSON
  on ``PartialOrder.order_items``.
- ``InboundMessageDTO``: a text message received from a program user.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator


class DraftItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    menu_item_id: int
    quantity: int = 1
    amount: Decimal

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @property
    def line_total(self) -> Decimal:
        return self.amount * self.quantity


class InboundMessageDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    user_id: int
    message: str

    @field_validator("message")
    @classmethod
    def message_must_not_be_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Message must not be empty.")
        return v
