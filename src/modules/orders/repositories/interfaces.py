"""Order repository interfaces.

``IOrderRepository`` extends ``IRepository[Order]`` with the look-ups
used by order acquisition (orders by status, optionally per provider)
and by the daily quota (a user's orders in a date range).
``IPartialOrderRepository`` stores the one draft each user may have.

The Service Layer depends exclusively on these contracts (DIP).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import DraftItemDTO
    from modules.orders.models import Order, PartialOrder
    from modules.providers.models import Provider


class IOrderRepository(IRepository["Order"]):
    @abstractmethod
    def list_by_status(
        self, status: str, provider: Optional[Provider] = None
    ) -> List[Order]:
        """Orders with *status*, optionally limited to one provider.

        No ordering is guaranteed to callers.
        """

    @abstractmethod
    def list_by_user(self, user) -> List[Order]:
        """All orders placed by *user*."""

    @abstractmethod
    def list_by_user_and_date_range(
        self, user, start: datetime, end: datetime
    ) -> List[Order]:
        """Orders placed by *user* with ``start <= order_date <= end``."""

    @abstractmethod
    def create_with_items(self, order: Order, items: Iterable[DraftItemDTO]) -> Order:
        """Persist a new order together with its line items atomically."""


class IPartialOrderRepository(ABC):
    @abstractmethod
    def get_for_user(self, user) -> Optional[PartialOrder]:
        """The user's draft, ``None`` if there is none."""

    @abstractmethod
    def save(self, draft: PartialOrder) -> PartialOrder:
        """Persist a draft; an unsaved one replaces the user's existing row."""

    @abstractmethod
    def delete(self, draft: PartialOrder) -> None:
        """Remove a draft that has been consumed or abandoned."""

    @abstractmethod
    def purge_idle(self, before: datetime) -> int:
        """Delete drafts not updated since *before*; return how many."""
