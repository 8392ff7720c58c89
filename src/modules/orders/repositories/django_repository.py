"""Django ORM implementation of the order repositories.

Writes touching more than one row are wrapped in ``transaction.atomic()``
so an order is never persisted without its items.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.db import transaction

from modules.orders.models import Order, OrderItem, PartialOrder
from modules.orders.repositories.interfaces import (
    IOrderRepository,
    IPartialOrderRepository,
)

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def _queryset(self):
        return Order.objects.select_related(
            "provider_location", "provider_location__provider"
        ).prefetch_related("items")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: int) -> Optional[Order]:
        """Return ``None`` for non-existent or malformed IDs."""
        try:
            return self._queryset().filter(pk=id).first()
        except (TypeError, ValueError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        queryset = self._queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_by_status(self, status: str, provider=None) -> List[Order]:
        queryset = self._queryset().filter(status=status)
        if provider is not None:
            queryset = queryset.filter(provider_location__provider=provider)
        return list(queryset)

    def list_by_user(self, user) -> List[Order]:
        return list(self._queryset().filter(user=user))

    def list_by_user_and_date_range(
        self, user, start: datetime, end: datetime
    ) -> List[Order]:
        return list(self._queryset().filter(user=user, order_date__range=(start, end)))

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        entity.save()
        logger.info("order.saved", order_id=entity.pk, status=entity.status)
        return entity

    @transaction.atomic
    def create_with_items(self, order: Order, items: Iterable[Any]) -> Order:
        order.save()
        subtotal = Decimal("0.00")
        count = 0
        for item in items:
            line = OrderItem.objects.create(
                order=order,
                menu_item_id=item.menu_item_id,
                quantity=item.quantity,
                amount=item.amount,
            )
            subtotal += line.line_total
            count += 1

        order.subtotal = subtotal
        order.save(update_fields=["subtotal"])
        logger.info("order.created", order_id=order.pk, item_count=count)
        return order


class PartialOrderDjangoRepository(IPartialOrderRepository):
    def get_for_user(self, user) -> Optional[PartialOrder]:
        return PartialOrder.objects.filter(user=user).first()

    def save(self, draft: PartialOrder) -> PartialOrder:
        """Persist *draft* and return the stored row.

        An unsaved draft replaces any row the user already has: when two
        first messages from one user race, the later write wins.
        """
        if draft.pk is not None:
            draft.save()
            return draft

        stored, created = PartialOrder.objects.update_or_create(
            user=draft.user,
            defaults={
                "transaction_phase": draft.transaction_phase,
                "location_ids_for_selection": draft.location_ids_for_selection,
                "menu_item_ids_for_selection": draft.menu_item_ids_for_selection,
                "chosen_provider": draft.chosen_provider,
                "order_items": draft.order_items,
            },
        )
        if not created:
            logger.info("draft.replaced", user_id=stored.user_id, draft_id=stored.pk)
        return stored

    def delete(self, draft: PartialOrder) -> None:
        if draft.pk is not None:
            draft.delete()

    def purge_idle(self, before: datetime) -> int:
        count, _ = PartialOrder.objects.filter(updated_at__lt=before).delete()
        return count
