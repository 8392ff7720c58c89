"""Order, OrderItem and PartialOrder models.

- ``Order`` is created OPEN and flips to ORDERED once a fulfillment
  worker completes it.  Orders are never deleted by the application.
- ``OrderItem.amount`` is a snapshot of the menu item price at the time
  the item was chosen.
- ``PartialOrder`` is the per-user draft driven by the conversation state
  machine.  Its two candidate lists are index-aligned: position ``i`` of
  ``location_ids_for_selection`` and ``menu_item_ids_for_selection`` is
  the option the user picks by typing ``i + 1``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Sequence, Tuple

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import VALID_TRANSITIONS, OrderStatus, TransactionPhase
from modules.orders.dtos import DraftItemDTO
from modules.providers.models import MenuItem, ProviderLocation


class Order(BaseModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="meal_orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.OPEN,
    )
    order_date = models.DateTimeField(default=timezone.now)
    provider_location = models.ForeignKey(
        ProviderLocation,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
    )
    subtotal = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    class Meta:
        db_table = "orders"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["user", "order_date"], name="orders_user_date_idx"),
        ]

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __str__(self) -> str:
        return f"Order {self.pk} ({self.status})"


class OrderItem(BaseModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey(
        MenuItem, on_delete=models.PROTECT, related_name="order_items"
    )
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    amount = models.DecimalField(max_digits=8, decimal_places=2)

    class Meta:
        db_table = "order_items"
        ordering = ["id"]

    @property
    def line_total(self) -> Decimal:
        return self.amount * self.quantity

    def __str__(self) -> str:
        return f"{self.menu_item_id} x{self.quantity} (${self.amount})"


class PartialOrder(BaseModel):
    """In-progress order built one message at a time."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="partial_order",
    )
    transaction_phase = models.CharField(
        max_length=32,
        choices=TransactionPhase.choices,
        default=TransactionPhase.MEAL,
    )
    location_ids_for_selection = models.JSONField(default=list, blank=True)
    menu_item_ids_for_selection = models.JSONField(default=list, blank=True)
    chosen_provider = models.ForeignKey(
        ProviderLocation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    order_items = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "partial_orders"

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def set_candidates(
        self,
        locations: Sequence[ProviderLocation],
        menu_items: Sequence[MenuItem],
    ) -> None:
        if len(locations) != len(menu_items):
            raise ValueError("Candidate locations and menu items must be aligned.")
        self.location_ids_for_selection = [location.pk for location in locations]
        self.menu_item_ids_for_selection = [item.pk for item in menu_items]

    def candidate_at(self, index: int) -> Tuple[ProviderLocation, MenuItem]:
        """Return the (location, item) pair at 0-based *index*.

        Raises ``IndexError`` when there is no candidate at that position
        or it no longer exists.
        """
        if index < 0:
            raise IndexError(index)
        location_id = self.location_ids_for_selection[index]
        item_id = self.menu_item_ids_for_selection[index]
        location = ProviderLocation.objects.filter(pk=location_id).first()
        item = MenuItem.objects.filter(pk=item_id).first()
        if location is None or item is None:
            raise IndexError(index)
        return location, item

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @property
    def items(self) -> List[DraftItemDTO]:
        return [DraftItemDTO.model_validate(entry) for entry in self.order_items]

    def add_item(self, menu_item: MenuItem, quantity: int = 1) -> DraftItemDTO:
        item = DraftItemDTO(
            menu_item_id=menu_item.pk, quantity=quantity, amount=menu_item.price
        )
        self.order_items = [*self.order_items, item.model_dump(mode="json")]
        return item

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0.00"))

    def __str__(self) -> str:
        return f"Draft for user {self.user_id} ({self.transaction_phase})"
