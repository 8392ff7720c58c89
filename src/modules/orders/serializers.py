"""Order DRF serializers for API input/output.

Business logic lives in the Service Layer; inbound payloads are turned
into Pydantic DTOs from ``dtos.py`` before reaching it.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.models import Order, OrderItem

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class InboundMessageSerializer(serializers.Serializer):
    """Validates a text message forwarded by the messaging gateway."""

    user_id = serializers.IntegerField(min_value=1)
    message = serializers.CharField(max_length=1000, trim_whitespace=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source="menu_item.name", read_only=True)

    class Meta:
        model = OrderItem
        fields = ["id", "menu_item_id", "menu_item_name", "quantity", "amount"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items."""

    items = OrderItemSerializer(many=True, read_only=True)
    provider_location_name = serializers.CharField(
        source="provider_location.name", read_only=True, default=None
    )

    class Meta:
        model = Order
        fields = [
            "id",
            "user_id",
            "status",
            "order_date",
            "provider_location_id",
            "provider_location_name",
            "subtotal",
            "items",
        ]
        read_only_fields = fields


class OrderEligibilitySerializer(serializers.Serializer):
    max_daily_orders_reached = serializers.BooleanField()
    has_active_activation_codes = serializers.BooleanField()
    current_pending_order = serializers.BooleanField()
