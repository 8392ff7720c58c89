"""Order API views.

- ``OrderViewSet``: fulfillment stations pull the next order, complete it
  or hand it back (reset), and browse orders.
- ``InboundMessageView``: the messaging gateway forwards user texts to the
  conversation state machine and relays the reply.
- ``OrderEligibilityView``: daily quota predicates for one user.

Domain exceptions are caught and translated into HTTP status codes.
"""

from __future__ import annotations

from typing import Optional

import structlog
from django.conf import settings
from django.utils.module_loading import import_string
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.orders.dtos import InboundMessageDTO
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.processor import OrderProcessor
from modules.orders.repositories import (
    OrderDjangoRepository,
    PartialOrderDjangoRepository,
)
from modules.orders.serializers import (
    InboundMessageSerializer,
    OrderEligibilitySerializer,
    OrderSerializer,
)
from modules.orders.services import OrderQuotaService, OrderService
from modules.providers.models import Provider
from modules.users.repositories import (
    ActivationCodeDjangoRepository,
    UserDjangoRepository,
)

logger = structlog.get_logger(__name__)

NO_ACTIVE_CODES_REPLY = (
    "You do not have an active activation code. "
    "Please redeem a code to order meals."
)
MAX_DAILY_ORDERS_REPLY = "You have reached the maximum number of meals for today."


def _quota_service() -> OrderQuotaService:
    return OrderQuotaService(
        order_repository=OrderDjangoRepository(),
        activation_code_repository=ActivationCodeDjangoRepository(),
    )


def _not_found(detail: str) -> Response:
    return Response({"detail": detail}, status=status.HTTP_404_NOT_FOUND)


class OrderViewSet(GenericViewSet):
    """Fulfillment operations on orders.

    Does **not** extend ``ModelViewSet``: every write goes through
    ``OrderService`` so status changes always release the order lock.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    ordering_fields = ["order_date", "subtotal", "status"]
    ordering = ["id"]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(order_repository=OrderDjangoRepository())

    def get_queryset(self):
        return Order.objects.select_related("provider_location").prefetch_related(
            "items__menu_item"
        )

    def _provider_param(self, request: Request) -> tuple[bool, Optional[Provider]]:
        """``(found, provider)`` for the optional ``provider`` query parameter."""
        raw = request.query_params.get("provider")
        if not raw:
            return True, None
        try:
            provider = Provider.objects.filter(pk=int(raw)).first()
        except ValueError:
            return False, None
        return provider is not None, provider

    def _get_order(self, pk: Optional[str]) -> Order:
        try:
            return self._service.get_order(int(pk))
        except (TypeError, ValueError):
            raise OrderNotFound(f"Order {pk} not found.")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/"""
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(OrderSerializer(page, many=True).data)
        return Response(OrderSerializer(queryset, many=True).data)

    def retrieve(self, request: Request, pk: Optional[str] = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._get_order(pk)
        except OrderNotFound:
            return _not_found("Order not found.")
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Fulfillment
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"])
    def next(self, request: Request) -> Response:
        """POST /api/v1/orders/next/?provider=<id>

        Locks and returns the next OPEN order; 204 when none is available.
        """
        found, provider = self._provider_param(request)
        if not found:
            return _not_found("Provider not found.")

        order = self._service.next_order(provider)
        if order is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"])
    def count(self, request: Request) -> Response:
        """GET /api/v1/orders/count/?provider=<id>"""
        found, provider = self._provider_param(request)
        if not found:
            return _not_found("Provider not found.")
        return Response({"available": self._service.count_available(provider)})

    @action(detail=True, methods=["post"])
    def complete(self, request: Request, pk: Optional[str] = None) -> Response:
        """POST /api/v1/orders/{pk}/complete/"""
        return self._finish(pk, self._service.complete)

    @action(detail=True, methods=["post"])
    def reset(self, request: Request, pk: Optional[str] = None) -> Response:
        """POST /api/v1/orders/{pk}/reset/"""
        return self._finish(pk, self._service.reset)

    def _finish(self, pk: Optional[str], operation) -> Response:
        try:
            order = operation(self._get_order(pk))
        except OrderNotFound:
            return _not_found("Order not found.")
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(OrderSerializer(order).data)


class InboundMessageView(APIView):
    """POST /api/v1/messages/

    Users without a dialog in progress must hold an active activation
    code and have meals left for today before a new draft is started.
    A stale draft does not count as a dialog in progress.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._users = UserDjangoRepository()
        self._quota = _quota_service()
        self._processor = OrderProcessor(
            order_service=OrderService(order_repository=OrderDjangoRepository()),
            partial_order_repository=PartialOrderDjangoRepository(),
            geocoding_service=import_string(settings.GEOCODING_SERVICE)(),
            user_repository=self._users,
        )

    def post(self, request: Request) -> Response:
        serializer = InboundMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = InboundMessageDTO(**serializer.validated_data)

        user = self._users.get_by_id(dto.user_id)
        if user is None:
            return _not_found("User not found.")

        log = logger.bind(user_id=user.pk)
        if not self._processor.has_draft_in_progress(user):
            if not self._quota.has_active_activation_codes(user):
                log.info("message.refused", reason="no_active_codes")
                return Response({"reply": NO_ACTIVE_CODES_REPLY})
            if self._quota.max_daily_orders_reached(user):
                log.info("message.refused", reason="max_daily_orders")
                return Response({"reply": MAX_DAILY_ORDERS_REPLY})

        reply = self._processor.process_message(user, dto.message)
        return Response({"reply": reply})


class OrderEligibilityView(APIView):
    """GET /api/v1/users/{pk}/order-eligibility/"""

    def get(self, request: Request, pk: int) -> Response:
        user = UserDjangoRepository().get_by_id(pk)
        if user is None:
            return _not_found("User not found.")

        quota = _quota_service()
        serializer = OrderEligibilitySerializer(
            {
                "max_daily_orders_reached": quota.max_daily_orders_reached(user),
                "has_active_activation_codes": quota.has_active_activation_codes(user),
                "current_pending_order": quota.current_pending_order(user),
            }
        )
        return Response(serializer.data)
