"""Order URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.orders.views import InboundMessageView, OrderEligibilityView, OrderViewSet

router = DefaultRouter(trailing_slash=True)
router.register("orders", OrderViewSet, basename="order")

urlpatterns = [
    path("messages/", InboundMessageView.as_view(), name="inbound_message"),
    path(
        "users/<int:pk>/order-eligibility/",
        OrderEligibilityView.as_view(),
        name="order_eligibility",
    ),
    *router.urls,
]
