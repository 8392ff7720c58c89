"""Order repositories package."""

from modules.orders.repositories.django_repository import (
    OrderDjangoRepository,
    PartialOrderDjangoRepository,
)
from modules.orders.repositories.interfaces import (
    IOrderRepository,
    IPartialOrderRepository,
)

__all__ = [
    "IOrderRepository",
    "IPartialOrderRepository",
    "OrderDjangoRepository",
    "PartialOrderDjangoRepository",
]
