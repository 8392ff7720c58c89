"""Order service layer (Use Cases).

``OrderService`` hands OPEN orders to fulfillment workers under lock
discipline:

- ``next_order`` walks the OPEN orders in repository order and returns the
  first one it manages to lock.  Locks are taken one candidate at a time;
  orders that will not be returned are never locked.
- ``complete`` / ``reset`` flip the status and release the lock in one
  unit of work.  A failed save leaves both the status and the lock as
  they were.

``OrderQuotaService`` answers the read-only eligibility questions asked
before a user starts a new order: one meal per active activation code
per local calendar day.
"""

from __future__ import annotations

import threading
from datetime import date, datetime, time, tzinfo
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Tuple

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.locking import CacheLockStore, ILockStore, default_lock_ttl_seconds
from modules.orders.constants import LOCK_KEY_FORMAT, OrderStatus
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound

if TYPE_CHECKING:
    from modules.orders.dtos import DraftItemDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.providers.models import Provider
    from modules.users.repositories.interfaces import IActivationCodeRepository

logger = structlog.get_logger(__name__)


def lock_key_for(order: Optional[Order]) -> str:
    """Lock key of a persisted order; ``""`` for ``None`` or unsaved orders."""
    if order is None or order.pk is None:
        return ""
    return LOCK_KEY_FORMAT.format(id=order.pk)


class OrderService:
    """Application service for order persistence and fulfillment locking.

    Receives its repository and lock store via constructor injection (DIP).
    """

    # Only one thread of this process may be inside the
    # "is it locked / lock it" decision at a time.
    _acquire_guard = threading.Lock()

    def __init__(
        self,
        order_repository: IOrderRepository,
        lock_store: Optional[ILockStore] = None,
        lock_ttl_seconds: Optional[int] = None,
    ) -> None:
        self._order_repo = order_repository
        self._locks = lock_store or CacheLockStore()
        self._lock_ttl = lock_ttl_seconds or default_lock_ttl_seconds()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, order: Order) -> Order:
        """Persist *order*, defaulting status to OPEN and date to now."""
        if not order.status:
            order.status = OrderStatus.OPEN
        if order.order_date is None:
            order.order_date = timezone.now()
        return self._order_repo.save(order)

    def place_order(self, order: Order, items: Iterable[DraftItemDTO]) -> Order:
        """Persist a new order with its line items (created OPEN)."""
        order.status = OrderStatus.OPEN
        if order.order_date is None:
            order.order_date = timezone.now()
        order = self._order_repo.create_with_items(order, items)
        logger.info(
            "order.placed",
            order_id=order.pk,
            user_id=order.user_id,
            subtotal=str(order.subtotal),
        )
        return order

    def get(
        self,
        user,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Order]:
        """Orders of *user*; with *start_date* alone, that whole day."""
        if start_date is None:
            return self._order_repo.list_by_user(user)
        end_date = end_date or start_date
        tz = timezone.get_current_timezone()
        start = datetime.combine(start_date, time.min, tzinfo=tz)
        end = datetime.combine(end_date, time.max, tzinfo=tz)
        return self._order_repo.list_by_user_and_date_range(user, start, end)

    def get_order(self, order_id: int) -> Order:
        """Raises ``OrderNotFound`` if the order does not exist."""
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def next_order(self, provider: Optional[Provider] = None) -> Optional[Order]:
        """Lock and return the next OPEN order, ``None`` if none is available.

        Candidates are tried in the order the repository returns them;
        no chronological ordering is implied.
        """
        candidates = self._order_repo.list_by_status(OrderStatus.OPEN, provider)
        for order in candidates:
            if self._lock_acquired(order):
                logger.info(
                    "order.locked",
                    order_id=order.pk,
                    provider_id=getattr(provider, "pk", None),
                )
                return order

        logger.info(
            "order.none_available",
            candidates=len(candidates),
            provider_id=getattr(provider, "pk", None),
        )
        return None

    def count_available(self, provider: Optional[Provider] = None) -> int:
        """OPEN orders not currently locked.

        A point-in-time estimate for display; it races with acquisition.
        """
        candidates = self._order_repo.list_by_status(OrderStatus.OPEN, provider)
        return sum(1 for order in candidates if not self.is_locked(order))

    @transaction.atomic
    def complete(self, order: Order) -> Order:
        """Mark *order* ORDERED and release its lock."""
        return self._save_transition(order, OrderStatus.ORDERED)

    @transaction.atomic
    def reset(self, order: Order) -> Order:
        """Return *order* to OPEN so it can be acquired again."""
        return self._save_transition(order, OrderStatus.OPEN)

    def release_lock(self, order: Order) -> Order:
        self._locks.release(lock_key_for(order))
        logger.info("order.lock_released", order_id=order.pk)
        return order

    def is_locked(self, order: Order) -> bool:
        return self._locks.is_locked(lock_key_for(order))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_acquired(self, order: Order) -> bool:
        key = lock_key_for(order)
        if not key:
            logger.warning("order.unpersisted_candidate_skipped")
            return False

        with self._acquire_guard:
            if self._locks.is_locked(key):
                return False
            # acquire_if_absent still loses to a worker in another process
            # that locked the order since the check above.
            return self._locks.acquire_if_absent(key, self._lock_ttl)

    def _save_transition(self, order: Order, new_status: str) -> Order:
        """Save the new status and release the lock, or leave both unchanged.

        Runs inside the caller's transaction: a failed release rolls the
        row back, so the in-memory status is restored as well.
        """
        old_status = order.status
        self._transition(order, new_status)
        try:
            return self.release_lock(self.save(order))
        except Exception:
            order.status = old_status
            raise

    def _transition(self, order: Order, new_status: str) -> None:
        if not order.can_transition_to(new_status):
            logger.warning(
                "order.invalid_transition",
                order_id=order.pk,
                current_status=order.status,
                new_status=new_status,
            )
            raise InvalidOrderStatus(
                f"Cannot transition from {order.status} to {new_status}."
            )
        old_status = order.status
        order.status = new_status
        logger.info(
            "order.status_changed",
            order_id=order.pk,
            old_status=old_status,
            new_status=new_status,
        )


class OrderQuotaService:
    """Daily meal quota: one order per active activation code per day.

    The day window is computed from an injectable *clock* in an explicit
    time zone (the current Django time zone unless *tz* is given).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        activation_code_repository: IActivationCodeRepository,
        clock: Callable[[], datetime] = timezone.now,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self._order_repo = order_repository
        self._code_repo = activation_code_repository
        self._clock = clock
        self._tz = tz

    def day_window(self) -> Tuple[datetime, datetime]:
        """Start and end (inclusive) of the current local calendar day."""
        tz = self._tz or timezone.get_current_timezone()
        now = timezone.localtime(self._clock(), tz)
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = now.replace(hour=23, minute=59, second=59, microsecond=999999)
        return start, end

    def todays_orders(self, user) -> List[Order]:
        start, end = self.day_window()
        logger.debug(
            "quota.orders_lookup",
            user_id=user.pk,
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return self._order_repo.list_by_user_and_date_range(user, start, end)

    def max_daily_orders_reached(self, user) -> bool:
        """True when today's orders already use up every active code.

        A user without active codes has always reached the cap.
        """
        codes = self._code_repo.list_active_by_user(user)
        logger.debug("quota.active_codes", user_id=user.pk, count=len(codes))
        for code in codes:
            logger.debug(
                "quota.active_code",
                activation_code=code.activation_code,
                meals_remaining=code.meals_remaining,
            )

        orders = self.todays_orders(user)
        logger.debug("quota.todays_orders", user_id=user.pk, count=len(orders))
        return len(orders) >= len(codes)

    def has_active_activation_codes(self, user) -> bool:
        return len(self._code_repo.list_active_by_user(user)) > 0

    def current_pending_order(self, user) -> bool:
        """True if one of today's orders has not been fulfilled yet."""
        return any(order.status == OrderStatus.OPEN for order in self.todays_orders(user))
