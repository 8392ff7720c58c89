"""Unit tests for OrderService with in-memory collaborators."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from modules.core.locking import CacheLockStore
from modules.orders.constants import OrderStatus
from modules.orders.dtos import DraftItemDTO
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.orders.models import Order
from modules.orders.services import OrderService, lock_key_for
from tests.unit.orders.fakes import InMemoryOrderRepository

pytestmark = pytest.mark.unit


def _order(pk, status=OrderStatus.OPEN, user_id=1, **kwargs) -> Order:
    return Order(pk=pk, status=status, user_id=user_id, **kwargs)


@pytest.fixture()
def lock_store():
    return CacheLockStore()


@pytest.fixture()
def repo():
    return InMemoryOrderRepository([_order(1), _order(2), _order(3)])


@pytest.fixture()
def service(repo, lock_store):
    return OrderService(repo, lock_store=lock_store, lock_ttl_seconds=60)


class TestLockKey:
    def test_lock_key_uses_order_id(self):
        assert lock_key_for(_order(42)) == "order:42"

    def test_lock_key_empty_for_missing_or_unsaved_order(self):
        assert lock_key_for(None) == ""
        assert lock_key_for(Order(status=OrderStatus.OPEN)) == ""


class TestNextOrder:
    def test_returns_first_open_order_and_locks_it(self, service, lock_store):
        order = service.next_order()
        assert order.pk == 1
        assert lock_store.is_locked("order:1") is True

    def test_only_returned_order_is_locked(self, service, lock_store):
        service.next_order()
        assert lock_store.is_locked("order:2") is False
        assert lock_store.is_locked("order:3") is False

    def test_skips_locked_orders(self, service, lock_store):
        lock_store.acquire("order:1", ttl_seconds=60)
        assert service.next_order().pk == 2

    def test_successive_calls_return_distinct_orders(self, service):
        picked = [service.next_order().pk for _ in range(3)]
        assert picked == [1, 2, 3]
        assert service.next_order() is None

    def test_none_when_no_open_orders(self, lock_store):
        repo = InMemoryOrderRepository([_order(1, status=OrderStatus.ORDERED)])
        service = OrderService(repo, lock_store=lock_store)
        assert service.next_order() is None
        assert lock_store.is_locked("order:1") is False

    def test_none_when_repository_empty(self, lock_store):
        service = OrderService(InMemoryOrderRepository(), lock_store=lock_store)
        assert service.next_order() is None

    def test_unpersisted_candidate_is_skipped(self, lock_store):
        repo = InMemoryOrderRepository([Order(status=OrderStatus.OPEN, user_id=1), _order(5)])
        service = OrderService(repo, lock_store=lock_store)
        assert service.next_order().pk == 5
        assert lock_store.is_locked("") is False

    def test_lost_race_moves_to_next_candidate(self, repo):
        store = MagicMock()
        store.is_locked.return_value = False
        store.acquire_if_absent.side_effect = [False, True]
        service = OrderService(repo, lock_store=store, lock_ttl_seconds=60)

        assert service.next_order().pk == 2
        store.acquire_if_absent.assert_any_call("order:1", 60)
        store.acquire_if_absent.assert_any_call("order:2", 60)

    def test_provider_filter_passed_to_repository(self, lock_store):
        repo = MagicMock()
        repo.list_by_status.return_value = []
        provider = MagicMock(pk=9)
        OrderService(repo, lock_store=lock_store).next_order(provider)
        repo.list_by_status.assert_called_once_with(OrderStatus.OPEN, provider)


class TestCountAvailable:
    def test_counts_unlocked_open_orders(self, service, lock_store):
        assert service.count_available() == 3
        lock_store.acquire("order:2", ttl_seconds=60)
        assert service.count_available() == 2

    def test_ignores_ordered_orders(self, lock_store):
        repo = InMemoryOrderRepository(
            [_order(1), _order(2, status=OrderStatus.ORDERED)]
        )
        assert OrderService(repo, lock_store=lock_store).count_available() == 1


class TestCompleteAndReset:
    def test_complete_marks_ordered_and_releases_lock(self, service, lock_store):
        order = service.next_order()
        service.complete(order)
        assert order.status == OrderStatus.ORDERED
        assert lock_store.is_locked("order:1") is False

    def test_completed_order_leaves_the_pool(self, service):
        service.complete(service.next_order())
        assert service.count_available() == 2
        assert service.next_order().pk == 2

    def test_reset_releases_lock_and_order_is_selectable_again(self, service, lock_store):
        order = service.next_order()
        service.reset(order)
        assert order.status == OrderStatus.OPEN
        assert lock_store.is_locked("order:1") is False
        assert service.next_order().pk == 1

    def test_complete_already_ordered_raises(self, service):
        order = _order(9, status=OrderStatus.ORDERED)
        with pytest.raises(InvalidOrderStatus):
            service.complete(order)

    def test_reset_ordered_order_raises(self, service):
        with pytest.raises(InvalidOrderStatus):
            service.reset(_order(9, status=OrderStatus.ORDERED))

    def test_failed_save_keeps_status_and_lock(self, service, repo, lock_store):
        order = service.next_order()
        repo.fail_on_save = True
        with pytest.raises(RuntimeError):
            service.complete(order)
        assert order.status == OrderStatus.OPEN
        assert lock_store.is_locked("order:1") is True

    def test_failed_lock_release_restores_status(self, repo):
        store = MagicMock()
        store.is_locked.return_value = False
        store.acquire_if_absent.return_value = True
        store.release.side_effect = ConnectionError("redis unreachable")
        service = OrderService(repo, lock_store=store, lock_ttl_seconds=60)
        order = service.next_order()

        with pytest.raises(ConnectionError):
            service.complete(order)

        assert order.status == OrderStatus.OPEN

    def test_release_lock_of_unlocked_order_is_noop(self, service, lock_store):
        order = _order(1)
        service.release_lock(order)
        service.release_lock(order)
        assert service.is_locked(order) is False


class TestPersistence:
    def test_save_defaults_status_and_date(self, service, repo):
        order = Order(pk=10, user_id=1, status="")
        order.order_date = None
        service.save(order)
        assert order.status == OrderStatus.OPEN
        assert order.order_date is not None
        assert repo.get_by_id(10) is order

    def test_save_keeps_caller_date(self, service):
        when = timezone.make_aware(datetime(2024, 3, 1, 12, 0))
        order = service.save(_order(11, order_date=when))
        assert order.order_date == when

    def test_place_order_creates_open_order(self, lock_store):
        repo = MagicMock()
        repo.create_with_items.side_effect = lambda order, items: order
        service = OrderService(repo, lock_store=lock_store)
        items = [DraftItemDTO(menu_item_id=3, quantity=1, amount=Decimal("6.50"))]
        order = Order(pk=12, user_id=1, status=OrderStatus.ORDERED)

        service.place_order(order, items)

        assert order.status == OrderStatus.OPEN
        repo.create_with_items.assert_called_once_with(order, items)

    def test_get_order_not_found(self, service):
        with pytest.raises(OrderNotFound):
            service.get_order(999)

    def test_get_without_dates_lists_all_user_orders(self, service):
        user = MagicMock(pk=1)
        assert [o.pk for o in service.get(user)] == [1, 2, 3]

    def test_get_single_day_covers_whole_local_day(self):
        repo = MagicMock()
        repo.list_by_user_and_date_range.return_value = []
        service = OrderService(repo, lock_store=CacheLockStore())
        user = MagicMock(pk=1)

        service.get(user, date(2024, 3, 1))

        _, start, end = repo.list_by_user_and_date_range.call_args.args
        assert (start.hour, start.minute, start.second) == (0, 0, 0)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)
        assert start.date() == end.date() == date(2024, 3, 1)
