"""Concurrent order acquisition.

Scenario:
- One OPEN order, ten fulfillment workers calling ``next_order`` at once.
- Exactly one worker receives the order; the others receive ``None``.
- With five orders and ten workers, every order is handed out once.

Uses an in-memory order repository so worker threads share state without
database connections; the lock store is the real cache-backed one.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from modules.core.locking import CacheLockStore
from modules.orders.constants import OrderStatus
from modules.orders.models import Order
from modules.orders.services import OrderService
from tests.unit.orders.fakes import InMemoryOrderRepository

pytestmark = pytest.mark.integration

NUM_WORKERS = 10


def _run_workers(repo) -> list:
    barrier = threading.Barrier(NUM_WORKERS)

    def worker(_):
        service = OrderService(repo, lock_store=CacheLockStore(), lock_ttl_seconds=60)
        barrier.wait()
        return service.next_order()

    with ThreadPoolExecutor(max_workers=NUM_WORKERS) as pool:
        return list(pool.map(worker, range(NUM_WORKERS)))


class TestConcurrentAcquisition:
    def test_single_order_goes_to_exactly_one_worker(self):
        repo = InMemoryOrderRepository([Order(pk=1, user_id=1, status=OrderStatus.OPEN)])

        results = _run_workers(repo)

        winners = [order for order in results if order is not None]
        assert len(winners) == 1
        assert winners[0].pk == 1

    def test_each_order_handed_out_once(self):
        repo = InMemoryOrderRepository(
            [Order(pk=pk, user_id=1, status=OrderStatus.OPEN) for pk in range(1, 6)]
        )

        results = _run_workers(repo)

        picked = sorted(order.pk for order in results if order is not None)
        assert picked == [1, 2, 3, 4, 5]
        assert results.count(None) == NUM_WORKERS - 5
