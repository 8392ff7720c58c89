import time
from typing import Any, Callable, Dict

import structlog
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from modules.core.locking import CacheLockStore

logger = structlog.get_logger()


def _timed(check: Callable[[], None]) -> Dict[str, Any]:
    start = time.monotonic()
    check()
    return {
        "status": "up",
        "response_time_ms": round((time.monotonic() - start) * 1000, 2),
    }


def _check_database() -> None:
    conn = connections["default"]
    conn.ensure_connection()
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _check_lock_store() -> None:
    store = CacheLockStore()
    store.acquire("_health_check", ttl_seconds=10)
    try:
        if not store.is_locked("_health_check"):
            raise ConnectionError("Lock store read failed")
    finally:
        store.release("_health_check")


def health_check(request: HttpRequest) -> JsonResponse:
    """Report database and lock-store availability (503 if any is down)."""
    services: Dict[str, Dict[str, Any]] = {}
    overall_healthy = True

    for name, check in (("database", _check_database), ("cache", _check_lock_store)):
        try:
            services[name] = _timed(check)
        except Exception:
            services[name] = {"status": "down"}
            overall_healthy = False
            logger.error("health_check.failure", service=name)

    status_label = "healthy" if overall_healthy else "unhealthy"
    logger.info("health_check.completed", status=status_label)

    return JsonResponse(
        {
            "status": status_label,
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if overall_healthy else 503,
    )
