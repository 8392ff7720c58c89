"""Conversation state machine turning text messages into an order.

Each inbound message advances the user's draft (``PartialOrder``) by at
most one phase::

    MEAL -> PROVIDING_ADDRESS -> CHOOSING_LOCATION -> CONFIRM_OR_CONTINUE

``CONTINUE`` goes back to CHOOSING_LOCATION to add another item;
``CONFIRM`` places the order and consumes the draft, so the next message
starts a new dialog.  Invalid input leaves the phase unchanged and
answers with a retry prompt.  The draft is persisted after every message.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

import structlog
from django.conf import settings
from django.utils import timezone

from modules.orders.constants import (
    MAX_LOCATION_CHOICES,
    PROVIDER_SEARCH_RADIUS,
    TransactionPhase,
)
from modules.orders.exceptions import UserNotFound
from modules.orders.models import Order, PartialOrder
from modules.users.repositories.django_repository import UserDjangoRepository

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IPartialOrderRepository
    from modules.orders.services import OrderService
    from modules.providers.geocoding import IGeoCodingService
    from modules.providers.models import Address, ProviderLocation
    from modules.users.repositories.interfaces import IUserRepository

logger = structlog.get_logger(__name__)

ADDRESS_PROMPT = "Please provide your address"
INVALID_ADDRESS = "Invalid address, please try again"
LOCATION_PROMPT = f"Please provide a number between 1-{MAX_LOCATION_CHOICES}"
CONFIRM_PROMPT = "Please respond with CONFIRM or CONTINUE"

DEFAULT_DRAFT_TTL_HOURS = 24


@dataclass(frozen=True)
class StepResult:
    reply: str = ""
    consumed: bool = False


class OrderProcessor:
    """Drives one user's draft through the ordering dialog."""

    def __init__(
        self,
        order_service: OrderService,
        partial_order_repository: IPartialOrderRepository,
        geocoding_service: IGeoCodingService,
        user_repository: Optional[IUserRepository] = None,
        clock: Callable[[], datetime] = timezone.now,
        draft_ttl: Optional[timedelta] = None,
    ) -> None:
        self._orders = order_service
        self._drafts = partial_order_repository
        self._geo = geocoding_service
        self._users = user_repository or UserDjangoRepository()
        self._clock = clock
        self._draft_ttl = draft_ttl or timedelta(
            hours=getattr(settings, "ORDER_DRAFT_TTL_HOURS", DEFAULT_DRAFT_TTL_HOURS)
        )
        self._handlers: Dict[str, Callable[[str, PartialOrder], StepResult]] = {
            TransactionPhase.MEAL: self._requesting_meal,
            TransactionPhase.PROVIDING_ADDRESS: self._find_nearby_meals,
            TransactionPhase.CHOOSING_LOCATION: self._choose_location,
            TransactionPhase.CHOOSING_MENU_ITEM: self._choose_menu_item,
            TransactionPhase.CONFIRM_OR_CONTINUE: self._confirm_or_continue,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_message(self, user, message: str) -> str:
        """Advance *user*'s draft with *message* and return the reply text."""
        draft = self._load_draft(user)
        phase = draft.transaction_phase
        log = logger.bind(user_id=user.pk, phase=phase)

        result = self._handlers[phase](message, draft)

        if result.consumed:
            self._drafts.delete(draft)
            log.info("draft.consumed")
        else:
            self._drafts.save(draft)
            if draft.transaction_phase != phase:
                log.info("draft.phase_changed", new_phase=draft.transaction_phase)
        return result.reply

    def process_message_for_user_id(self, user_id: int, message: str) -> str:
        """Raises ``UserNotFound`` if *user_id* does not exist."""
        user = self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found.")
        return self.process_message(user, message)

    # ------------------------------------------------------------------
    # Draft lifecycle
    # ------------------------------------------------------------------

    def has_draft_in_progress(self, user) -> bool:
        """True if *user* has a draft that has not gone stale."""
        draft = self._drafts.get_for_user(user)
        return draft is not None and not self._is_stale(draft)

    def _load_draft(self, user) -> PartialOrder:
        draft = self._drafts.get_for_user(user)
        if draft is not None and self._is_stale(draft):
            logger.info("draft.expired", user_id=user.pk, phase=draft.transaction_phase)
            self._drafts.delete(draft)
            draft = None
        if draft is None:
            draft = PartialOrder(user=user, transaction_phase=TransactionPhase.MEAL)
        return draft

    def _is_stale(self, draft: PartialOrder) -> bool:
        if draft.updated_at is None:
            return False
        return draft.updated_at < self._clock() - self._draft_ttl

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _requesting_meal(self, message: str, draft: PartialOrder) -> StepResult:
        draft.transaction_phase = TransactionPhase.PROVIDING_ADDRESS
        return StepResult(ADDRESS_PROMPT)

    def _find_nearby_meals(self, message: str, draft: PartialOrder) -> StepResult:
        address = self._geo.resolve_address(message)
        if address is None:
            return StepResult(INVALID_ADDRESS)

        candidates = []
        for location in self._find_nearby_locations(address):
            # TODO: offer the items of the menu currently being served
            # instead of the first item of the first menu.
            item = location.first_menu_item()
            if item is not None:
                candidates.append((location, item))
        candidates = candidates[:MAX_LOCATION_CHOICES]

        draft.set_candidates(
            [location for location, _ in candidates],
            [item for _, item in candidates],
        )
        draft.transaction_phase = TransactionPhase.CHOOSING_LOCATION
        # Lines are numbered from 1, the same number the user types back;
        # no trailing newline after the last line.
        return StepResult(
            "\n".join(
                f"{number}) {location.name}({item.name})"
                for number, (location, item) in enumerate(candidates, start=1)
            )
        )

    def _find_nearby_locations(self, address: Address) -> List[ProviderLocation]:
        # TODO: query provider locations within PROVIDER_SEARCH_RADIUS of
        # the resolved address once provider search is integrated.
        logger.debug(
            "draft.provider_search_skipped",
            radius=PROVIDER_SEARCH_RADIUS,
            geocoded=address.is_geocoded,
        )
        return []

    def _choose_location(self, message: str, draft: PartialOrder) -> StepResult:
        try:
            index = int(message.strip())
            if index < 1 or index > MAX_LOCATION_CHOICES:
                raise IndexError(index)
            location, item = draft.candidate_at(index - 1)
        except (ValueError, IndexError):
            return StepResult(LOCATION_PROMPT)

        draft.chosen_provider = location
        draft.add_item(item, quantity=1)
        draft.transaction_phase = TransactionPhase.CONFIRM_OR_CONTINUE
        return StepResult()

    def _choose_menu_item(self, message: str, draft: PartialOrder) -> StepResult:
        # Items are chosen together with the location for now.
        return StepResult()

    def _confirm_or_continue(self, message: str, draft: PartialOrder) -> StepResult:
        token = message.strip().upper()
        if token == "CONFIRM":
            order = Order(
                user=draft.user,
                order_date=self._clock(),
                provider_location=draft.chosen_provider,
                subtotal=draft.subtotal,
            )
            self._orders.place_order(order, draft.items)
            return StepResult(consumed=True)
        if token == "CONTINUE":
            draft.transaction_phase = TransactionPhase.CHOOSING_LOCATION
            return StepResult()
        return StepResult(CONFIRM_PROMPT)
