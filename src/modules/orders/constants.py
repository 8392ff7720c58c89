"""Order domain constants.

``OrderStatus`` drives the fulfillment lifecycle; ``TransactionPhase``
drives the conversation that builds a draft order from text messages.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    ORDERED = "ORDERED", "Ordered"


# OPEN -> OPEN is a reset of an abandoned fulfillment attempt.
VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.OPEN: {OrderStatus.OPEN, OrderStatus.ORDERED},
    OrderStatus.ORDERED: set(),
}


class TransactionPhase(models.TextChoices):
    MEAL = "MEAL", "Requesting a meal"
    PROVIDING_ADDRESS = "PROVIDING_ADDRESS", "Providing address"
    CHOOSING_LOCATION = "CHOOSING_LOCATION", "Choosing location"
    # Item choice is co-selected with the location for now.
    CHOOSING_MENU_ITEM = "CHOOSING_MENU_ITEM", "Choosing menu item"
    CONFIRM_OR_CONTINUE = "CONFIRM_OR_CONTINUE", "Confirm or continue"


MAX_LOCATION_CHOICES = 3

PROVIDER_SEARCH_RADIUS = 5

LOCK_KEY_FORMAT = "order:{id}"
