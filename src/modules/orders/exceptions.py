"""Order domain exceptions.

Raised by the Service Layer; the API layer translates them into HTTP
responses.  Invalid text typed by a user is never an exception: the
conversation answers with a retry prompt instead.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist."""


class InvalidOrderStatus(Exception):
    """A status transition not allowed by ``VALID_TRANSITIONS`` was attempted."""


class UserNotFound(Exception):
    """A message arrived for a user id that does not exist."""
