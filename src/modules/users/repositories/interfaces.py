"""User-side collaborator contracts consumed by the orders app."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from modules.users.models import ActivationCode


class IActivationCodeRepository(ABC):
    @abstractmethod
    def list_active_by_user(self, user: AbstractBaseUser) -> List[ActivationCode]:
        """Return the user's activated codes that still have meals remaining."""


class IUserRepository(ABC):
    @abstractmethod
    def get_by_id(self, id: int) -> Optional[AbstractBaseUser]:
        """Retrieve a user by primary key, ``None`` if it does not exist."""
