"""Django ORM implementations of the user-side repositories."""

from __future__ import annotations

from typing import List, Optional

from django.contrib.auth import get_user_model

from modules.users.models import ActivationCode
from modules.users.repositories.interfaces import (
    IActivationCodeRepository,
    IUserRepository,
)


class ActivationCodeDjangoRepository(IActivationCodeRepository):
    def list_active_by_user(self, user) -> List[ActivationCode]:
        return list(ActivationCode.objects.active().filter(user=user))


class UserDjangoRepository(IUserRepository):
    def get_by_id(self, id: int):
        """Return ``None`` for non-existent or malformed IDs."""
        try:
            return get_user_model().objects.filter(pk=id).first()
        except (TypeError, ValueError):
            return None
