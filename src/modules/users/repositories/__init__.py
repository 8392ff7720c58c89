"""User repositories package."""

from modules.users.repositories.django_repository import (
    ActivationCodeDjangoRepository,
    UserDjangoRepository,
)
from modules.users.repositories.interfaces import (
    IActivationCodeRepository,
    IUserRepository,
)

__all__ = [
    "ActivationCodeDjangoRepository",
    "IActivationCodeRepository",
    "IUserRepository",
    "UserDjangoRepository",
]
