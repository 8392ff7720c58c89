"""Activation codes granting users access to the meal program.

One active code entitles its user to one meal per day; a user holding
two active codes may place two orders per day.  A code is *active* when
it has been activated and still has meals remaining.
"""

from __future__ import annotations

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class ActivationCodeQuerySet(models.QuerySet):
    def active(self) -> ActivationCodeQuerySet:
        return self.filter(activated=True, meals_remaining__gt=0)


class ActivationCode(BaseModel):
    activation_code = models.CharField(max_length=64, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activation_codes",
    )
    meals_authorized = models.PositiveIntegerField(
        default=0, validators=[MinValueValidator(0)]
    )
    meals_remaining = models.PositiveIntegerField(
        default=0, validators=[MinValueValidator(0)]
    )
    activated = models.BooleanField(default=False)
    comments = models.TextField(blank=True, default="")

    objects = ActivationCodeQuerySet.as_manager()

    class Meta:
        db_table = "activation_codes"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["user", "activated"], name="activation_user_active_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.activated and self.meals_remaining > 0

    def __str__(self) -> str:
        # Codes are redeemable secrets; never print them in full.
        return f"***{self.activation_code[-4:]} ({self.meals_remaining} meals left)"
