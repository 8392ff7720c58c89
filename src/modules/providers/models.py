"""Meal providers, their locations and menus.

A Provider supplies meals to program users.  It has one or more
ProviderLocations where orders are fulfilled and one or more Menus whose
MenuItems can be ordered at any of its locations.  Menus are read-only
from the point of view of this system.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class Address(BaseModel):
    """Postal address, optionally geocoded."""

    name = models.CharField(max_length=255, blank=True, default="")
    address_line1 = models.CharField(max_length=255, blank=True, default="")
    address_line2 = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    state = models.CharField(max_length=100, blank=True, default="")
    zip_code = models.CharField(max_length=20, blank=True, default="")
    latitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    longitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )

    class Meta:
        db_table = "addresses"

    @property
    def is_geocoded(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __str__(self) -> str:
        parts = [self.address_line1, self.city, self.state, self.zip_code]
        return ", ".join(part for part in parts if part) or self.name


class Provider(BaseModel):
    name = models.CharField(max_length=255)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    addresses = models.ManyToManyField(Address, blank=True, related_name="providers")

    class Meta:
        db_table = "providers"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class ProviderLocation(BaseModel):
    name = models.CharField(max_length=255)
    provider = models.ForeignKey(
        Provider, on_delete=models.CASCADE, related_name="locations"
    )
    address = models.ForeignKey(
        Address,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "provider_locations"
        ordering = ["id"]

    def first_menu_item(self) -> Optional[MenuItem]:
        """First item of the provider's first menu, ``None`` if it has none."""
        return (
            MenuItem.objects.filter(menu__provider_id=self.provider_id)
            .order_by("menu_id", "id")
            .first()
        )

    def __str__(self) -> str:
        return self.name


class Menu(BaseModel):
    provider = models.ForeignKey(
        Provider, on_delete=models.CASCADE, related_name="menus"
    )
    name = models.CharField(max_length=255)
    start_hour = models.PositiveSmallIntegerField(default=0)
    end_hour = models.PositiveSmallIntegerField(default=23)

    class Meta:
        db_table = "menus"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.provider} / {self.name}"


class MenuItem(BaseModel):
    menu = models.ForeignKey(Menu, on_delete=models.CASCADE, related_name="items")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    class Meta:
        db_table = "menu_items"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.name} (${self.price})"
