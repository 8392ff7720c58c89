from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.orders.dtos import DraftItemDTO
from modules.orders.models import Order
from modules.orders.repositories import OrderDjangoRepository
from modules.providers.models import Address, Menu, MenuItem, Provider, ProviderLocation
from modules.users.models import ActivationCode


class Command(BaseCommand):
    help = "Seed database with providers, program users and open orders."

    def add_arguments(self, parser) -> None:
        parser.add_argument("--orders", type=int, default=10)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users = self._seed_users()
        codes = self._seed_activation_codes(users)
        locations = self._seed_providers()
        orders_created = self._seed_orders(users, locations, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={len(users)}, "
                f"activation_codes={codes}, "
                f"locations={len(locations)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> list:
        User = get_user_model()
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
        if not User.objects.filter(username="station").exists():
            User.objects.create_user("station", password="station123", is_staff=True)

        users = []
        for n in range(1, 6):
            user, _ = User.objects.get_or_create(username=f"client{n}")
            users.append(user)
        return users

    def _seed_activation_codes(self, users: list) -> int:
        created = 0
        for n, user in enumerate(users, start=1):
            _, was_created = ActivationCode.objects.get_or_create(
                activation_code=f"SEED-{n:04d}",
                defaults={
                    "user": user,
                    "meals_authorized": 30,
                    "meals_remaining": 30,
                    "activated": True,
                },
            )
            created += int(was_created)
        return created

    def _seed_providers(self) -> list[ProviderLocation]:
        self.stdout.write("Creating providers...")
        catalog = [
            ("Corner Deli", ["Main St", "Oak Ave"], [("Turkey Sandwich", "6.50")]),
            ("Green Bowl", ["Market Sq"], [("Veggie Bowl", "8.25"), ("Soup", "4.00")]),
        ]
        locations: list[ProviderLocation] = []
        for name, streets, items in catalog:
            provider, _ = Provider.objects.get_or_create(name=name)
            menu, _ = Menu.objects.get_or_create(provider=provider, name="Lunch")
            for item_name, price in items:
                MenuItem.objects.get_or_create(
                    menu=menu, name=item_name, defaults={"price": Decimal(price)}
                )
            for street in streets:
                address, _ = Address.objects.get_or_create(
                    address_line1=f"100 {street}", name=street
                )
                location, _ = ProviderLocation.objects.get_or_create(
                    provider=provider,
                    name=f"{name} - {street}",
                    defaults={"address": address},
                )
                locations.append(location)
        self.stdout.write(self.style.SUCCESS("Creating providers... Done!"))
        return locations

    def _seed_orders(self, users: list, locations: list[ProviderLocation], count: int) -> int:
        self.stdout.write("Creating orders...")
        repo = OrderDjangoRepository()
        for _ in range(count):
            location = random.choice(locations)
            item = location.first_menu_item()
            order = Order(
                user=random.choice(users),
                provider_location=location,
                order_date=timezone.now() - timedelta(minutes=random.randint(0, 600)),
            )
            repo.create_with_items(
                order, [DraftItemDTO(menu_item_id=item.pk, quantity=1, amount=item.price)]
            )
        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return count
