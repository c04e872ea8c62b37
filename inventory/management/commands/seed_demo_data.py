from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from inventory.models import (
    AssetModel,
    Brand,
    Building,
    Category,
    Consumable,
    Faculty,
    Room,
    Unit,
    Warehouse,
    WarehouseStock,
)

User = get_user_model()

FACULTY_BLUEPRINTS = [
    {
        "name": "Faculty of Science",
        "building": ("Science Building", "SCI"),
        "warehouse": ("Science Chemical Store", Warehouse.TYPE_CHEMICAL),
        "units": [
            ("Chemistry Department", ["Organic Chemistry Lab", "Analytical Chemistry Lab"]),
            ("Biology Department", ["Microbiology Lab", "Biology Admin Office"]),
        ],
    },
    {
        "name": "Faculty of Engineering",
        "building": ("Engineering Tower", "ENG"),
        "warehouse": ("Engineering Supply Store", Warehouse.TYPE_GENERAL_ATK),
        "units": [
            ("Electrical Engineering", ["Power Systems Lab", "Electronics Lab"]),
            ("Civil Engineering", ["Materials Testing Lab", "Civil Admin Office"]),
        ],
    },
]

CATEGORY_DATA = ["Laboratory Equipment", "Chemicals", "Office Supplies", "Furniture"]

CONSUMABLE_DATA = [
    {"name": "Ethanol 96%", "base_unit": "L", "category": "Chemicals", "has_expiry": True, "minimum_stock": 20},
    {"name": "Hydrochloric Acid 1M", "base_unit": "L", "category": "Chemicals", "has_expiry": True, "minimum_stock": 10},
    {"name": "Nitrile Gloves (M)", "base_unit": "box", "category": "Laboratory Equipment", "has_expiry": False,
     "minimum_stock": 30},
    {"name": "A4 Paper 80gsm", "base_unit": "ream", "category": "Office Supplies", "has_expiry": False,
     "minimum_stock": 50},
    {"name": "Whiteboard Marker", "base_unit": "pcs", "category": "Office Supplies", "has_expiry": False,
     "minimum_stock": 40},
]

ASSET_MODEL_DATA = [
    {"name": "Microscope CX23", "brand": "Olympus", "category": "Laboratory Equipment", "is_movable": True},
    {"name": "Digital Multimeter 87V", "brand": "Fluke", "category": "Laboratory Equipment", "is_movable": True},
    {"name": "Lab Stool", "brand": "Chitose", "category": "Furniture", "is_movable": True},
]

PASSWORD_TEMPLATE = "DemoPass123!"


class Command(BaseCommand):
    help = (
        "Seed the database with demo data: faculties, units, rooms, warehouses, "
        "catalog items, warehouse stock and one user per role."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--faculties",
            type=int,
            default=len(FACULTY_BLUEPRINTS),
            help=f"Number of faculties to seed (default: {len(FACULTY_BLUEPRINTS)}).",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Seed even if faculties already exist.",
        )

    def handle(self, *args, **options):
        random.seed(42)
        force = options["force"]

        existing = Faculty.objects.count()
        if existing > 0 and not force:
            self.stdout.write(
                self.style.WARNING(
                    f"Database already contains {existing} faculties. Use --force to append demo data."
                )
            )
            return

        self.stdout.write(self.style.NOTICE("Preparing catalog..."))
        with transaction.atomic():
            categories = self._ensure_categories()
            consumables = self._ensure_consumables(categories)
            self._ensure_asset_models(categories)
            self._create_user("admin@inventa.local", "Inventa Administrator", User.ROLE_SUPER_ADMIN,
                              is_staff=True, is_superuser=True)

        for index, blueprint in enumerate(FACULTY_BLUEPRINTS[:options["faculties"]], start=1):
            with transaction.atomic():
                self.stdout.write(self.style.NOTICE(f"\nSeeding faculty {index}: {blueprint['name']}"))
                faculty = self._create_faculty(blueprint, index)
                warehouse = self._create_warehouse(blueprint, faculty, index)
                self._stock_warehouse(warehouse, consumables)

        self.stdout.write(self.style.SUCCESS("\nDemo data seeding complete."))
        self.stdout.write(f"All demo accounts use the password {PASSWORD_TEMPLATE}")

    # --- catalog -----------------------------------------------------------------

    def _ensure_categories(self):
        return {name: Category.objects.get_or_create(name=name)[0] for name in CATEGORY_DATA}

    def _ensure_consumables(self, categories):
        consumables = []
        for data in CONSUMABLE_DATA:
            consumable, _ = Consumable.objects.get_or_create(
                name=data["name"],
                defaults={
                    "base_unit": data["base_unit"],
                    "category": categories[data["category"]],
                    "has_expiry": data["has_expiry"],
                    "minimum_stock": data["minimum_stock"],
                },
            )
            consumables.append(consumable)
        return consumables

    def _ensure_asset_models(self, categories):
        for data in ASSET_MODEL_DATA:
            brand, _ = Brand.objects.get_or_create(name=data["brand"])
            AssetModel.objects.get_or_create(
                name=data["name"],
                brand=brand,
                defaults={"category": categories[data["category"]], "is_movable": data["is_movable"]},
            )

    # --- organization -------------------------------------------------------------

    def _create_user(self, email, name, role, **scope):
        is_staff = scope.pop("is_staff", False)
        is_superuser = scope.pop("is_superuser", False)
        user, created = User.objects.get_or_create(email=email, defaults={"name": name, "role": role, **scope})
        if created:
            user.set_password(PASSWORD_TEMPLATE)
            user.is_staff = is_staff
            user.is_superuser = is_superuser
            user.save()
            self.stdout.write(self.style.SUCCESS(f"  Created {role} account {email}"))
        else:
            self.stdout.write(self.style.WARNING(f"  Account {email} already existed"))
        return user

    def _create_faculty(self, blueprint, index):
        faculty, _ = Faculty.objects.get_or_create(name=blueprint["name"])
        building_name, code = blueprint["building"]
        building, _ = Building.objects.get_or_create(name=building_name, faculty=faculty, defaults={"code": code})
        self._create_user(f"faculty{index}@inventa.local", f"{faculty.name} Admin", User.ROLE_FACULTY_ADMIN,
                          faculty=faculty)

        for unit_index, (unit_name, rooms) in enumerate(blueprint["units"], start=1):
            unit, _ = Unit.objects.get_or_create(name=unit_name, faculty=faculty)
            for floor, room_name in enumerate(rooms, start=1):
                room_type = Room.TYPE_ADMIN_OFFICE if "Office" in room_name else Room.TYPE_LABORATORY
                Room.objects.get_or_create(
                    name=room_name,
                    building=building,
                    defaults={"unit": unit, "floor_level": floor, "type": room_type},
                )
            slug = f"{index}{unit_index}"
            self._create_user(f"unitadmin{slug}@inventa.local", f"{unit_name} Admin", User.ROLE_UNIT_ADMIN,
                              unit=unit)
            self._create_user(f"staff{slug}@inventa.local", f"{unit_name} Staff", User.ROLE_UNIT_STAFF, unit=unit)
            self.stdout.write(self.style.SUCCESS(f"    Added unit: {unit_name} ({len(rooms)} rooms)"))

        Room.objects.get_or_create(
            name=f"{code} Auditorium",
            building=building,
            defaults={"type": Room.TYPE_LECTURE_HALL},
        )
        return faculty

    def _create_warehouse(self, blueprint, faculty, index):
        name, warehouse_type = blueprint["warehouse"]
        warehouse, created = Warehouse.objects.get_or_create(
            name=name, defaults={"type": warehouse_type, "faculty": faculty}
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f"    Added warehouse: {name}"))
        else:
            self.stdout.write(self.style.WARNING(f"    Reused existing warehouse: {name}"))
        self._create_user(f"warehouse{index}@inventa.local", f"{name} Staff", User.ROLE_WAREHOUSE_STAFF,
                          warehouse=warehouse)
        return warehouse

    def _stock_warehouse(self, warehouse, consumables):
        now = timezone.now()
        batches = 0
        for consumable in consumables:
            if consumable.has_expiry:
                for batch_index in range(1, 3):
                    WarehouseStock.objects.get_or_create(
                        warehouse=warehouse,
                        consumable=consumable,
                        batch_number=f"B{now:%y}-{batch_index:02d}",
                        defaults={
                            "quantity": Decimal(random.randint(5, 40)),
                            "expiry_date": now + timedelta(days=90 * batch_index),
                        },
                    )
                    batches += 1
            else:
                WarehouseStock.objects.get_or_create(
                    warehouse=warehouse,
                    consumable=consumable,
                    batch_number="-",
                    defaults={"quantity": Decimal(random.randint(20, 200))},
                )
                batches += 1
        self.stdout.write(self.style.SUCCESS(f"    Stocked {batches} batches into {warehouse.name}"))
