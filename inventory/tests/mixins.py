import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model

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


class InventaTestMixin:
    """Shared organization, catalog and user fixtures"""

    password = 'testpass123'

    def create_user(self, role, **extra):
        suffix = uuid.uuid4().hex[:6]
        return User.objects.create_user(
            email=f'{role}-{suffix}@example.com',
            password=self.password,
            name=f'{role.replace("_", " ").title()} {suffix}',
            role=role,
            **extra
        )

    def create_organization(self):
        self.faculty = Faculty.objects.create(name='Faculty of Science')
        self.unit = Unit.objects.create(name='Chemistry Department', faculty=self.faculty)
        self.other_unit = Unit.objects.create(name='Physics Department', faculty=self.faculty)
        self.building = Building.objects.create(name='Science Building', code='SCI', faculty=self.faculty)
        self.room = Room.objects.create(
            name='Chemistry Lab 1', building=self.building, unit=self.unit, type=Room.TYPE_LABORATORY
        )
        self.room_b = Room.objects.create(
            name='Chemistry Lab 2', building=self.building, unit=self.unit, type=Room.TYPE_LABORATORY
        )
        self.other_room = Room.objects.create(
            name='Physics Lab', building=self.building, unit=self.other_unit, type=Room.TYPE_LABORATORY
        )
        self.warehouse = Warehouse.objects.create(
            name='Central Warehouse', type=Warehouse.TYPE_GENERAL_ATK, faculty=self.faculty
        )

    def create_catalog(self):
        self.category = Category.objects.create(name='Laboratory Equipment')
        self.brand = Brand.objects.create(name='Olympus')
        self.asset_model = AssetModel.objects.create(
            name='Microscope CX23', brand=self.brand, category=self.category, is_movable=True
        )
        self.consumable = Consumable.objects.create(
            name='Ethanol 96%', base_unit='L', category=self.category, has_expiry=True
        )
        self.paper = Consumable.objects.create(name='A4 Paper', base_unit='ream')

    def create_users(self):
        self.super_admin = self.create_user(User.ROLE_SUPER_ADMIN)
        self.warehouse_staff = self.create_user(User.ROLE_WAREHOUSE_STAFF, warehouse=self.warehouse)
        self.faculty_admin = self.create_user(User.ROLE_FACULTY_ADMIN, faculty=self.faculty)
        self.unit_admin = self.create_user(User.ROLE_UNIT_ADMIN, unit=self.unit)
        self.unit_staff = self.create_user(User.ROLE_UNIT_STAFF, unit=self.unit)
        self.other_unit_staff = self.create_user(User.ROLE_UNIT_STAFF, unit=self.other_unit)

    def create_fixtures(self):
        self.create_organization()
        self.create_catalog()
        self.create_users()

    def add_stock(self, consumable, quantity, batch_number='-', expiry_date=None, warehouse=None):
        return WarehouseStock.objects.create(
            warehouse=warehouse or self.warehouse,
            consumable=consumable,
            quantity=Decimal(str(quantity)),
            batch_number=batch_number,
            expiry_date=expiry_date,
        )
