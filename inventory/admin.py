from django.contrib import admin
from .models import (
    Faculty, Unit, Building, Room, Warehouse, Category, Brand, Consumable, AssetModel,
    WarehouseStock, RoomConsumable, FixedAsset, ConsumableAdjustment, AssetMaintenance
)
from .distribution_models import AssetDistribution, AssetDistributionTarget


@admin.register(Faculty)
class FacultyAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name', 'description']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']


@admin.register(Unit)
class UnitAdmin(admin.ModelAdmin):
    list_display = ['name', 'faculty', 'created_at']
    search_fields = ['name', 'description']
    list_filter = ['faculty']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']


@admin.register(Building)
class BuildingAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'faculty', 'created_at']
    search_fields = ['name', 'code']
    list_filter = ['faculty']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['name', 'building', 'unit', 'type', 'floor_level']
    search_fields = ['name', 'qr_token', 'building__name']
    list_filter = ['type', 'building', 'unit']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'faculty']
    search_fields = ['name', 'description']
    list_filter = ['type', 'faculty']
    readonly_fields = ['id']
    ordering = ['name']


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']
    readonly_fields = ['id']
    ordering = ['name']


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ['name', 'country', 'created_at']
    search_fields = ['name', 'country']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']


@admin.register(Consumable)
class ConsumableAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'base_unit', 'minimum_stock', 'has_expiry', 'is_active']
    search_fields = ['name', 'sku', 'description']
    list_filter = ['category', 'has_expiry', 'is_active']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']

    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'name', 'sku', 'description', 'category', 'base_unit', 'is_active')
        }),
        ('Stock Policy', {
            'fields': ('minimum_stock', 'has_expiry')
        }),
        ('Timestamps', {
            'fields': ('created_at',),
            'classes': ('collapse',)
        }),
    )


@admin.register(AssetModel)
class AssetModelAdmin(admin.ModelAdmin):
    list_display = ['name', 'model_number', 'brand', 'category', 'is_movable']
    search_fields = ['name', 'model_number', 'brand__name']
    list_filter = ['category', 'brand', 'is_movable']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']


@admin.register(WarehouseStock)
class WarehouseStockAdmin(admin.ModelAdmin):
    list_display = ['consumable', 'warehouse', 'batch_number', 'quantity', 'expiry_date', 'updated_at']
    search_fields = ['consumable__name', 'batch_number']
    list_filter = ['warehouse', 'expiry_date']
    readonly_fields = ['id', 'created_at', 'updated_at']
    ordering = ['expiry_date']


@admin.register(RoomConsumable)
class RoomConsumableAdmin(admin.ModelAdmin):
    list_display = ['consumable', 'room', 'batch_number', 'quantity', 'expiry_date', 'updated_at']
    search_fields = ['consumable__name', 'room__name', 'batch_number']
    list_filter = ['room']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(FixedAsset)
class FixedAssetAdmin(admin.ModelAdmin):
    list_display = ['qr_token', 'model', 'room', 'warehouse', 'movement_status', 'condition', 'inventory_number']
    search_fields = ['qr_token', 'inventory_number', 'serial_number', 'model__name']
    list_filter = ['movement_status', 'condition', 'is_movable']
    readonly_fields = ['id', 'qr_token', 'created_at', 'updated_at']
    ordering = ['-created_at']


@admin.register(ConsumableAdjustment)
class ConsumableAdjustmentAdmin(admin.ModelAdmin):
    list_display = ['consumable', 'warehouse', 'batch_number', 'type', 'delta_quantity', 'user', 'created_at']
    search_fields = ['consumable__name', 'batch_number', 'reason']
    list_filter = ['type', 'warehouse']
    readonly_fields = [
        'id', 'user', 'consumable', 'warehouse', 'room', 'batch_number', 'delta_quantity', 'type', 'created_at',
    ]
    ordering = ['-created_at']


@admin.register(AssetMaintenance)
class AssetMaintenanceAdmin(admin.ModelAdmin):
    list_display = ['asset', 'severity', 'status', 'reporter', 'downtime_start', 'downtime_end']
    search_fields = ['asset__qr_token', 'asset__model__name', 'description']
    list_filter = ['status', 'severity']
    readonly_fields = ['id', 'asset', 'reporter', 'created_at', 'updated_at']
    ordering = ['-created_at']


class AssetDistributionTargetInline(admin.TabularInline):
    model = AssetDistributionTarget
    extra = 0
    readonly_fields = ['target_room', 'allocated_quantity', 'received_quantity', 'receiver', 'received_at']
    can_delete = False


@admin.register(AssetDistribution)
class AssetDistributionAdmin(admin.ModelAdmin):
    list_display = ['distribution_code', 'model', 'total_quantity', 'status', 'actor', 'created_at']
    search_fields = ['distribution_code', 'model__name', 'notes']
    list_filter = ['status', 'created_at']
    readonly_fields = ['id', 'distribution_code', 'status', 'created_at', 'updated_at']
    inlines = [AssetDistributionTargetInline]
    ordering = ['-created_at']
