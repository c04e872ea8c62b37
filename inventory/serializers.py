from rest_framework import serializers

from .models import AssetMaintenance, ConsumableAdjustment, FixedAsset, WarehouseStock


class FixedAssetSerializer(serializers.ModelSerializer):
    model_name = serializers.CharField(source='model.name', read_only=True)
    brand_name = serializers.CharField(source='model.brand.name', read_only=True, default=None)
    room_name = serializers.CharField(source='room.name', read_only=True, default=None)
    unit_name = serializers.CharField(source='room.unit.name', read_only=True, default=None)
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True, default=None)
    custodian_name = serializers.CharField(source='custodian.name', read_only=True, default=None)

    class Meta:
        model = FixedAsset
        fields = [
            'id', 'model', 'model_name', 'brand_name',
            'room', 'room_name', 'unit_name', 'warehouse', 'warehouse_name',
            'custodian', 'custodian_name', 'inventory_number', 'serial_number', 'qr_token',
            'is_movable', 'movement_status', 'condition',
            'procurement_year', 'price', 'purchase_date', 'notes',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class WarehouseStockSerializer(serializers.ModelSerializer):
    consumable_name = serializers.CharField(source='consumable.name', read_only=True)
    base_unit = serializers.CharField(source='consumable.base_unit', read_only=True)
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True)

    class Meta:
        model = WarehouseStock
        fields = [
            'id', 'warehouse', 'warehouse_name', 'consumable', 'consumable_name', 'base_unit',
            'batch_number', 'expiry_date', 'quantity', 'updated_at',
        ]
        read_only_fields = fields


class ConsumableAdjustmentSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True)
    consumable_name = serializers.CharField(source='consumable.name', read_only=True)
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True, default=None)

    class Meta:
        model = ConsumableAdjustment
        fields = [
            'id', 'user', 'user_name', 'consumable', 'consumable_name', 'warehouse', 'warehouse_name',
            'room', 'batch_number', 'delta_quantity', 'type', 'reason', 'created_at',
        ]
        read_only_fields = fields


class StockOpnameInputSerializer(serializers.Serializer):
    physical_qty = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    type = serializers.ChoiceField(
        choices=ConsumableAdjustment.TYPE_CHOICES, default=ConsumableAdjustment.TYPE_STOCK_OPNAME
    )


class AssetMaintenanceSerializer(serializers.ModelSerializer):
    asset_token = serializers.CharField(source='asset.qr_token', read_only=True)
    model_name = serializers.CharField(source='asset.model.name', read_only=True)
    room_name = serializers.CharField(source='asset.room.name', read_only=True, default=None)
    reporter_name = serializers.CharField(source='reporter.name', read_only=True)

    class Meta:
        model = AssetMaintenance
        fields = [
            'id', 'asset', 'asset_token', 'model_name', 'room_name', 'reporter', 'reporter_name',
            'severity', 'status', 'description', 'repair_cost', 'downtime_start', 'downtime_end',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DamageReportInputSerializer(serializers.Serializer):
    asset_id = serializers.UUIDField()
    severity = serializers.ChoiceField(choices=AssetMaintenance.SEVERITY_CHOICES)
    description = serializers.CharField()
    repair_cost = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
    downtime_start = serializers.DateTimeField(required=False, allow_null=True)


class MaintenanceStatusInputSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AssetMaintenance.STATUS_CHOICES)
    repair_cost = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
