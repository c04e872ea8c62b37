"""
Requisition API serializers
"""

from rest_framework import serializers

from .models import (
    Procurement,
    ProcurementItem,
    Request,
    RequestAssetItem,
    RequestItem,
    RequestItemAllocation,
    UsageDetail,
    UsageReport,
)


class RequestItemAllocationSerializer(serializers.ModelSerializer):
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True)

    class Meta:
        model = RequestItemAllocation
        fields = ['id', 'warehouse', 'warehouse_name', 'batch_number', 'expiry_date', 'quantity']
        read_only_fields = fields


class RequestItemSerializer(serializers.ModelSerializer):
    consumable_name = serializers.CharField(source='consumable.name', read_only=True)
    base_unit = serializers.CharField(source='consumable.base_unit', read_only=True)
    allocations = RequestItemAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = RequestItem
        fields = ['id', 'consumable', 'consumable_name', 'base_unit', 'qty_requested', 'qty_approved', 'allocations']
        read_only_fields = fields


class RequestAssetItemSerializer(serializers.ModelSerializer):
    model_name = serializers.CharField(source='asset_model.name', read_only=True)

    class Meta:
        model = RequestAssetItem
        fields = ['id', 'asset_model', 'model_name', 'qty_requested', 'qty_approved']
        read_only_fields = fields


class TimelineEntrySerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    status = serializers.CharField(read_only=True)
    actor = serializers.UUIDField(source='actor_id', read_only=True)
    actor_name = serializers.CharField(source='actor.name', read_only=True, default=None)
    notes = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)


class RequestSerializer(serializers.ModelSerializer):
    """Request with its items, allocations and status history"""

    requester_name = serializers.CharField(source='requester.name', read_only=True)
    room_name = serializers.CharField(source='room.name', read_only=True)
    unit_name = serializers.CharField(source='room.unit.name', read_only=True, default=None)
    target_warehouse_name = serializers.CharField(source='target_warehouse.name', read_only=True, default=None)
    items = RequestItemSerializer(many=True, read_only=True)
    asset_items = RequestAssetItemSerializer(many=True, read_only=True)
    timelines = TimelineEntrySerializer(many=True, read_only=True)

    class Meta:
        model = Request
        fields = [
            'id',
            'request_code',
            'request_type',
            'status',
            'requester',
            'requester_name',
            'room',
            'room_name',
            'unit_name',
            'target_warehouse',
            'target_warehouse_name',
            'description',
            'rejection_reason',
            'approved_by_unit',
            'approved_by_faculty',
            'items',
            'asset_items',
            'timelines',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class RequestListSerializer(serializers.ModelSerializer):
    requester_name = serializers.CharField(source='requester.name', read_only=True)
    room_name = serializers.CharField(source='room.name', read_only=True)
    target_warehouse_name = serializers.CharField(source='target_warehouse.name', read_only=True, default=None)

    class Meta:
        model = Request
        fields = [
            'id', 'request_code', 'request_type', 'status', 'requester_name', 'room_name',
            'target_warehouse_name', 'created_at',
        ]
        read_only_fields = fields


class LineItemInputSerializer(serializers.Serializer):
    consumable_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2)
    price_per_unit = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RequestInputSerializer(serializers.Serializer):
    """
    {
        "room_id": "<uuid>",
        "target_warehouse_id": "<uuid>",
        "description": "Lab practicum week 3",
        "items": [{"consumable_id": "<uuid>", "quantity": "2"}]
    }
    """

    room_id = serializers.UUIDField()
    target_warehouse_id = serializers.UUIDField()
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = LineItemInputSerializer(many=True)


class AssetLineInputSerializer(serializers.Serializer):
    model_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class AssetRequestInputSerializer(serializers.Serializer):
    """
    {
        "room_id": "<uuid>",
        "description": "Microscopes for the new biology lab",
        "items": [{"model_id": "<uuid>", "quantity": 4}]
    }
    """

    room_id = serializers.UUIDField()
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = AssetLineInputSerializer(many=True)


class DecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RejectionSerializer(serializers.Serializer):
    reason = serializers.CharField()


class UsageDetailSerializer(serializers.ModelSerializer):
    consumable_name = serializers.CharField(source='consumable.name', read_only=True)
    base_unit = serializers.CharField(source='consumable.base_unit', read_only=True)

    class Meta:
        model = UsageDetail
        fields = ['id', 'consumable', 'consumable_name', 'base_unit', 'batch_number', 'expiry_date', 'qty_used']
        read_only_fields = fields


class UsageReportSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True)
    room_name = serializers.CharField(source='room.name', read_only=True)
    unit_name = serializers.CharField(source='room.unit.name', read_only=True, default=None)
    details = UsageDetailSerializer(many=True, read_only=True)

    class Meta:
        model = UsageReport
        fields = [
            'id', 'user', 'user_name', 'room', 'room_name', 'unit_name', 'activity_name',
            'activity_date', 'details', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class UsageLineInputSerializer(serializers.Serializer):
    consumable_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2)


class UsageReportInputSerializer(serializers.Serializer):
    """
    {
        "room_id": "<uuid>",            # optional, defaults to the unit's first room
        "activity_name": "Practicum Organic Chemistry",
        "activity_date": "2026-03-02T08:00:00Z",
        "items": [{"consumable_id": "<uuid>", "quantity": "1.5"}]
    }
    """

    room_id = serializers.UUIDField(required=False, allow_null=True)
    activity_name = serializers.CharField()
    activity_date = serializers.DateTimeField(required=False, allow_null=True)
    items = UsageLineInputSerializer(many=True)


class ProcurementItemSerializer(serializers.ModelSerializer):
    consumable_name = serializers.CharField(source='consumable.name', read_only=True)
    has_expiry = serializers.BooleanField(source='consumable.has_expiry', read_only=True)

    class Meta:
        model = ProcurementItem
        fields = [
            'id', 'consumable', 'consumable_name', 'has_expiry', 'quantity', 'received_quantity',
            'price_per_unit', 'batch_number', 'expiry_date', 'condition', 'notes',
        ]
        read_only_fields = fields


class ProcurementSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True)
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True, default=None)
    items = ProcurementItemSerializer(many=True, read_only=True)
    timelines = TimelineEntrySerializer(many=True, read_only=True)

    class Meta:
        model = Procurement
        fields = [
            'id',
            'procurement_code',
            'status',
            'user',
            'user_name',
            'warehouse',
            'warehouse_name',
            'description',
            'supplier',
            'notes',
            'items',
            'timelines',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ProcurementInputSerializer(serializers.Serializer):
    description = serializers.CharField()
    supplier = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = LineItemInputSerializer(many=True)


class ReceiptLineSerializer(serializers.Serializer):
    item_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2)
    batch_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    expiry_date = serializers.DateTimeField(required=False, allow_null=True)
    condition = serializers.ChoiceField(choices=ProcurementItem.CONDITION_CHOICES, default=ProcurementItem.CONDITION_GOOD)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ProcurementReceiptSerializer(serializers.Serializer):
    items = ReceiptLineSerializer(many=True)
