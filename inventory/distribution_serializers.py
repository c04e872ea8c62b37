"""
Asset distribution API serializers

Read serializers render distributions with their targets; the input
serializers only check the shape of the payload. Allocation rules are
enforced by ``inventory.distribution_services``.
"""

from rest_framework import serializers

from inventory.distribution_models import AssetDistribution, AssetDistributionTarget


class AssetDistributionTargetSerializer(serializers.ModelSerializer):
    """Serializer for one destination room of a distribution"""

    target_room_name = serializers.CharField(source='target_room.name', read_only=True)
    unit_name = serializers.CharField(source='target_room.unit.name', read_only=True, default=None)
    receiver_name = serializers.CharField(source='receiver.name', read_only=True, default=None)
    pending_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = AssetDistributionTarget
        fields = [
            'id',
            'target_room',
            'target_room_name',
            'unit_name',
            'allocated_quantity',
            'received_quantity',
            'pending_quantity',
            'receiver',
            'receiver_name',
            'received_at',
        ]
        read_only_fields = fields


class AssetDistributionSerializer(serializers.ModelSerializer):
    """Full distribution representation"""

    model_name = serializers.CharField(source='model.name', read_only=True)
    actor_name = serializers.CharField(source='actor.name', read_only=True)
    targets = AssetDistributionTargetSerializer(many=True, read_only=True)
    received_total = serializers.SerializerMethodField()

    class Meta:
        model = AssetDistribution
        fields = [
            'id',
            'distribution_code',
            'model',
            'model_name',
            'actor',
            'actor_name',
            'total_quantity',
            'received_total',
            'status',
            'notes',
            'targets',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_received_total(self, obj):
        return sum(target.received_quantity for target in obj.targets.all())


class DistributionTargetInputSerializer(serializers.Serializer):
    room_id = serializers.UUIDField()
    allocated_quantity = serializers.IntegerField()


class AssetDistributionInputSerializer(serializers.Serializer):
    """
    Payload for creating or re-allocating a draft

    {
        "model_id": "<uuid>",
        "total_quantity": 5,
        "notes": "Semester restock",
        "targets": [{"room_id": "<uuid>", "allocated_quantity": 3}, ...]
    }
    """

    model_id = serializers.UUIDField(required=False)
    total_quantity = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    targets = DistributionTargetInputSerializer(many=True, allow_empty=True)

    def validate(self, attrs):
        if self.context.get('require_model', True) and not attrs.get('model_id'):
            raise serializers.ValidationError({'model_id': 'This field is required.'})
        return attrs

    def get_allocations(self):
        return [
            (target['room_id'], target['allocated_quantity'])
            for target in self.validated_data['targets']
        ]


class ReceiveDistributionSerializer(serializers.Serializer):
    room_id = serializers.UUIDField()
    received_quantity = serializers.IntegerField(min_value=1)


class IncomingDistributionSerializer(serializers.ModelSerializer):
    """A distribution target as seen by the receiving room's unit"""

    distribution_code = serializers.CharField(source='distribution.distribution_code', read_only=True)
    distribution_status = serializers.CharField(source='distribution.status', read_only=True)
    model = serializers.UUIDField(source='distribution.model_id', read_only=True)
    model_name = serializers.CharField(source='distribution.model.name', read_only=True)
    sender_name = serializers.CharField(source='distribution.actor.name', read_only=True)
    target_room_name = serializers.CharField(source='target_room.name', read_only=True)
    pending_quantity = serializers.IntegerField(read_only=True)
    shipped_at = serializers.DateTimeField(source='distribution.updated_at', read_only=True)

    class Meta:
        model = AssetDistributionTarget
        fields = [
            'id',
            'distribution',
            'distribution_code',
            'distribution_status',
            'model',
            'model_name',
            'sender_name',
            'target_room',
            'target_room_name',
            'allocated_quantity',
            'received_quantity',
            'pending_quantity',
            'received_at',
            'shipped_at',
        ]
        read_only_fields = fields
