"""
Inventory filters for list endpoints
"""
from django.db.models import F
from django_filters import rest_framework as filters

from .distribution_models import AssetDistribution, AssetDistributionTarget
from .models import AssetMaintenance, ConsumableAdjustment, FixedAsset, WarehouseStock


class AssetDistributionFilter(filters.FilterSet):
    """Filtering for distributions"""

    date_from = filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    # Status filter (allow multiple)
    status = filters.MultipleChoiceFilter(
        choices=AssetDistribution.STATUS_CHOICES,
        conjoined=False  # OR logic
    )

    model = filters.UUIDFilter(field_name='model__id')
    actor = filters.UUIDFilter(field_name='actor__id')
    room = filters.UUIDFilter(field_name='targets__target_room__id', distinct=True)

    class Meta:
        model = AssetDistribution
        fields = ['status', 'model', 'actor', 'room']


class IncomingDistributionFilter(filters.FilterSet):
    room = filters.UUIDFilter(field_name='target_room__id')
    status = filters.ChoiceFilter(field_name='distribution__status', choices=AssetDistribution.STATUS_CHOICES)
    pending = filters.BooleanFilter(method='filter_pending')

    class Meta:
        model = AssetDistributionTarget
        fields = ['room', 'status', 'pending']

    def filter_pending(self, queryset, name, value):
        if value:
            return queryset.filter(received_quantity__lt=F('allocated_quantity'))
        return queryset.filter(received_quantity__gte=F('allocated_quantity'))


class FixedAssetFilter(filters.FilterSet):
    """Filtering for fixed assets"""

    room = filters.UUIDFilter(field_name='room__id')
    warehouse = filters.UUIDFilter(field_name='warehouse__id')
    model = filters.UUIDFilter(field_name='model__id')
    unit = filters.UUIDFilter(field_name='room__unit__id')
    movement_status = filters.MultipleChoiceFilter(
        choices=FixedAsset.MOVEMENT_STATUS_CHOICES,
        conjoined=False
    )
    condition = filters.ChoiceFilter(choices=FixedAsset.CONDITION_CHOICES)
    procurement_year = filters.NumberFilter()

    class Meta:
        model = FixedAsset
        fields = ['room', 'warehouse', 'model', 'unit', 'movement_status', 'condition', 'procurement_year']


class WarehouseStockFilter(filters.FilterSet):
    warehouse = filters.UUIDFilter(field_name='warehouse__id')
    consumable = filters.UUIDFilter(field_name='consumable__id')
    in_stock = filters.BooleanFilter(method='filter_in_stock')

    class Meta:
        model = WarehouseStock
        fields = ['warehouse', 'consumable', 'in_stock']

    def filter_in_stock(self, queryset, name, value):
        if value:
            return queryset.filter(quantity__gt=0)
        return queryset.filter(quantity=0)


class ConsumableAdjustmentFilter(filters.FilterSet):
    date_from = filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    warehouse = filters.UUIDFilter(field_name='warehouse__id')
    consumable = filters.UUIDFilter(field_name='consumable__id')
    type = filters.ChoiceFilter(choices=ConsumableAdjustment.TYPE_CHOICES)

    class Meta:
        model = ConsumableAdjustment
        fields = ['warehouse', 'consumable', 'type']


class AssetMaintenanceFilter(filters.FilterSet):
    status = filters.MultipleChoiceFilter(choices=AssetMaintenance.STATUS_CHOICES, conjoined=False)
    severity = filters.ChoiceFilter(choices=AssetMaintenance.SEVERITY_CHOICES)
    asset = filters.UUIDFilter(field_name='asset__id')
    room = filters.UUIDFilter(field_name='asset__room__id')

    class Meta:
        model = AssetMaintenance
        fields = ['status', 'severity', 'asset', 'room']
