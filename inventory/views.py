from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.filters import SearchFilter, OrderingFilter
from django_filters.rest_framework import DjangoFilterBackend

from accounts.permissions import ActionRulePermission
from . import maintenance_services, stock_services
from .distribution_views import invalid_payload
from .filters import AssetMaintenanceFilter, ConsumableAdjustmentFilter, FixedAssetFilter, WarehouseStockFilter
from .models import AssetMaintenance, ConsumableAdjustment, FixedAsset, WarehouseStock
from .serializers import (
    AssetMaintenanceSerializer,
    ConsumableAdjustmentSerializer,
    DamageReportInputSerializer,
    FixedAssetSerializer,
    MaintenanceStatusInputSerializer,
    StockOpnameInputSerializer,
    WarehouseStockSerializer,
)
from .utils.qr import render_qr_png
from .utils.response import run_action


def scope_to_warehouses(queryset, user):
    """Limit a warehouse-owned queryset to what the user may see."""
    if user.is_super_admin:
        return queryset
    if user.role == user.ROLE_WAREHOUSE_STAFF:
        if not user.warehouse_id:
            return queryset.none()
        return queryset.filter(warehouse_id=user.warehouse_id)
    if user.role == user.ROLE_FACULTY_ADMIN and user.effective_faculty_id:
        return queryset.filter(warehouse__faculty_id=user.effective_faculty_id)
    return queryset.none()


class FixedAssetViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only lookup of physical asset units.

    Unit members only see assets in their unit's rooms; warehouse staff see
    their warehouse plus everything in transit or stored in rooms of their
    faculty.
    """
    serializer_class = FixedAssetSerializer
    permission_classes = [permissions.IsAuthenticated, ActionRulePermission]
    default_permission = 'inventory.view_fixed_asset'
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = FixedAssetFilter
    search_fields = ['qr_token', 'inventory_number', 'serial_number', 'model__name', 'room__name']
    ordering_fields = ['created_at', 'updated_at', 'movement_status', 'inventory_number']
    ordering = ['-created_at']

    def get_queryset(self):
        user = self.request.user
        queryset = FixedAsset.objects.select_related(
            'model__brand', 'room__unit', 'warehouse', 'custodian'
        )
        if user.is_super_admin:
            return queryset
        if user.has_role(user.ROLE_UNIT_ADMIN, user.ROLE_UNIT_STAFF):
            if not user.unit_id:
                return queryset.none()
            return queryset.filter(room__unit_id=user.unit_id)

        faculty_id = user.effective_faculty_id
        if faculty_id is None:
            return queryset.none()
        return queryset.filter(room__building__faculty_id=faculty_id) | queryset.filter(
            warehouse__faculty_id=faculty_id
        )

    @action(detail=True, methods=['get'])
    def qr(self, request, pk=None):
        """Render the asset's QR token as a PNG image"""
        asset = self.get_object()
        response = HttpResponse(render_qr_png(asset.qr_token), content_type='image/png')
        response['Content-Disposition'] = f'inline; filename="{asset.qr_token}.png"'
        return response

    @action(detail=False, methods=['get'], url_path=r'by-token/(?P<token>[^/]+)')
    def by_token(self, request, token=None):
        """Resolve a scanned QR token to its asset"""
        asset = get_object_or_404(self.get_queryset(), qr_token=token)
        return Response(self.get_serializer(asset).data)


class WarehouseStockViewSet(viewsets.ReadOnlyModelViewSet):
    """Warehouse batches with their system quantity; counted through ``opname``"""

    serializer_class = WarehouseStockSerializer
    permission_classes = [permissions.IsAuthenticated, ActionRulePermission]
    default_permission = 'inventory.view_stock'
    action_permissions = {
        'opname': 'inventory.stock_opname',
    }
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = WarehouseStockFilter
    search_fields = ['consumable__name', 'batch_number']
    ordering_fields = ['expiry_date', 'quantity', 'updated_at']
    ordering = ['consumable__name', 'expiry_date']

    def get_queryset(self):
        queryset = WarehouseStock.objects.select_related('consumable', 'warehouse')
        return scope_to_warehouses(queryset, self.request.user)

    @action(detail=True, methods=['post'])
    def opname(self, request, pk=None):
        """
        Record a physical count

        Body: {"physical_qty": "18", "reason": "Two bottles broken", "type": "STOCK_OPNAME"}
        """
        stock = self.get_object()
        serializer = StockOpnameInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: stock_services.submit_stock_opname(
                request.user,
                stock.pk,
                data['physical_qty'],
                reason=data.get('reason'),
                adjustment_type=data['type'],
                request=request,
            ),
            'Stock count recorded.',
            serialize=lambda adjustment: ConsumableAdjustmentSerializer(adjustment).data,
        )


class ConsumableAdjustmentViewSet(viewsets.ReadOnlyModelViewSet):
    """History of stock counts and corrections"""

    serializer_class = ConsumableAdjustmentSerializer
    permission_classes = [permissions.IsAuthenticated, ActionRulePermission]
    default_permission = 'inventory.view_stock'
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = ConsumableAdjustmentFilter
    search_fields = ['consumable__name', 'batch_number', 'reason']
    ordering_fields = ['created_at', 'delta_quantity']
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = ConsumableAdjustment.objects.select_related('user', 'consumable', 'warehouse')
        return scope_to_warehouses(queryset, self.request.user)


class AssetMaintenanceViewSet(viewsets.ModelViewSet):
    """Damage reports and the repair log of fixed assets"""

    serializer_class = AssetMaintenanceSerializer
    permission_classes = [permissions.IsAuthenticated, ActionRulePermission]
    http_method_names = ['get', 'post', 'head', 'options']
    default_permission = 'inventory.view_maintenance'
    action_permissions = {
        'create': 'inventory.report_damage',
        'update_status': 'inventory.manage_maintenance',
    }
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = AssetMaintenanceFilter
    search_fields = ['asset__qr_token', 'asset__model__name', 'description']
    ordering_fields = ['created_at', 'downtime_start', 'status']
    ordering = ['-created_at']

    def get_queryset(self):
        user = self.request.user
        queryset = AssetMaintenance.objects.select_related('asset__model', 'asset__room__unit', 'reporter')
        if user.is_super_admin:
            return queryset
        if user.has_role(user.ROLE_UNIT_ADMIN, user.ROLE_UNIT_STAFF):
            if not user.unit_id:
                return queryset.none()
            return queryset.filter(asset__room__unit_id=user.unit_id)

        faculty_id = user.effective_faculty_id
        if faculty_id is None:
            return queryset.none()
        return queryset.filter(asset__room__building__faculty_id=faculty_id) | queryset.filter(
            asset__warehouse__faculty_id=faculty_id
        )

    def _serialize(self, maintenance):
        return AssetMaintenanceSerializer(self.get_queryset().get(pk=maintenance.pk)).data

    def create(self, request, *args, **kwargs):
        serializer = DamageReportInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: maintenance_services.report_asset_damage(
                request.user,
                data['asset_id'],
                data['severity'],
                data['description'],
                repair_cost=data.get('repair_cost'),
                downtime_start=data.get('downtime_start'),
                request=request,
            ),
            'Damage reported.',
            serialize=self._serialize,
            http_status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=['post'], url_path='status')
    def update_status(self, request, pk=None):
        maintenance = self.get_object()
        serializer = MaintenanceStatusInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: maintenance_services.update_maintenance_status(
                maintenance.pk, request.user, data['status'], repair_cost=data.get('repair_cost'), request=request
            ),
            'Maintenance updated.',
            serialize=self._serialize,
        )
