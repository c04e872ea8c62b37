"""
Requisition API views

Endpoints:
- GET/POST /requisitions/api/requests/
- PUT      /requisitions/api/requests/{id}/                     revise while PENDING_UNIT
- POST     /requisitions/api/requests/{id}/approve|reject|cancel/
- POST     /requisitions/api/requests/{id}/process|ready|complete/
- POST     /requisitions/api/requests/assets/                   fixed asset request
- GET      /requisitions/api/requests/{id}/qr/                  pickup QR code
- GET/POST /requisitions/api/usage-reports/
- PUT/DELETE /requisitions/api/usage-reports/{id}/
- GET/POST /requisitions/api/procurements/
- PUT/DELETE /requisitions/api/procurements/{id}/
- POST     /requisitions/api/procurements/{id}/approve|reject|receive/
"""

from django.db.models import Prefetch, Q
from django.http import HttpResponse
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import ActionRulePermission
from inventory.distribution_views import invalid_payload
from inventory.utils.qr import render_qr_png
from inventory.utils.response import run_action

from . import services
from .filters import ProcurementFilter, RequestFilter, UsageReportFilter
from .models import Procurement, ProcurementTimeline, Request, RequestItem, RequestTimeline, UsageReport
from .serializers import (
    AssetRequestInputSerializer,
    DecisionSerializer,
    ProcurementInputSerializer,
    ProcurementReceiptSerializer,
    ProcurementSerializer,
    RejectionSerializer,
    RequestInputSerializer,
    RequestListSerializer,
    RequestSerializer,
    UsageReportInputSerializer,
    UsageReportSerializer,
)


def _line_items(validated_items):
    return [
        {
            'consumable_id': item['consumable_id'],
            'quantity': item['quantity'],
            'price_per_unit': item.get('price_per_unit'),
            'notes': item.get('notes'),
        }
        for item in validated_items
    ]


class RequestViewSet(viewsets.ModelViewSet):
    """Consumable requests and their approval workflow"""

    permission_classes = [IsAuthenticated, ActionRulePermission]
    http_method_names = ['get', 'post', 'put', 'head', 'options']
    default_permission = 'requisitions.view_request'
    action_permissions = {
        'create': 'requisitions.create_request',
        'create_asset': 'requisitions.create_request',
        'update': 'requisitions.change_request',
        'cancel': 'requisitions.change_request',
        'approve': 'requisitions.approve_request',
        'reject': 'requisitions.reject_request',
        'process': 'requisitions.handle_request',
        'ready': 'requisitions.handle_request',
        'complete': 'requisitions.handle_request',
    }
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = RequestFilter
    search_fields = ['request_code', 'description', 'requester__name', 'room__name']
    ordering_fields = ['created_at', 'updated_at', 'status']
    ordering = ['-created_at']

    def get_serializer_class(self):
        if self.action == 'list':
            return RequestListSerializer
        return RequestSerializer

    def get_queryset(self):
        user = self.request.user
        queryset = Request.objects.select_related(
            'requester', 'room__unit', 'target_warehouse'
        ).prefetch_related(
            Prefetch('items', queryset=RequestItem.objects.select_related('consumable').prefetch_related(
                'allocations__warehouse'
            )),
            'asset_items__asset_model',
            Prefetch('timelines', queryset=RequestTimeline.objects.select_related('actor')),
        )
        if user.is_super_admin:
            return queryset
        if user.role == user.ROLE_UNIT_STAFF:
            return queryset.filter(requester=user)
        if user.role == user.ROLE_UNIT_ADMIN:
            if not user.unit_id:
                return queryset.none()
            return queryset.filter(room__unit_id=user.unit_id)
        if user.role == user.ROLE_FACULTY_ADMIN:
            if not user.faculty_id:
                return queryset.none()
            return queryset.filter(
                Q(room__unit__faculty_id=user.faculty_id) | Q(room__building__faculty_id=user.faculty_id)
            ).distinct()
        if user.role == user.ROLE_WAREHOUSE_STAFF:
            if not user.warehouse_id:
                return queryset.none()
            return queryset.filter(target_warehouse_id=user.warehouse_id)
        return queryset.none()

    def _serialize(self, request_obj):
        return RequestSerializer(self.get_queryset().get(pk=request_obj.pk)).data

    def create(self, request, *args, **kwargs):
        serializer = RequestInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: services.create_request(
                request.user,
                room_id=data['room_id'],
                target_warehouse_id=data['target_warehouse_id'],
                items=_line_items(data['items']),
                description=data.get('description'),
                request=request,
            ),
            'Request submitted.',
            serialize=self._serialize,
            http_status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        request_obj = self.get_object()
        serializer = RequestInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: services.update_request(
                request_obj.pk,
                request.user,
                room_id=data['room_id'],
                target_warehouse_id=data['target_warehouse_id'],
                items=_line_items(data['items']),
                description=data.get('description'),
                request=request,
            ),
            'Request updated.',
            serialize=self._serialize,
        )

    @action(detail=False, methods=['post'], url_path='assets')
    def create_asset(self, request):
        serializer = AssetRequestInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: services.create_asset_request(
                request.user,
                room_id=data['room_id'],
                items=[{'model_id': item['model_id'], 'quantity': item['quantity']} for item in data['items']],
                description=data.get('description'),
                request=request,
            ),
            'Asset request submitted.',
            serialize=self._serialize,
            http_status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        """
        Unit approval while PENDING_UNIT, faculty approval (with stock
        allocation) while PENDING_FACULTY.
        """
        request_obj = self.get_object()
        serializer = DecisionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)

        return run_action(
            lambda: services.approve_request(
                request_obj.pk, request.user, notes=serializer.validated_data.get('notes'), request=request
            ),
            'Request approved.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        request_obj = self.get_object()
        serializer = RejectionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)

        return run_action(
            lambda: services.reject_request(
                request_obj.pk, request.user, serializer.validated_data['reason'], request=request
            ),
            'Request rejected.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        request_obj = self.get_object()
        return run_action(
            lambda: services.cancel_request(request_obj.pk, request.user, request=request),
            'Request canceled.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['post'])
    def process(self, request, pk=None):
        request_obj = self.get_object()
        return run_action(
            lambda: services.process_request(request_obj.pk, request.user, request=request),
            'Request is being processed.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['post'])
    def ready(self, request, pk=None):
        request_obj = self.get_object()
        return run_action(
            lambda: services.mark_request_ready(request_obj.pk, request.user, request=request),
            'Request is ready for pickup.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        """Pickup confirmed by scanning the request QR code"""
        request_obj = self.get_object()
        return run_action(
            lambda: services.complete_request(request_obj.pk, request.user, request=request),
            'Items handed over. Room stock updated.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['get'])
    def qr(self, request, pk=None):
        request_obj = self.get_object()
        response = HttpResponse(render_qr_png(str(request_obj.pk)), content_type='image/png')
        filename = request_obj.request_code.replace('/', '-')
        response['Content-Disposition'] = f'inline; filename="{filename}.png"'
        return response


class ProcurementViewSet(viewsets.ModelViewSet):
    """Procurements raised by warehouse staff"""

    serializer_class = ProcurementSerializer
    permission_classes = [IsAuthenticated, ActionRulePermission]
    http_method_names = ['get', 'post', 'put', 'delete', 'head', 'options']
    default_permission = 'requisitions.view_procurement'
    action_permissions = {
        'create': 'requisitions.create_procurement',
        'update': 'requisitions.change_procurement',
        'destroy': 'requisitions.delete_procurement',
        'approve': 'requisitions.verify_procurement',
        'reject': 'requisitions.verify_procurement',
        'receive': 'requisitions.receive_procurement',
    }
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = ProcurementFilter
    search_fields = ['procurement_code', 'description', 'supplier']
    ordering_fields = ['created_at', 'updated_at', 'status']
    ordering = ['-created_at']

    def get_queryset(self):
        user = self.request.user
        queryset = Procurement.objects.select_related('user', 'warehouse').prefetch_related(
            'items__consumable',
            Prefetch('timelines', queryset=ProcurementTimeline.objects.select_related('actor')),
        )
        if user.is_super_admin:
            return queryset
        if user.role == user.ROLE_WAREHOUSE_STAFF:
            if not user.warehouse_id:
                return queryset.none()
            return queryset.filter(warehouse_id=user.warehouse_id)
        if user.role == user.ROLE_FACULTY_ADMIN:
            return queryset.filter(Q(warehouse__faculty_id=user.faculty_id) | Q(warehouse__faculty__isnull=True))
        return queryset.none()

    def _serialize(self, procurement):
        return ProcurementSerializer(self.get_queryset().get(pk=procurement.pk)).data

    def create(self, request, *args, **kwargs):
        serializer = ProcurementInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: services.create_procurement(
                request.user,
                description=data['description'],
                items=_line_items(data['items']),
                supplier=data.get('supplier'),
                request=request,
            ),
            'Procurement submitted.',
            serialize=self._serialize,
            http_status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        procurement = self.get_object()
        serializer = ProcurementInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: services.update_procurement(
                procurement.pk,
                request.user,
                description=data['description'],
                items=_line_items(data['items']),
                supplier=data.get('supplier'),
                request=request,
            ),
            'Procurement updated.',
            serialize=self._serialize,
        )

    def destroy(self, request, *args, **kwargs):
        procurement = self.get_object()
        return run_action(
            lambda: services.delete_procurement(procurement.pk, request.user, request=request),
            'Procurement deleted.',
        )

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        procurement = self.get_object()
        serializer = DecisionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)

        return run_action(
            lambda: services.approve_procurement(
                procurement.pk, request.user, notes=serializer.validated_data.get('notes'), request=request
            ),
            'Procurement approved.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        procurement = self.get_object()
        serializer = RejectionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)

        return run_action(
            lambda: services.reject_procurement(
                procurement.pk, request.user, serializer.validated_data['reason'], request=request
            ),
            'Procurement rejected.',
            serialize=self._serialize,
        )

    @action(detail=True, methods=['post'])
    def receive(self, request, pk=None):
        """
        Record the goods receipt

        Body:
        {
            "items": [
                {"item_id": "<uuid>", "quantity": "10", "batch_number": "B-01",
                 "expiry_date": "2027-01-31T00:00:00Z", "condition": "GOOD"}
            ]
        }
        """
        procurement = self.get_object()
        serializer = ProcurementReceiptSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)

        return run_action(
            lambda: services.receive_procurement(
                procurement.pk, request.user, serializer.validated_data['items'], request=request
            ),
            'Goods receipt recorded. Warehouse stock updated.',
            serialize=self._serialize,
        )


class UsageReportViewSet(viewsets.ModelViewSet):
    """Consumables used in a room; reporting reduces the room stock"""

    serializer_class = UsageReportSerializer
    permission_classes = [IsAuthenticated, ActionRulePermission]
    http_method_names = ['get', 'post', 'put', 'delete', 'head', 'options']
    default_permission = 'requisitions.view_usage_report'
    action_permissions = {
        'create': 'requisitions.create_usage_report',
        'update': 'requisitions.change_usage_report',
        'destroy': 'requisitions.delete_usage_report',
    }
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = UsageReportFilter
    search_fields = ['activity_name', 'room__name', 'user__name']
    ordering_fields = ['activity_date', 'created_at']
    ordering = ['-activity_date']

    def get_queryset(self):
        user = self.request.user
        queryset = UsageReport.objects.select_related('user', 'room__unit').prefetch_related('details__consumable')
        if user.is_super_admin:
            return queryset
        if user.role == user.ROLE_UNIT_STAFF:
            return queryset.filter(user=user)
        if user.role == user.ROLE_UNIT_ADMIN:
            if not user.unit_id:
                return queryset.none()
            return queryset.filter(room__unit_id=user.unit_id)
        if user.role == user.ROLE_FACULTY_ADMIN:
            if not user.faculty_id:
                return queryset.none()
            return queryset.filter(
                Q(room__unit__faculty_id=user.faculty_id) | Q(room__building__faculty_id=user.faculty_id)
            ).distinct()
        return queryset.none()

    def _serialize(self, report):
        return UsageReportSerializer(self.get_queryset().get(pk=report.pk)).data

    @staticmethod
    def _usage_items(validated_items):
        return [{'consumable_id': item['consumable_id'], 'quantity': item['quantity']} for item in validated_items]

    def create(self, request, *args, **kwargs):
        serializer = UsageReportInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: services.create_usage_report(
                request.user,
                activity_name=data['activity_name'],
                items=self._usage_items(data['items']),
                room_id=data.get('room_id'),
                activity_date=data.get('activity_date'),
                request=request,
            ),
            'Usage report saved. Room stock updated.',
            serialize=self._serialize,
            http_status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        report = self.get_object()
        serializer = UsageReportInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: services.update_usage_report(
                report.pk,
                request.user,
                activity_name=data['activity_name'],
                items=self._usage_items(data['items']),
                activity_date=data.get('activity_date'),
                request=request,
            ),
            'Usage report updated. Room stock updated.',
            serialize=self._serialize,
        )

    def destroy(self, request, *args, **kwargs):
        report = self.get_object()
        return run_action(
            lambda: services.delete_usage_report(report.pk, request.user, request=request),
            'Usage report deleted. Stock returned to the room.',
        )
