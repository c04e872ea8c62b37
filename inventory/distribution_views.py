"""
Asset distribution API views

Endpoints:
- GET    /inventory/api/distributions/                 list distributions
- POST   /inventory/api/distributions/                 create a DRAFT
- PUT    /inventory/api/distributions/{id}/            re-allocate a DRAFT
- DELETE /inventory/api/distributions/{id}/            delete a DRAFT
- POST   /inventory/api/distributions/{id}/execute/    ship a DRAFT
- GET    /inventory/api/distributions/summary/         per-status counts
- GET    /inventory/api/incoming-distributions/        targets for the caller's unit
- POST   /inventory/api/incoming-distributions/{id}/receive/
"""

from django.db.models import Prefetch
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.filters import SearchFilter, OrderingFilter

from accounts.permissions import ActionRulePermission
from inventory.distribution_models import AssetDistribution, AssetDistributionTarget
from inventory.distribution_serializers import (
    AssetDistributionSerializer,
    AssetDistributionInputSerializer,
    IncomingDistributionSerializer,
    ReceiveDistributionSerializer,
)
from inventory.distribution_services import (
    create_distribution_draft,
    update_distribution_draft,
    delete_distribution_draft,
    execute_distribution,
    receive_distribution,
    get_distribution_summary,
)
from inventory.filters import AssetDistributionFilter, IncomingDistributionFilter
from inventory.utils.response import ActionError, ActionResponse, run_action


def invalid_payload(serializer):
    return ActionResponse.error(
        ActionError.create('VALIDATION_ERROR', 'Invalid input.', serializer.errors),
        status.HTTP_400_BAD_REQUEST,
    )


class AssetDistributionViewSet(viewsets.ModelViewSet):
    """Distribution drafts, execution and status overview"""

    serializer_class = AssetDistributionSerializer
    permission_classes = [IsAuthenticated, ActionRulePermission]
    http_method_names = ['get', 'post', 'put', 'delete', 'head', 'options']
    action_permissions = {
        'list': 'inventory.view_distribution',
        'retrieve': 'inventory.view_distribution',
        'summary': 'inventory.view_distribution',
        'create': 'inventory.create_distribution',
        'update': 'inventory.change_distribution',
        'destroy': 'inventory.delete_distribution',
        'execute': 'inventory.execute_distribution',
    }
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = AssetDistributionFilter
    search_fields = ['distribution_code', 'model__name', 'notes']
    ordering_fields = ['created_at', 'total_quantity', 'status']
    ordering = ['-created_at']

    def get_queryset(self):
        return AssetDistribution.objects.select_related('model', 'actor').prefetch_related(
            Prefetch(
                'targets',
                queryset=AssetDistributionTarget.objects.select_related('target_room__unit', 'receiver')
            )
        )

    def _serialize(self, distribution):
        distribution = self.get_queryset().get(pk=distribution.pk)
        return AssetDistributionSerializer(distribution, context=self.get_serializer_context()).data

    def create(self, request, *args, **kwargs):
        serializer = AssetDistributionInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: create_distribution_draft(
                actor=request.user,
                model_id=data['model_id'],
                total_quantity=data['total_quantity'],
                targets=serializer.get_allocations(),
                notes=data.get('notes'),
                request=request,
            ),
            'Distribution draft created.',
            serialize=self._serialize,
            http_status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        distribution = self.get_object()
        serializer = AssetDistributionInputSerializer(data=request.data, context={'require_model': False})
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data

        return run_action(
            lambda: update_distribution_draft(
                distribution.pk,
                total_quantity=data['total_quantity'],
                targets=serializer.get_allocations(),
                notes=data.get('notes'),
                actor=request.user,
                request=request,
            ),
            'Distribution draft updated.',
            serialize=self._serialize,
        )

    def destroy(self, request, *args, **kwargs):
        distribution = self.get_object()
        return run_action(
            lambda: delete_distribution_draft(distribution.pk, actor=request.user, request=request),
            'Distribution draft deleted.',
        )

    @action(detail=True, methods=['post'])
    def execute(self, request, pk=None):
        """
        Ship a DRAFT distribution

        POST /inventory/api/distributions/{id}/execute/
        """
        distribution = self.get_object()
        return run_action(
            lambda: execute_distribution(distribution.pk, actor=request.user, request=request),
            'Distribution shipped. Asset records are now in transit.',
            serialize=self._serialize,
        )

    @action(detail=False, methods=['get'])
    def summary(self, request):
        return Response(get_distribution_summary())


class IncomingDistributionViewSet(viewsets.ReadOnlyModelViewSet):
    """Shipped distribution targets addressed to rooms of the caller's unit"""

    serializer_class = IncomingDistributionSerializer
    permission_classes = [IsAuthenticated, ActionRulePermission]
    default_permission = 'inventory.view_incoming_distribution'
    action_permissions = {
        'receive': 'inventory.receive_distribution',
    }
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = IncomingDistributionFilter
    search_fields = ['distribution__distribution_code', 'distribution__model__name', 'target_room__name']
    ordering_fields = ['distribution__updated_at', 'allocated_quantity', 'received_quantity']
    ordering = ['-distribution__updated_at']

    def get_queryset(self):
        user = self.request.user
        queryset = AssetDistributionTarget.objects.select_related(
            'distribution__model',
            'distribution__actor',
            'target_room',
        ).filter(
            distribution__status__in=[AssetDistribution.STATUS_SHIPPED, AssetDistribution.STATUS_COMPLETED]
        )
        if user.is_super_admin:
            return queryset
        if not user.unit_id:
            return queryset.none()
        return queryset.filter(target_room__unit_id=user.unit_id)

    @action(detail=True, methods=['post'])
    def receive(self, request, pk=None):
        """
        Confirm receipt of shipped units

        Body:
        {
            "room_id": "<uuid>",
            "received_quantity": 5
        }
        """
        target = self.get_object()
        serializer = ReceiveDistributionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_payload(serializer)
        data = serializer.validated_data
        qty = data['received_quantity']

        return run_action(
            lambda: receive_distribution(
                target.pk,
                qty,
                data['room_id'],
                receiver=request.user,
                request=request,
            ),
            f'Received {qty} unit(s).',
            serialize=lambda t: IncomingDistributionSerializer(
                self.get_queryset().get(pk=t.pk)
            ).data,
        )
