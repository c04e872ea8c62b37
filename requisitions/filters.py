"""
Requisition filters for list endpoints
"""
from django_filters import rest_framework as filters

from .models import Procurement, Request, UsageReport


class RequestFilter(filters.FilterSet):
    date_from = filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    status = filters.MultipleChoiceFilter(choices=Request.STATUS_CHOICES, conjoined=False)
    request_type = filters.ChoiceFilter(choices=Request.TYPE_CHOICES)
    room = filters.UUIDFilter(field_name='room__id')
    unit = filters.UUIDFilter(field_name='room__unit__id')
    warehouse = filters.UUIDFilter(field_name='target_warehouse__id')
    requester = filters.UUIDFilter(field_name='requester__id')

    class Meta:
        model = Request
        fields = ['status', 'request_type', 'room', 'unit', 'warehouse', 'requester']


class ProcurementFilter(filters.FilterSet):
    date_from = filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    status = filters.MultipleChoiceFilter(choices=Procurement.STATUS_CHOICES, conjoined=False)
    warehouse = filters.UUIDFilter(field_name='warehouse__id')

    class Meta:
        model = Procurement
        fields = ['status', 'warehouse']


class UsageReportFilter(filters.FilterSet):
    date_from = filters.DateFilter(field_name='activity_date', lookup_expr='date__gte')
    date_to = filters.DateFilter(field_name='activity_date', lookup_expr='date__lte')
    room = filters.UUIDFilter(field_name='room__id')
    unit = filters.UUIDFilter(field_name='room__unit__id')

    class Meta:
        model = UsageReport
        fields = ['room', 'unit']
