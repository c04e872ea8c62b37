from django.contrib import admin
from .models import (
    Request, RequestAssetItem, RequestItem, RequestItemAllocation, RequestTimeline,
    Procurement, ProcurementItem, ProcurementTimeline, UsageDetail, UsageReport
)


class ReadOnlyTimelineInline(admin.TabularInline):
    extra = 0
    can_delete = False
    readonly_fields = ['status', 'actor', 'notes', 'created_at']

    def has_add_permission(self, request, obj=None):
        return False


class RequestItemInline(admin.TabularInline):
    model = RequestItem
    extra = 0
    readonly_fields = ['consumable', 'qty_requested', 'qty_approved']


class RequestAssetItemInline(admin.TabularInline):
    model = RequestAssetItem
    extra = 0
    readonly_fields = ['asset_model', 'qty_requested', 'qty_approved']


class RequestTimelineInline(ReadOnlyTimelineInline):
    model = RequestTimeline


@admin.register(Request)
class RequestAdmin(admin.ModelAdmin):
    list_display = ['request_code', 'request_type', 'requester', 'room', 'target_warehouse', 'status', 'created_at']
    search_fields = ['request_code', 'requester__name', 'room__name', 'description']
    list_filter = ['request_type', 'status', 'target_warehouse', 'created_at']
    readonly_fields = ['id', 'request_code', 'status', 'approved_by_unit', 'approved_by_faculty',
                       'created_at', 'updated_at']
    inlines = [RequestItemInline, RequestAssetItemInline, RequestTimelineInline]
    ordering = ['-created_at']


@admin.register(RequestItemAllocation)
class RequestItemAllocationAdmin(admin.ModelAdmin):
    list_display = ['request_item', 'warehouse', 'consumable', 'batch_number', 'expiry_date', 'quantity']
    search_fields = ['consumable__name', 'batch_number', 'request_item__request__request_code']
    list_filter = ['warehouse']
    readonly_fields = ['id', 'created_at']


class ProcurementItemInline(admin.TabularInline):
    model = ProcurementItem
    extra = 0
    readonly_fields = ['received_quantity', 'batch_number', 'expiry_date', 'condition']


class ProcurementTimelineInline(ReadOnlyTimelineInline):
    model = ProcurementTimeline


@admin.register(Procurement)
class ProcurementAdmin(admin.ModelAdmin):
    list_display = ['procurement_code', 'user', 'warehouse', 'status', 'supplier', 'created_at']
    search_fields = ['procurement_code', 'description', 'supplier', 'user__name']
    list_filter = ['status', 'warehouse', 'created_at']
    readonly_fields = ['id', 'procurement_code', 'status', 'created_at', 'updated_at']
    inlines = [ProcurementItemInline, ProcurementTimelineInline]
    ordering = ['-created_at']


class UsageDetailInline(admin.TabularInline):
    model = UsageDetail
    extra = 0
    can_delete = False
    readonly_fields = ['consumable', 'batch_number', 'expiry_date', 'qty_used']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(UsageReport)
class UsageReportAdmin(admin.ModelAdmin):
    list_display = ['activity_name', 'room', 'user', 'activity_date', 'created_at']
    search_fields = ['activity_name', 'room__name', 'user__name']
    list_filter = ['activity_date']
    readonly_fields = ['id', 'user', 'room', 'created_at', 'updated_at']
    inlines = [UsageDetailInline]
    ordering = ['-activity_date']
