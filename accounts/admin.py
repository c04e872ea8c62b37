from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, AuditLog, Notification


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['name', 'email', 'role', 'faculty', 'unit', 'warehouse', 'is_active', 'created_at']
    list_filter = ['role', 'is_active', 'is_staff', 'faculty', 'created_at']
    search_fields = ['name', 'email']
    readonly_fields = ('id', 'created_at', 'updated_at', 'last_login')
    autocomplete_fields = ['faculty', 'unit', 'warehouse']
    ordering = ['-created_at']

    fieldsets = (
        (None, {'fields': ('id', 'email', 'password')}),
        ('Personal info', {'fields': ('name', 'image')}),
        ('Role & Scope', {'fields': ('role', 'faculty', 'unit', 'warehouse')}),
        ('Permissions', {'fields': ('is_active', 'email_verified', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'created_at', 'updated_at')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('name', 'email', 'password1', 'password2', 'role', 'faculty', 'unit', 'warehouse'),
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj:  # editing an existing object
            return self.readonly_fields + ('email',)
        return self.readonly_fields


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'action', 'table_name', 'record_id', 'created_at']
    list_filter = ['action', 'table_name', 'created_at']
    search_fields = ['user__name', 'user__email', 'table_name', 'record_id']
    readonly_fields = [
        'id', 'user', 'action', 'table_name', 'record_id', 'old_values', 'new_values',
        'ip_address', 'user_agent', 'created_at'
    ]
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'type', 'is_read', 'created_at']
    list_filter = ['type', 'is_read', 'created_at']
    search_fields = ['title', 'message', 'user__email']
    readonly_fields = ['id', 'created_at']
    ordering = ['-created_at']
