import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class UserManager(BaseUserManager):
    """Custom user manager for UUID primary keys"""
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', User.ROLE_SUPER_ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom user model with UUID primary key and a single application role.

    The role decides which workflow steps a user may drive; the optional
    faculty/unit/warehouse references scope what the user sees.
    """
    ROLE_SUPER_ADMIN = 'super_admin'
    ROLE_WAREHOUSE_STAFF = 'warehouse_staff'
    ROLE_FACULTY_ADMIN = 'faculty_admin'
    ROLE_UNIT_ADMIN = 'unit_admin'
    ROLE_UNIT_STAFF = 'unit_staff'
    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Admin'),
        (ROLE_WAREHOUSE_STAFF, 'Warehouse Staff'),
        (ROLE_FACULTY_ADMIN, 'Faculty Admin'),
        (ROLE_UNIT_ADMIN, 'Unit Admin'),
        (ROLE_UNIT_STAFF, 'Unit Staff'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_UNIT_STAFF, db_index=True)
    image = models.URLField(blank=True, null=True)

    # Organizational scope
    faculty = models.ForeignKey(
        'inventory.Faculty',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='members'
    )
    unit = models.ForeignKey(
        'inventory.Unit',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='members'
    )
    warehouse = models.ForeignKey(
        'inventory.Warehouse',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='staff'
    )

    email_verified = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    is_superuser = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        db_table = 'users'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.email})"

    def has_role(self, *roles):
        return self.role in roles

    @property
    def is_super_admin(self):
        return self.is_superuser or self.role == self.ROLE_SUPER_ADMIN

    @property
    def effective_faculty_id(self):
        """Faculty of the user, falling back to the faculty owning the user's unit."""
        if self.faculty_id:
            return self.faculty_id
        if self.unit_id and self.unit:
            return self.unit.faculty_id
        return None


class AuditLog(models.Model):
    """Audit trail for all critical operations"""
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('APPROVE', 'Approve'),
        ('REJECT', 'Reject'),
        ('CANCEL', 'Cancel'),
        ('UPDATE_STATUS', 'Update Status'),
        ('COMPLETE', 'Complete'),
        ('EXECUTE', 'Execute'),
        ('RECEIVE', 'Receive'),
        ('INBOUND_RECEIPT', 'Inbound Receipt'),
        ('CREATE_USAGE_REPORT', 'Create Usage Report'),
        ('UPDATE_USAGE_REPORT', 'Update Usage Report'),
        ('DELETE_USAGE_REPORT', 'Delete Usage Report'),
        ('STOCK_OPNAME', 'Stock Opname'),
        ('DAMAGE', 'Damage'),
        ('LOSS', 'Loss'),
        ('CORRECTION', 'Correction'),
        ('REPORT_DAMAGE', 'Report Damage'),
        ('UPDATE_MAINTENANCE', 'Update Maintenance'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    table_name = models.CharField(max_length=100)
    record_id = models.CharField(max_length=64)
    old_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'created_at'], name='audit_logs_user_created_idx'),
            models.Index(fields=['table_name', 'record_id'], name='audit_logs_record_idx'),
        ]

    def __str__(self):
        return f"{self.user} - {self.action} - {self.table_name} - {self.created_at}"


class Notification(models.Model):
    """In-app notification shown in a user's notification center."""
    TYPE_INFO = 'INFO'
    TYPE_SUCCESS = 'SUCCESS'
    TYPE_WARNING = 'WARNING'
    TYPE_ERROR = 'ERROR'
    TYPE_CHOICES = [
        (TYPE_INFO, 'Info'),
        (TYPE_SUCCESS, 'Success'),
        (TYPE_WARNING, 'Warning'),
        (TYPE_ERROR, 'Error'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    title = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_INFO)
    link = models.CharField(max_length=255, blank=True, null=True)
    is_read = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notif_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.title} -> {self.user_id}"
