from rest_framework import serializers
from django.contrib.auth import authenticate

from .models import User, AuditLog, Notification


class UserSerializer(serializers.ModelSerializer):
    faculty_name = serializers.CharField(source='faculty.name', read_only=True, default=None)
    unit_name = serializers.CharField(source='unit.name', read_only=True, default=None)
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'role', 'image',
            'faculty', 'faculty_name', 'unit', 'unit_name', 'warehouse', 'warehouse_name',
            'email_verified', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role']
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True, default=None)
    user_email = serializers.CharField(source='user.email', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'user', 'user_name', 'user_email', 'action', 'table_name', 'record_id',
            'old_values', 'new_values', 'ip_address', 'user_agent', 'created_at'
        ]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'type', 'link', 'is_read', 'created_at']
        read_only_fields = ['id', 'title', 'message', 'type', 'link', 'created_at']


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()

    def validate(self, data):
        email = data.get('email')
        password = data.get('password')

        if not (email and password):
            raise serializers.ValidationError('Must include email and password.')

        user = authenticate(
            request=self.context.get('request'),
            email=email,
            password=password,
        )
        if user is None:
            raise serializers.ValidationError('Invalid email or password.')
        if not user.is_active:
            raise serializers.ValidationError('User account is disabled.')

        data['user'] = user
        return data
