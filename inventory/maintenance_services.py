"""
Asset damage and maintenance services

A damage report opens a maintenance record and marks the asset's condition.
Closing the record (repaired or irreparable) ends the downtime and sets the
final condition.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from accounts.models import Notification
from accounts.utils import log_user_action, notify_users, users_with_role

from .exceptions import InvalidStateError, InvalidTransition, NotFoundError, RoleNotAllowed, ValidationFailed
from .models import AssetMaintenance, FixedAsset

logger = logging.getLogger(__name__)

User = get_user_model()

MAINTENANCE_LINK = '/dashboard/maintenances'

SEVERITY_CONDITIONS = {
    AssetMaintenance.SEVERITY_MINOR: FixedAsset.CONDITION_MINOR_DAMAGE,
    AssetMaintenance.SEVERITY_MODERATE: FixedAsset.CONDITION_MAJOR_DAMAGE,
    AssetMaintenance.SEVERITY_MAJOR: FixedAsset.CONDITION_BROKEN,
}

STATUS_TRANSITIONS = {
    AssetMaintenance.STATUS_REPORTED: {
        AssetMaintenance.STATUS_IN_PROGRESS,
        AssetMaintenance.STATUS_COMPLETED,
        AssetMaintenance.STATUS_IRREPARABLE,
    },
    AssetMaintenance.STATUS_IN_PROGRESS: {
        AssetMaintenance.STATUS_COMPLETED,
        AssetMaintenance.STATUS_IRREPARABLE,
    },
}

STATUS_CONDITIONS = {
    AssetMaintenance.STATUS_IN_PROGRESS: FixedAsset.CONDITION_MAINTENANCE,
    AssetMaintenance.STATUS_COMPLETED: FixedAsset.CONDITION_GOOD,
    AssetMaintenance.STATUS_IRREPARABLE: FixedAsset.CONDITION_BROKEN,
}


def _to_repair_cost(value):
    if value in (None, ''):
        return None
    try:
        cost = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed('Repair cost must be a number.')
    if not cost.is_finite() or cost < 0:
        raise ValidationFailed('Repair cost cannot be negative.')
    return cost


def _ensure_asset_scope(actor, asset):
    """Unit roles act on assets in their unit's rooms, warehouse staff on their warehouse."""
    if actor.is_super_admin or actor.role == User.ROLE_FACULTY_ADMIN:
        return
    if actor.role in (User.ROLE_UNIT_STAFF, User.ROLE_UNIT_ADMIN):
        if asset.room_id and asset.room.unit_id == actor.unit_id:
            return
        raise RoleNotAllowed('This asset is not in a room of your unit.')
    if actor.role == User.ROLE_WAREHOUSE_STAFF and asset.warehouse_id and asset.warehouse_id == actor.warehouse_id:
        return
    raise RoleNotAllowed('This asset is outside your scope.')


def _asset_caretakers(asset):
    if asset.room_id and asset.room.unit_id:
        return users_with_role(User.ROLE_UNIT_ADMIN, unit_id=asset.room.unit_id)
    if asset.warehouse_id:
        return users_with_role(User.ROLE_WAREHOUSE_STAFF, warehouse_id=asset.warehouse_id)
    return users_with_role(User.ROLE_SUPER_ADMIN)


@transaction.atomic
def report_asset_damage(reporter, asset_id, severity, description, repair_cost=None,
                        downtime_start=None, request=None):
    """Open a maintenance record for a damaged asset and mark its condition."""
    if severity not in SEVERITY_CONDITIONS:
        raise ValidationFailed('Choose a damage severity (MINOR, MODERATE or MAJOR).')
    description = (description or '').strip()
    if len(description) < 5:
        raise ValidationFailed('A damage description of at least 5 characters is required.')
    cost = _to_repair_cost(repair_cost)

    try:
        asset = FixedAsset.objects.select_for_update().select_related('model', 'room').get(pk=asset_id)
    except (FixedAsset.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError('Asset not found.')
    _ensure_asset_scope(reporter, asset)

    if asset.maintenances.exclude(status__in=AssetMaintenance.CLOSED_STATUSES).exists():
        raise InvalidStateError(f'Asset {asset.qr_token} already has an open damage report.')

    maintenance = AssetMaintenance.objects.create(
        asset=asset,
        reporter=reporter,
        severity=severity,
        description=description,
        repair_cost=cost,
        downtime_start=downtime_start or timezone.now(),
    )
    old_condition = asset.condition
    asset.condition = SEVERITY_CONDITIONS[severity]
    asset.save(update_fields=['condition', 'updated_at'])

    log_user_action(
        reporter, 'REPORT_DAMAGE', AssetMaintenance._meta.db_table, maintenance.pk,
        old_values={'asset_condition': old_condition},
        new_values={
            'asset': str(asset.pk),
            'severity': severity,
            'asset_condition': asset.condition,
            'description': description,
        },
        request=request,
    )
    notify_users(
        _asset_caretakers(asset),
        'Asset damage reported',
        f'{reporter.name} reported {severity.lower()} damage on {asset.model.name} ({asset.qr_token}).',
        link=MAINTENANCE_LINK,
        type=Notification.TYPE_WARNING,
    )
    logger.info("Damage reported on asset %s (%s) by %s", asset.qr_token, severity, reporter.pk)
    return maintenance


@transaction.atomic
def update_maintenance_status(maintenance_id, actor, status, repair_cost=None, request=None):
    """
    Move a maintenance record forward: REPORTED -> IN_PROGRESS -> COMPLETED or
    IRREPARABLE. Closing it stamps the end of the downtime.
    """
    try:
        maintenance = AssetMaintenance.objects.select_for_update().get(pk=maintenance_id)
    except (AssetMaintenance.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError('Maintenance record not found.')
    asset = FixedAsset.objects.select_for_update().select_related('model', 'room').get(pk=maintenance.asset_id)
    _ensure_asset_scope(actor, asset)

    if status not in STATUS_TRANSITIONS.get(maintenance.status, set()):
        raise InvalidTransition(
            f'Cannot move a maintenance record from {maintenance.status} to {status}.',
            {'status': maintenance.status, 'target': status},
        )
    cost = _to_repair_cost(repair_cost)

    old_values = {'status': maintenance.status, 'asset_condition': asset.condition}
    maintenance.status = status
    update_fields = ['status', 'updated_at']
    if cost is not None:
        maintenance.repair_cost = cost
        update_fields.append('repair_cost')
    if maintenance.is_closed:
        maintenance.downtime_end = timezone.now()
        update_fields.append('downtime_end')
    maintenance.save(update_fields=update_fields)

    asset.condition = STATUS_CONDITIONS[status]
    asset.save(update_fields=['condition', 'updated_at'])

    log_user_action(
        actor, 'UPDATE_MAINTENANCE', AssetMaintenance._meta.db_table, maintenance.pk,
        old_values=old_values,
        new_values={
            'status': status,
            'asset_condition': asset.condition,
            'repair_cost': str(maintenance.repair_cost) if maintenance.repair_cost is not None else None,
        },
        request=request,
    )
    notify_users(
        [maintenance.reporter],
        'Maintenance updated',
        f'The damage report on {asset.model.name} ({asset.qr_token}) is now {maintenance.get_status_display()}.',
        link=MAINTENANCE_LINK,
        type=Notification.TYPE_SUCCESS if status == AssetMaintenance.STATUS_COMPLETED else Notification.TYPE_INFO,
    )
    return maintenance
