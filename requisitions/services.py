"""
Request and procurement workflow services

Every status change is resolved through ``requisitions.workflow.transition``
and recorded as one timeline row, one audit log row and the notifications the
step calls for. Stock side effects (FEFO allocation at faculty approval,
delivery to the room at pickup, goods receipt into the warehouse) happen in
the same transaction as the status change.

Asset requests share the request machine but stop at APPROVED: the approved
units are then shipped through an asset distribution. Usage reports take
consumed quantities out of the room stock and put them back when the report
is revised or deleted.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from accounts.models import Notification
from accounts.utils import log_user_action, notify_users, snapshot, users_with_role
from inventory.exceptions import (
    ConsistencyError,
    InvalidStateError,
    NotFoundError,
    RoleNotAllowed,
    ValidationFailed,
)
from inventory.models import AssetModel, Consumable, Room, RoomConsumable, Warehouse, WarehouseStock

from . import workflow
from .models import (
    Procurement,
    ProcurementItem,
    ProcurementTimeline,
    Request,
    RequestAssetItem,
    RequestItem,
    RequestItemAllocation,
    RequestTimeline,
    UsageDetail,
    UsageReport,
)

logger = logging.getLogger(__name__)

User = get_user_model()

REQUEST_LINK = '/dashboard/consumable-requests/{id}'
PROCUREMENT_LINK = '/dashboard/procurements/{id}'
ASSET_REQUEST_LINK = '/dashboard/asset-requests/{id}'
EMPTY_BATCH = '-'


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _lock(model, pk, label):
    try:
        return model.objects.select_for_update().get(pk=pk)
    except (model.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f'{label} not found.')


def _to_quantity(value, label='Quantity'):
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed(f'{label} must be a number.')
    if not quantity.is_finite() or quantity <= 0:
        raise ValidationFailed(f'{label} must be greater than 0.')
    return quantity


def _normalize_items(items):
    """
    Validate ``[{'consumable_id': ..., 'quantity': ...}, ...]`` line items.

    Returns ``[(consumable, quantity, item), ...]`` in input order.
    """
    items = list(items or [])
    if not items:
        raise ValidationFailed('At least one item is required.')

    seen = set()
    for item in items:
        key = str(item.get('consumable_id') or '')
        if not key:
            raise ValidationFailed('Every item needs a consumable.')
        if key in seen:
            raise ValidationFailed('Each consumable can only be listed once.', {'consumable_id': key})
        seen.add(key)

    try:
        consumables = {str(c.pk): c for c in Consumable.objects.filter(pk__in=seen)}
    except (DjangoValidationError, ValueError):
        raise ValidationFailed('One or more consumables are invalid.')
    missing = sorted(seen - set(consumables))
    if missing:
        raise ValidationFailed('One or more consumables were not found.', {'consumable_ids': missing})

    lines = []
    for item in items:
        consumable = consumables[str(item['consumable_id'])]
        quantity = _to_quantity(item.get('quantity'), f'Quantity of "{consumable.name}"')
        lines.append((consumable, quantity, item))
    return lines


def _unit_admins(unit_id):
    return users_with_role(User.ROLE_UNIT_ADMIN, unit_id=unit_id)


def _faculty_admins(faculty_id=None):
    admins = users_with_role(User.ROLE_FACULTY_ADMIN)
    if faculty_id:
        admins = admins.filter(faculty_id=faculty_id)
    return admins


def _warehouse_staff(warehouse_id):
    return users_with_role(User.ROLE_WAREHOUSE_STAFF, warehouse_id=warehouse_id)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def _request_faculty_id(request_obj):
    room = request_obj.room
    if room.unit_id:
        return room.unit.faculty_id
    return room.building.faculty_id


def _ensure_request_scope(actor, request_obj):
    """Actors may only act on requests inside their own unit, faculty or warehouse."""
    if actor.is_super_admin:
        return
    role = actor.role
    if role == User.ROLE_UNIT_STAFF and request_obj.requester_id != actor.pk:
        raise RoleNotAllowed('You can only manage your own requests.')
    if role == User.ROLE_UNIT_ADMIN and request_obj.room.unit_id != actor.unit_id:
        raise RoleNotAllowed('This request belongs to another unit.')
    if role == User.ROLE_FACULTY_ADMIN and _request_faculty_id(request_obj) != actor.faculty_id:
        raise RoleNotAllowed('This request belongs to another faculty.')
    if role == User.ROLE_WAREHOUSE_STAFF and request_obj.target_warehouse_id != actor.warehouse_id:
        raise RoleNotAllowed('This request is addressed to another warehouse.')


def _apply_request_action(request_obj, action, actor, notes=None, **changes):
    """Resolve the transition, persist the new status and append the timeline row."""
    new_status = workflow.transition(workflow.REQUEST_MACHINE, request_obj.status, action, actor.role)
    old_status = request_obj.status

    request_obj.status = new_status
    for field, value in changes.items():
        setattr(request_obj, field, value)
    request_obj.save(update_fields=['status', 'updated_at', *changes.keys()])

    RequestTimeline.objects.create(request=request_obj, status=new_status, actor=actor, notes=notes)
    return old_status


def _check_stock_estimate(warehouse, lines):
    for consumable, quantity, _ in lines:
        available = WarehouseStock.objects.filter(
            warehouse=warehouse, consumable=consumable
        ).aggregate(total=Sum('quantity'))['total'] or Decimal('0')
        if available < quantity:
            raise ValidationFailed(
                f'Not enough stock for "{consumable.name}". Available: {available}, requested: {quantity}.',
                {'consumable_id': str(consumable.pk), 'available': str(available)},
            )


def _load_requester_room(requester, room_id):
    try:
        return Room.objects.select_related('unit').get(pk=room_id, unit_id=requester.unit_id)
    except (Room.DoesNotExist, DjangoValidationError, ValueError):
        raise ValidationFailed('The selected room does not belong to your unit.')


def _load_request_target(requester, room_id, target_warehouse_id):
    room = _load_requester_room(requester, room_id)
    try:
        warehouse = Warehouse.objects.get(pk=target_warehouse_id)
    except (Warehouse.DoesNotExist, DjangoValidationError, ValueError):
        raise ValidationFailed('Target warehouse not found.')
    return room, warehouse


def _request_items_snapshot(lines):
    return [
        {'consumable': str(consumable.pk), 'quantity': str(quantity)}
        for consumable, quantity, _ in lines
    ]


@transaction.atomic
def create_request(requester, room_id, target_warehouse_id, items, description=None, request=None):
    """
    Submit a consumable request.

    Unit staff requests start at PENDING_UNIT; a unit admin's own request
    skips unit approval and starts at PENDING_FACULTY.
    """
    initial_status = workflow.transition(workflow.REQUEST_MACHINE, workflow.NEW, workflow.SUBMIT, requester.role)
    if not requester.unit_id:
        raise ValidationFailed('Your account is not linked to a unit.')

    lines = _normalize_items(items)
    room, warehouse = _load_request_target(requester, room_id, target_warehouse_id)
    _check_stock_estimate(warehouse, lines)

    unit_approved = initial_status == Request.STATUS_PENDING_FACULTY
    request_obj = Request.objects.create(
        requester=requester,
        room=room,
        target_warehouse=warehouse,
        status=initial_status,
        description=description or None,
        approved_by_unit=requester if unit_approved else None,
    )
    RequestItem.objects.bulk_create([
        RequestItem(request=request_obj, consumable=consumable, qty_requested=quantity, qty_approved=quantity)
        for consumable, quantity, _ in lines
    ])
    RequestTimeline.objects.create(
        request=request_obj, status=initial_status, actor=requester, notes='Request submitted.'
    )
    log_user_action(
        requester, 'CREATE', Request._meta.db_table, request_obj.pk,
        new_values={
            'request_code': request_obj.request_code,
            'status': initial_status,
            'items': _request_items_snapshot(lines),
        },
        request=request,
    )
    _notify_submission(request_obj, requester)

    logger.info("Request %s submitted by %s (%s)", request_obj.request_code, requester.pk, initial_status)
    return request_obj


def _request_link(request_obj):
    template = ASSET_REQUEST_LINK if request_obj.is_asset_request else REQUEST_LINK
    return template.format(id=request_obj.pk)


def _notify_submission(request_obj, requester):
    """Tell the next approver: the faculty for a unit admin's own request, otherwise the unit."""
    link = _request_link(request_obj)
    if request_obj.status == Request.STATUS_PENDING_FACULTY:
        room = request_obj.room
        notify_users(
            _faculty_admins(room.unit.faculty_id if room.unit else None),
            'New request awaiting faculty approval',
            f'Unit admin {requester.name} submitted request {request_obj.request_code}.',
            link=link,
        )
    else:
        notify_users(
            _unit_admins(requester.unit_id),
            'New request awaiting unit approval',
            f'{requester.name} submitted request {request_obj.request_code}.',
            link=link,
        )


def _ensure_consumable_request(request_obj):
    if request_obj.is_asset_request:
        raise InvalidStateError(
            f'{request_obj.request_code} is an asset request. Approved asset requests are fulfilled '
            'through asset distribution, not warehouse pickup.'
        )


@transaction.atomic
def update_request(request_id, actor, room_id, target_warehouse_id, items, description=None, request=None):
    """Revise a request that is still waiting for unit approval."""
    request_obj = _lock(Request, request_id, 'Request')
    if request_obj.requester_id != actor.pk:
        raise RoleNotAllowed('Only the requester can edit this request.')
    _ensure_consumable_request(request_obj)

    lines = _normalize_items(items)
    room, warehouse = _load_request_target(actor, room_id, target_warehouse_id)
    _check_stock_estimate(warehouse, lines)

    old_values = {
        'room': str(request_obj.room_id),
        'target_warehouse': str(request_obj.target_warehouse_id),
        'description': request_obj.description,
        'items': [
            {'consumable': str(item.consumable_id), 'quantity': str(item.qty_requested)}
            for item in request_obj.items.all()
        ],
    }
    _apply_request_action(
        request_obj, workflow.REVISE, actor, notes='Request revised.',
        room=room, target_warehouse=warehouse, description=description or None,
    )
    request_obj.items.all().delete()
    RequestItem.objects.bulk_create([
        RequestItem(request=request_obj, consumable=consumable, qty_requested=quantity, qty_approved=quantity)
        for consumable, quantity, _ in lines
    ])

    log_user_action(
        actor, 'UPDATE', Request._meta.db_table, request_obj.pk,
        old_values=old_values,
        new_values={
            'room': str(room.pk),
            'target_warehouse': str(warehouse.pk),
            'description': request_obj.description,
            'items': _request_items_snapshot(lines),
        },
        request=request,
    )
    notify_users(
        _unit_admins(room.unit_id),
        'Request revised',
        f'{actor.name} revised request {request_obj.request_code}.',
        link=REQUEST_LINK.format(id=request_obj.pk),
    )
    return request_obj


@transaction.atomic
def cancel_request(request_id, actor, request=None):
    request_obj = _lock(Request, request_id, 'Request')
    if request_obj.requester_id != actor.pk:
        raise RoleNotAllowed('Only the requester can cancel this request.')

    old_status = _apply_request_action(request_obj, workflow.CANCEL, actor, notes='Canceled by requester.')
    log_user_action(
        actor, 'CANCEL', Request._meta.db_table, request_obj.pk,
        old_values={'status': old_status}, new_values={'status': request_obj.status},
        request=request,
    )
    return request_obj


def allocate_stock_fefo(request_obj):
    """
    Reserve warehouse batches for every item, earliest expiry first.

    Batches that are fully taken are removed. Any item without enough
    stock fails the whole allocation.
    """
    allocations = []
    for item in request_obj.items.select_related('consumable'):
        needed = item.qty_needed
        stocks = list(
            WarehouseStock.objects.select_for_update()
            .filter(warehouse_id=request_obj.target_warehouse_id, consumable_id=item.consumable_id, quantity__gt=0)
            .order_by(F('expiry_date').asc(nulls_last=True), 'updated_at')
        )
        available = sum((stock.quantity for stock in stocks), Decimal('0'))
        if available < needed:
            raise ValidationFailed(
                f'Insufficient stock for "{item.consumable.name}". Needed: {needed}, available: {available}.',
                {'consumable_id': str(item.consumable_id), 'available': str(available)},
            )

        remaining = needed
        for stock in stocks:
            if remaining <= 0:
                break
            take = min(stock.quantity, remaining)
            allocations.append(RequestItemAllocation.objects.create(
                request_item=item,
                warehouse_id=stock.warehouse_id,
                consumable_id=stock.consumable_id,
                batch_number=stock.batch_number,
                expiry_date=stock.expiry_date,
                quantity=take,
            ))
            if take == stock.quantity:
                stock.delete()
            else:
                stock.quantity -= take
                stock.save(update_fields=['quantity', 'updated_at'])
            remaining -= take
    return allocations


def release_allocations(request_obj):
    """Return every reserved batch of a request to its warehouse."""
    allocations = list(RequestItemAllocation.objects.filter(request_item__request=request_obj))
    for allocation in allocations:
        stock, created = WarehouseStock.objects.select_for_update().get_or_create(
            warehouse_id=allocation.warehouse_id,
            consumable_id=allocation.consumable_id,
            batch_number=allocation.batch_number,
            defaults={'quantity': allocation.quantity, 'expiry_date': allocation.expiry_date},
        )
        if not created:
            WarehouseStock.objects.filter(pk=stock.pk).update(quantity=F('quantity') + allocation.quantity)
    RequestItemAllocation.objects.filter(pk__in=[a.pk for a in allocations]).delete()
    return allocations


def deliver_to_room(request_obj):
    """Move a request's allocations into the room stock, merged per batch and expiry."""
    allocations = list(RequestItemAllocation.objects.filter(request_item__request=request_obj))
    if not allocations:
        raise ConsistencyError('Stock allocation for this request is missing. Please contact an administrator.')

    for allocation in allocations:
        room_stock = RoomConsumable.objects.select_for_update().filter(
            room_id=request_obj.room_id,
            consumable_id=allocation.consumable_id,
            batch_number=allocation.batch_number,
            expiry_date=allocation.expiry_date,
        ).first()
        if room_stock:
            RoomConsumable.objects.filter(pk=room_stock.pk).update(quantity=F('quantity') + allocation.quantity)
        else:
            RoomConsumable.objects.create(
                room_id=request_obj.room_id,
                consumable_id=allocation.consumable_id,
                batch_number=allocation.batch_number,
                expiry_date=allocation.expiry_date,
                quantity=allocation.quantity,
            )
    return allocations


@transaction.atomic
def approve_request(request_id, actor, notes=None, request=None):
    """
    Unit approval (PENDING_UNIT) or faculty approval (PENDING_FACULTY).

    Faculty approval allocates stock from the target warehouse.
    """
    request_obj = _lock(Request, request_id, 'Request')
    _ensure_request_scope(actor, request_obj)
    link = _request_link(request_obj)

    if request_obj.status == Request.STATUS_PENDING_UNIT:
        old_status = _apply_request_action(
            request_obj, workflow.APPROVE_UNIT, actor,
            notes=notes or 'Approved by unit. Waiting for faculty approval.',
            approved_by_unit=actor,
        )
        notify_users(
            [request_obj.requester],
            'Approved by unit',
            f'Request {request_obj.request_code} was approved by your unit and is waiting for faculty approval.',
            link=link,
            type=Notification.TYPE_SUCCESS,
        )
        notify_users(
            _faculty_admins(_request_faculty_id(request_obj)),
            'Approval required',
            f'Request {request_obj.request_code} was approved by its unit and needs faculty verification.',
            link=link,
        )
    elif request_obj.is_asset_request:
        old_status = _apply_request_action(
            request_obj, workflow.APPROVE_FACULTY, actor,
            notes=notes or 'Approved by faculty. Waiting for asset distribution.',
            approved_by_faculty=actor,
        )
        notify_users(
            [request_obj.requester],
            'Asset request approved',
            f'Asset request {request_obj.request_code} was approved by the faculty. '
            'The assets will be shipped to your room through an asset distribution.',
            link=link,
            type=Notification.TYPE_SUCCESS,
        )
        notify_users(
            users_with_role(User.ROLE_SUPER_ADMIN),
            'Asset request ready for distribution',
            f'Asset request {request_obj.request_code} was approved by the faculty.',
            link=link,
        )
    else:
        old_status = request_obj.status
        workflow.transition(workflow.REQUEST_MACHINE, old_status, workflow.APPROVE_FACULTY, actor.role)
        allocate_stock_fefo(request_obj)
        _apply_request_action(
            request_obj, workflow.APPROVE_FACULTY, actor,
            notes=notes or 'Approved by faculty. Stock allocated.',
            approved_by_faculty=actor,
        )
        notify_users(
            [request_obj.requester],
            'Request approved',
            f'Request {request_obj.request_code} was approved. Stock has been allocated and forwarded to the warehouse.',
            link=link,
            type=Notification.TYPE_SUCCESS,
        )
        notify_users(
            _warehouse_staff(request_obj.target_warehouse_id),
            'Request ready for preparation',
            f'Request {request_obj.request_code} was approved by the faculty. Please prepare the items.',
            link=link,
        )

    log_user_action(
        actor, 'APPROVE', Request._meta.db_table, request_obj.pk,
        old_values={'status': old_status},
        new_values={'status': request_obj.status, 'approved_by': str(actor.pk)},
        request=request,
    )
    logger.info("Request %s approved by %s: %s -> %s", request_obj.request_code, actor.pk, old_status, request_obj.status)
    return request_obj


@transaction.atomic
def reject_request(request_id, actor, reason, request=None):
    reason = (reason or '').strip()
    if not reason:
        raise ValidationFailed('A rejection reason is required.')

    request_obj = _lock(Request, request_id, 'Request')
    _ensure_request_scope(actor, request_obj)

    old_status = _apply_request_action(
        request_obj, workflow.REJECT, actor, notes=f'Rejected: {reason}', rejection_reason=reason,
    )
    if old_status in (Request.STATUS_APPROVED, Request.STATUS_PROCESSING, Request.STATUS_READY_TO_PICKUP):
        release_allocations(request_obj)

    log_user_action(
        actor, 'REJECT', Request._meta.db_table, request_obj.pk,
        old_values={'status': old_status},
        new_values={'status': request_obj.status, 'rejection_reason': reason},
        request=request,
    )
    notify_users(
        [request_obj.requester],
        'Request rejected',
        f'Request {request_obj.request_code} was rejected. Reason: {reason}',
        link=_request_link(request_obj),
        type=Notification.TYPE_ERROR,
    )
    return request_obj


def _warehouse_step(request_id, actor, action, notes, title, message, request=None):
    request_obj = _lock(Request, request_id, 'Request')
    _ensure_consumable_request(request_obj)
    _ensure_request_scope(actor, request_obj)

    old_status = _apply_request_action(request_obj, action, actor, notes=notes)
    log_user_action(
        actor, 'UPDATE_STATUS', Request._meta.db_table, request_obj.pk,
        old_values={'status': old_status}, new_values={'status': request_obj.status},
        request=request,
    )
    notify_users(
        [request_obj.requester],
        title,
        message.format(code=request_obj.request_code),
        link=REQUEST_LINK.format(id=request_obj.pk),
    )
    return request_obj


@transaction.atomic
def process_request(request_id, actor, request=None):
    return _warehouse_step(
        request_id, actor, workflow.PROCESS,
        notes='Items are being prepared.',
        title='Items being prepared',
        message='The warehouse is preparing the items of request {code}.',
        request=request,
    )


@transaction.atomic
def mark_request_ready(request_id, actor, request=None):
    return _warehouse_step(
        request_id, actor, workflow.MARK_READY,
        notes='Ready for pickup.',
        title='Items ready for pickup',
        message='The items of request {code} are ready. Bring the request QR code to the warehouse.',
        request=request,
    )


@transaction.atomic
def complete_request(request_id, actor, request=None):
    """Hand the items over (pickup scan) and add them to the room stock."""
    request_obj = _lock(Request, request_id, 'Request')
    _ensure_consumable_request(request_obj)
    _ensure_request_scope(actor, request_obj)

    if request_obj.status == Request.STATUS_COMPLETED:
        raise InvalidStateError(f'Request {request_obj.request_code} has already been picked up.')
    workflow.transition(workflow.REQUEST_MACHINE, request_obj.status, workflow.COMPLETE, actor.role)

    allocations = deliver_to_room(request_obj)
    _apply_request_action(
        request_obj, workflow.COMPLETE, actor, notes=f'Items handed over via QR scan by {actor.name}.',
    )
    log_user_action(
        actor, 'COMPLETE', Request._meta.db_table, request_obj.pk,
        old_values={'status': Request.STATUS_READY_TO_PICKUP},
        new_values={'status': request_obj.status, 'allocations_delivered': len(allocations)},
        request=request,
    )
    notify_users(
        [request_obj.requester],
        'Request completed',
        f'Request {request_obj.request_code} is complete. The items were added to the room stock.',
        link=REQUEST_LINK.format(id=request_obj.pk),
        type=Notification.TYPE_SUCCESS,
    )
    return request_obj


# ---------------------------------------------------------------------------
# Asset requests
# ---------------------------------------------------------------------------

def _to_unit_count(value, label):
    quantity = _to_quantity(value, label)
    if quantity != quantity.to_integral_value():
        raise ValidationFailed(f'{label} must be a whole number.')
    return int(quantity)


def _normalize_asset_items(items):
    """Validate ``[{'model_id': ..., 'quantity': ...}, ...]`` into ``[(asset_model, units), ...]``."""
    items = list(items or [])
    if not items:
        raise ValidationFailed('At least one asset model is required.')

    seen = set()
    for item in items:
        key = str(item.get('model_id') or '')
        if not key:
            raise ValidationFailed('Every item needs an asset model.')
        if key in seen:
            raise ValidationFailed('Each asset model can only be listed once.', {'model_id': key})
        seen.add(key)

    try:
        asset_models = {str(m.pk): m for m in AssetModel.objects.filter(pk__in=seen)}
    except (DjangoValidationError, ValueError):
        raise ValidationFailed('One or more asset models are invalid.')
    missing = sorted(seen - set(asset_models))
    if missing:
        raise ValidationFailed('One or more asset models were not found.', {'model_ids': missing})

    lines = []
    for item in items:
        asset_model = asset_models[str(item['model_id'])]
        lines.append((asset_model, _to_unit_count(item.get('quantity'), f'Quantity of "{asset_model.name}"')))
    return lines


@transaction.atomic
def create_asset_request(requester, room_id, items, description=None, request=None):
    """
    Submit a request for fixed assets (e.g. new microscopes for a lab).

    Follows the same unit and faculty approvals as a consumable request. No
    stock is reserved: once APPROVED the units are shipped with an asset
    distribution.
    """
    initial_status = workflow.transition(workflow.REQUEST_MACHINE, workflow.NEW, workflow.SUBMIT, requester.role)
    if not requester.unit_id:
        raise ValidationFailed('Your account is not linked to a unit.')

    lines = _normalize_asset_items(items)
    room = _load_requester_room(requester, room_id)

    request_obj = Request.objects.create(
        requester=requester,
        room=room,
        request_type=Request.TYPE_ASSET,
        status=initial_status,
        description=description or None,
        approved_by_unit=requester if initial_status == Request.STATUS_PENDING_FACULTY else None,
    )
    RequestAssetItem.objects.bulk_create([
        RequestAssetItem(request=request_obj, asset_model=asset_model, qty_requested=units, qty_approved=units)
        for asset_model, units in lines
    ])
    RequestTimeline.objects.create(
        request=request_obj, status=initial_status, actor=requester, notes='Asset request submitted.'
    )
    log_user_action(
        requester, 'CREATE', Request._meta.db_table, request_obj.pk,
        new_values={
            'request_code': request_obj.request_code,
            'request_type': Request.TYPE_ASSET,
            'status': initial_status,
            'items': [{'asset_model': str(m.pk), 'quantity': units} for m, units in lines],
        },
        request=request,
    )
    _notify_submission(request_obj, requester)

    logger.info("Asset request %s submitted by %s (%s)", request_obj.request_code, requester.pk, initial_status)
    return request_obj


# ---------------------------------------------------------------------------
# Room usage reports
# ---------------------------------------------------------------------------

USAGE_REPORTER_ROLES = (User.ROLE_UNIT_STAFF, User.ROLE_UNIT_ADMIN)


def _validate_activity_name(activity_name):
    activity_name = (activity_name or '').strip()
    if len(activity_name) < 3:
        raise ValidationFailed('An activity name of at least 3 characters is required.')
    return activity_name


def _load_usage_room(actor, room_id=None):
    """The given room of the actor's unit, or the unit's first room when none is given."""
    if not actor.unit_id:
        raise ValidationFailed('Your account is not linked to a unit.')
    if room_id:
        return _load_requester_room(actor, room_id)
    room = Room.objects.filter(unit_id=actor.unit_id).order_by('name').first()
    if room is None:
        raise ValidationFailed('Your unit has no registered room yet.')
    return room


def _ensure_usage_scope(actor, report):
    if actor.is_super_admin or report.user_id == actor.pk:
        return
    if actor.role == User.ROLE_UNIT_ADMIN and report.room.unit_id == actor.unit_id:
        return
    raise RoleNotAllowed('You can only manage usage reports of your own unit.')


def _consume_room_stock(report, lines):
    """
    Take the used quantities out of the room, earliest expiry first.

    One detail row is written per batch touched; exhausted batches are
    removed from the room.
    """
    details = []
    for consumable, quantity, _ in lines:
        stocks = list(
            RoomConsumable.objects.select_for_update()
            .filter(room_id=report.room_id, consumable=consumable, quantity__gt=0)
            .order_by(F('expiry_date').asc(nulls_last=True), 'created_at')
        )
        available = sum((stock.quantity for stock in stocks), Decimal('0'))
        if available < quantity:
            raise ValidationFailed(
                f'Not enough "{consumable.name}" in {report.room.name}. Available: {available}, used: {quantity}.',
                {'consumable_id': str(consumable.pk), 'available': str(available)},
            )

        remaining = quantity
        for stock in stocks:
            if remaining <= 0:
                break
            take = min(stock.quantity, remaining)
            details.append(UsageDetail(
                report=report,
                consumable=consumable,
                batch_number=stock.batch_number,
                expiry_date=stock.expiry_date,
                qty_used=take,
            ))
            if take == stock.quantity:
                stock.delete()
            else:
                stock.quantity -= take
                stock.save(update_fields=['quantity', 'updated_at'])
            remaining -= take
    return UsageDetail.objects.bulk_create(details)


def _restore_room_stock(report):
    """Put every quantity of a report back into its room batch and drop the details."""
    details = list(report.details.all())
    for detail in details:
        room_stock = RoomConsumable.objects.select_for_update().filter(
            room_id=report.room_id,
            consumable_id=detail.consumable_id,
            batch_number=detail.batch_number,
            expiry_date=detail.expiry_date,
        ).first()
        if room_stock:
            RoomConsumable.objects.filter(pk=room_stock.pk).update(quantity=F('quantity') + detail.qty_used)
        else:
            RoomConsumable.objects.create(
                room_id=report.room_id,
                consumable_id=detail.consumable_id,
                batch_number=detail.batch_number,
                expiry_date=detail.expiry_date,
                quantity=detail.qty_used,
            )
    report.details.all().delete()
    return details


def _usage_snapshot(report, details):
    return {
        'activity_name': report.activity_name,
        'room': str(report.room_id),
        'items': [
            {
                'consumable': str(detail.consumable_id),
                'batch_number': detail.batch_number,
                'quantity': str(detail.qty_used),
            }
            for detail in details
        ],
    }


@transaction.atomic
def create_usage_report(actor, activity_name, items, room_id=None, activity_date=None, request=None):
    """Report consumables used in a room; the room stock is reduced immediately."""
    if actor.role not in USAGE_REPORTER_ROLES:
        raise RoleNotAllowed('Only unit staff and unit admins can report room usage.')
    activity_name = _validate_activity_name(activity_name)
    lines = _normalize_items(items)
    room = _load_usage_room(actor, room_id)

    report = UsageReport.objects.create(
        user=actor,
        room=room,
        activity_name=activity_name,
        activity_date=activity_date or timezone.now(),
    )
    details = _consume_room_stock(report, lines)
    log_user_action(
        actor, 'CREATE_USAGE_REPORT', UsageReport._meta.db_table, report.pk,
        new_values=_usage_snapshot(report, details),
        request=request,
    )
    logger.info("Usage report %s for room %s: %d batch line(s)", report.pk, room.pk, len(details))
    return report


@transaction.atomic
def update_usage_report(report_id, actor, activity_name, items, activity_date=None, request=None):
    """Replace the items of a report: old quantities go back to the room before the new ones are taken."""
    report = _lock(UsageReport, report_id, 'Usage report')
    _ensure_usage_scope(actor, report)
    activity_name = _validate_activity_name(activity_name)
    lines = _normalize_items(items)

    old_values = _usage_snapshot(report, report.details.all())
    _restore_room_stock(report)

    report.activity_name = activity_name
    update_fields = ['activity_name', 'updated_at']
    if activity_date:
        report.activity_date = activity_date
        update_fields.append('activity_date')
    report.save(update_fields=update_fields)

    details = _consume_room_stock(report, lines)
    log_user_action(
        actor, 'UPDATE_USAGE_REPORT', UsageReport._meta.db_table, report.pk,
        old_values=old_values,
        new_values=_usage_snapshot(report, details),
        request=request,
    )
    return report


@transaction.atomic
def delete_usage_report(report_id, actor, request=None):
    """Delete a report and return its quantities to the room stock."""
    report = _lock(UsageReport, report_id, 'Usage report')
    _ensure_usage_scope(actor, report)

    details = _restore_room_stock(report)
    old_values = _usage_snapshot(report, details)
    report_pk = report.pk
    report.delete()

    log_user_action(
        actor, 'DELETE_USAGE_REPORT', UsageReport._meta.db_table, report_pk,
        old_values=old_values,
        request=request,
    )
    logger.info("Usage report %s deleted by %s; %d batch line(s) restored", report_pk, actor.pk, len(details))


# ---------------------------------------------------------------------------
# Procurements
# ---------------------------------------------------------------------------

def _apply_procurement_action(procurement, action, actor, note=None, **changes):
    new_status = workflow.transition(workflow.PROCUREMENT_MACHINE, procurement.status, action, actor.role)
    old_status = procurement.status

    procurement.status = new_status
    for field, value in changes.items():
        setattr(procurement, field, value)
    procurement.save(update_fields=['status', 'updated_at', *changes.keys()])

    ProcurementTimeline.objects.create(procurement=procurement, status=new_status, actor=actor, notes=note)
    return old_status


def _validate_description(description):
    description = (description or '').strip()
    if len(description) < 3:
        raise ValidationFailed('A procurement description of at least 3 characters is required.')
    return description


def _build_procurement_items(procurement, lines):
    return ProcurementItem.objects.bulk_create([
        ProcurementItem(
            procurement=procurement,
            consumable=consumable,
            warehouse_id=procurement.warehouse_id,
            quantity=quantity,
            price_per_unit=item.get('price_per_unit'),
            notes=item.get('notes') or None,
        )
        for consumable, quantity, item in lines
    ])


def _procurement_faculty_admins(procurement):
    faculty_id = procurement.warehouse.faculty_id if procurement.warehouse_id else None
    return _faculty_admins(faculty_id)


@transaction.atomic
def create_procurement(actor, description, items, supplier=None, request=None):
    initial_status = workflow.transition(
        workflow.PROCUREMENT_MACHINE, workflow.NEW, workflow.SUBMIT, actor.role
    )
    if not actor.warehouse_id:
        raise ValidationFailed('Your account is not assigned to a warehouse.')
    description = _validate_description(description)
    lines = _normalize_items(items)

    procurement = Procurement.objects.create(
        user=actor,
        warehouse_id=actor.warehouse_id,
        status=initial_status,
        description=description,
        supplier=supplier or None,
    )
    _build_procurement_items(procurement, lines)
    ProcurementTimeline.objects.create(
        procurement=procurement, status=initial_status, actor=actor, notes='Procurement submitted.'
    )
    log_user_action(
        actor, 'CREATE', Procurement._meta.db_table, procurement.pk,
        new_values={
            'procurement_code': procurement.procurement_code,
            'description': description,
            'items': _request_items_snapshot(lines),
        },
        request=request,
    )
    notify_users(
        _procurement_faculty_admins(procurement),
        'New procurement request',
        f'Warehouse staff {actor.name} submitted procurement {procurement.procurement_code}. Waiting for approval.',
        link=PROCUREMENT_LINK.format(id=procurement.pk),
    )
    logger.info("Procurement %s submitted by %s", procurement.procurement_code, actor.pk)
    return procurement


@transaction.atomic
def update_procurement(procurement_id, actor, description, items, supplier=None, request=None):
    procurement = _lock(Procurement, procurement_id, 'Procurement')
    if procurement.user_id != actor.pk:
        raise RoleNotAllowed('Only the creator can edit this procurement.')
    description = _validate_description(description)
    lines = _normalize_items(items)

    old_values = snapshot(procurement, fields=['description', 'supplier', 'status'])
    old_values['items'] = [
        {'consumable': str(item.consumable_id), 'quantity': str(item.quantity)}
        for item in procurement.items.all()
    ]
    _apply_procurement_action(
        procurement, workflow.REVISE, actor, note='Procurement revised.',
        description=description, supplier=supplier or None,
    )
    procurement.items.all().delete()
    _build_procurement_items(procurement, lines)

    log_user_action(
        actor, 'UPDATE', Procurement._meta.db_table, procurement.pk,
        old_values=old_values,
        new_values={'description': description, 'items': _request_items_snapshot(lines)},
        request=request,
    )
    notify_users(
        _procurement_faculty_admins(procurement),
        'Procurement revised',
        f'Procurement {procurement.procurement_code} was revised by warehouse staff.',
        link=PROCUREMENT_LINK.format(id=procurement.pk),
    )
    return procurement


@transaction.atomic
def approve_procurement(procurement_id, actor, notes=None, request=None):
    procurement = _lock(Procurement, procurement_id, 'Procurement')
    old_status = _apply_procurement_action(
        procurement, workflow.APPROVE, actor, note=notes or 'Approved.',
    )
    log_user_action(
        actor, 'APPROVE', Procurement._meta.db_table, procurement.pk,
        old_values={'status': old_status}, new_values={'status': procurement.status},
        request=request,
    )
    notify_users(
        [procurement.user],
        'Procurement approved',
        f'Procurement {procurement.procurement_code} was approved. Record the goods receipt once the items arrive.',
        link=PROCUREMENT_LINK.format(id=procurement.pk),
        type=Notification.TYPE_SUCCESS,
    )
    return procurement


@transaction.atomic
def reject_procurement(procurement_id, actor, reason, request=None):
    reason = (reason or '').strip()
    if not reason:
        raise ValidationFailed('A rejection reason is required.')

    procurement = _lock(Procurement, procurement_id, 'Procurement')
    old_status = _apply_procurement_action(
        procurement, workflow.REJECT, actor, note=f'Rejected: {reason}', notes=reason,
    )
    log_user_action(
        actor, 'REJECT', Procurement._meta.db_table, procurement.pk,
        old_values={'status': old_status}, new_values={'status': procurement.status, 'reason': reason},
        request=request,
    )
    notify_users(
        [procurement.user],
        'Procurement rejected',
        f'Procurement {procurement.procurement_code} was rejected. Reason: {reason}',
        link=PROCUREMENT_LINK.format(id=procurement.pk),
        type=Notification.TYPE_ERROR,
    )
    return procurement


@transaction.atomic
def delete_procurement(procurement_id, actor, request=None):
    """Remove a procurement that has not been decided yet."""
    procurement = _lock(Procurement, procurement_id, 'Procurement')
    if procurement.user_id != actor.pk and not actor.is_super_admin:
        raise RoleNotAllowed('Only the creator or a super admin can delete this procurement.')
    if procurement.status != Procurement.STATUS_PENDING:
        raise InvalidStateError(
            f'Only pending procurements can be deleted. Current status: {procurement.status}.',
            {'status': procurement.status},
        )

    old_values = snapshot(procurement, fields=['procurement_code', 'description', 'supplier', 'status'])
    procurement_pk = procurement.pk
    procurement.delete()
    log_user_action(actor, 'DELETE', Procurement._meta.db_table, procurement_pk, old_values=old_values, request=request)
    logger.info("Procurement %s deleted by %s", old_values['procurement_code'], actor.pk)


def _receipt_lines(procurement, items):
    items = list(items or [])
    if not items:
        raise ValidationFailed('At least one received item is required.')

    by_id = {str(item.pk): item for item in procurement.items.select_related('consumable')}
    lines = []
    seen = set()
    for entry in items:
        key = str(entry.get('item_id') or '')
        if key not in by_id:
            raise ValidationFailed('Item does not belong to this procurement.', {'item_id': key})
        if key in seen:
            raise ValidationFailed('Each item can only be received once.', {'item_id': key})
        seen.add(key)

        item = by_id[key]
        quantity = _to_quantity(entry.get('quantity'), f'Received quantity of "{item.consumable.name}"')
        batch_number = (entry.get('batch_number') or '').strip()
        expiry_date = entry.get('expiry_date')
        condition = entry.get('condition') or ProcurementItem.CONDITION_GOOD
        if condition not in dict(ProcurementItem.CONDITION_CHOICES):
            raise ValidationFailed(f'Unknown item condition "{condition}".')
        if item.consumable.has_expiry and (not expiry_date or not batch_number):
            raise ValidationFailed(
                f'"{item.consumable.name}" requires a batch number and an expiry date.',
                {'item_id': key},
            )
        lines.append((item, quantity, batch_number or EMPTY_BATCH, expiry_date, condition, entry.get('notes')))
    return lines


@transaction.atomic
def receive_procurement(procurement_id, actor, items, request=None):
    """
    Record the goods receipt of an approved procurement.

    Items received in GOOD condition are added to the warehouse stock,
    merged into an existing batch when one matches.
    """
    procurement = _lock(Procurement, procurement_id, 'Procurement')
    if procurement.user_id != actor.pk:
        raise RoleNotAllowed('Only the creator can record the receipt of this procurement.')
    warehouse_id = procurement.warehouse_id or actor.warehouse_id
    if not warehouse_id:
        raise ValidationFailed('Your account is not assigned to a warehouse.')
    workflow.transition(workflow.PROCUREMENT_MACHINE, procurement.status, workflow.RECEIVE, actor.role)

    lines = _receipt_lines(procurement, items)
    stocked = []
    for item, quantity, batch_number, expiry_date, condition, notes in lines:
        item.received_quantity = quantity
        item.batch_number = batch_number
        item.expiry_date = expiry_date
        item.condition = condition
        if notes:
            item.notes = notes
        item.save(update_fields=['received_quantity', 'batch_number', 'expiry_date', 'condition', 'notes'])

        if condition != ProcurementItem.CONDITION_GOOD:
            continue
        stock, created = WarehouseStock.objects.select_for_update().get_or_create(
            warehouse_id=warehouse_id,
            consumable_id=item.consumable_id,
            batch_number=batch_number,
            defaults={'quantity': quantity, 'expiry_date': expiry_date},
        )
        if not created:
            WarehouseStock.objects.filter(pk=stock.pk).update(quantity=F('quantity') + quantity)
        stocked.append({'consumable': str(item.consumable_id), 'batch_number': batch_number, 'quantity': str(quantity)})

    old_status = _apply_procurement_action(
        procurement, workflow.RECEIVE, actor, note=f'Goods received by {actor.name}.',
    )
    log_user_action(
        actor, 'INBOUND_RECEIPT', Procurement._meta.db_table, procurement.pk,
        old_values={'status': old_status},
        new_values={'status': procurement.status, 'stocked': stocked},
        request=request,
    )
    notify_users(
        _procurement_faculty_admins(procurement),
        'Goods received',
        f'The items of procurement {procurement.procurement_code} were received into the warehouse.',
        link=PROCUREMENT_LINK.format(id=procurement.pk),
        type=Notification.TYPE_SUCCESS,
    )
    logger.info("Procurement %s received, %d batch(es) stocked", procurement.procurement_code, len(stocked))
    return procurement
