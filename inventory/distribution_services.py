"""
Asset distribution services

Draft creation and re-allocation, execution (materializing one FixedAsset per
allocated unit) and the per-room receipt handshake. Every function raises an
``InventaError`` subclass for business-rule failures; callers at the API
boundary turn those into user-visible messages.
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, F
from django.utils import timezone

from accounts.models import Notification
from accounts.utils import log_user_action, notify_users

from .distribution_models import AssetDistribution, AssetDistributionTarget
from .exceptions import (
    AllocationError,
    ConsistencyError,
    InvalidStateError,
    InventaError,
    NotFoundError,
    RoleNotAllowed,
    ValidationFailed,
)
from .models import AssetModel, FixedAsset, Room, generate_qr_token

logger = logging.getLogger(__name__)

User = get_user_model()

SUMMARY_CACHE_KEY = 'inventory:distribution-summary'
MAX_TOKEN_ROUNDS = 10


# ---------------------------------------------------------------------------
# Allocation validator
# ---------------------------------------------------------------------------

def _is_integer(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _split_target(target):
    if isinstance(target, dict):
        room_id = target.get('room_id', target.get('target_room'))
        quantity = target.get('quantity', target.get('allocated_quantity'))
        return room_id, quantity
    room_id, quantity = target
    return room_id, quantity


def validate_allocations(total_quantity, targets):
    """
    Check a proposed per-room allocation against the distribution total.

    ``targets`` is a sequence of ``(room_id, quantity)`` pairs (or dicts with
    ``room_id``/``quantity`` keys). Returns the ``(room_id, quantity)`` pairs
    with a non-zero quantity. Raises ``AllocationError`` when the total is not
    a positive integer, the list is empty, a quantity is negative or not an
    integer, a room is listed twice, or the quantities do not add up to the
    total.
    """
    if not _is_integer(total_quantity) or total_quantity <= 0:
        raise AllocationError('Total quantity must be a positive whole number.')

    targets = list(targets or [])
    if not targets:
        raise AllocationError('At least one destination room is required.')

    seen = set()
    allocations = []
    allocated = 0
    for target in targets:
        room_id, quantity = _split_target(target)
        if not room_id:
            raise AllocationError('Every allocation needs a destination room.')
        if not _is_integer(quantity):
            raise AllocationError('Allocated quantities must be whole numbers.', {'room_id': str(room_id)})
        if quantity < 0:
            raise AllocationError('Allocated quantities cannot be negative.', {'room_id': str(room_id)})

        key = str(room_id)
        if key in seen:
            raise AllocationError('A room can only be allocated once per distribution.', {'room_id': key})
        seen.add(key)

        allocated += quantity
        if quantity > 0:
            allocations.append((room_id, quantity))

    if allocated != total_quantity:
        raise AllocationError(
            f'Allocated quantity ({allocated}) must equal the total quantity ({total_quantity}).',
            {'allocated': allocated, 'total_quantity': total_quantity},
        )

    return allocations


# ---------------------------------------------------------------------------
# Summary cache
# ---------------------------------------------------------------------------

def invalidate_summary_cache():
    cache.delete(SUMMARY_CACHE_KEY)


def get_distribution_summary():
    """Per-status distribution counts, cached until the next mutation."""
    summary = cache.get(SUMMARY_CACHE_KEY)
    if summary is not None:
        return summary

    counts = dict(
        AssetDistribution.objects.order_by()
        .values_list('status')
        .annotate(total=Count('id'))
    )
    summary = {status: counts.get(status, 0) for status, _ in AssetDistribution.STATUS_CHOICES}
    summary['total'] = sum(counts.values())
    cache.set(SUMMARY_CACHE_KEY, summary, settings.INVENTA_DISTRIBUTION_SUMMARY_TTL)
    return summary


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_for_update(model, pk, label):
    try:
        return model.objects.select_for_update().get(pk=pk)
    except (model.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f'{label} not found.')


def _load_asset_model(model_id):
    try:
        return AssetModel.objects.get(pk=model_id)
    except (AssetModel.DoesNotExist, DjangoValidationError, ValueError):
        raise ValidationFailed('Asset model not found.')


def _load_rooms(allocations):
    room_ids = [room_id for room_id, _ in allocations]
    try:
        rooms = Room.objects.in_bulk(room_ids)
    except (DjangoValidationError, ValueError):
        raise ValidationFailed('One or more destination rooms are invalid.')
    rooms = {str(pk): room for pk, room in rooms.items()}
    missing = [str(room_id) for room_id in room_ids if str(room_id) not in rooms]
    if missing:
        raise ValidationFailed('One or more destination rooms were not found.', {'room_ids': missing})
    return rooms


def _build_targets(distribution, allocations, rooms):
    return AssetDistributionTarget.objects.bulk_create([
        AssetDistributionTarget(
            distribution=distribution,
            target_room=rooms[str(room_id)],
            allocated_quantity=quantity,
            received_quantity=0,
        )
        for room_id, quantity in allocations
    ])


def _allocation_snapshot(distribution):
    return {
        'distribution_code': distribution.distribution_code,
        'model': str(distribution.model_id),
        'total_quantity': distribution.total_quantity,
        'status': distribution.status,
        'notes': distribution.notes,
        'targets': [
            {'room': str(t.target_room_id), 'allocated_quantity': t.allocated_quantity}
            for t in distribution.targets.all()
        ],
    }


# ---------------------------------------------------------------------------
# Draft store
# ---------------------------------------------------------------------------

def create_distribution_draft(actor, model_id, total_quantity, targets, notes=None, request=None):
    """
    Persist a DRAFT distribution and its per-room targets.

    The allocation is validated before anything is written; either the
    distribution and all of its targets are stored, or nothing is.
    """
    allocations = validate_allocations(total_quantity, targets)
    asset_model = _load_asset_model(model_id)
    rooms = _load_rooms(allocations)

    with transaction.atomic():
        distribution = AssetDistribution.objects.create(
            actor=actor,
            model=asset_model,
            total_quantity=total_quantity,
            notes=notes or None,
            status=AssetDistribution.STATUS_DRAFT,
        )
        _build_targets(distribution, allocations, rooms)

        log_user_action(
            actor, 'CREATE', AssetDistribution._meta.db_table, distribution.pk,
            new_values=_allocation_snapshot(distribution), request=request,
        )
        transaction.on_commit(invalidate_summary_cache)

    logger.info(
        "Distribution draft %s created by %s: %s x%s to %d room(s)",
        distribution.distribution_code, getattr(actor, 'pk', None),
        asset_model.name, total_quantity, len(allocations),
    )
    return distribution


@transaction.atomic
def update_distribution_draft(distribution_id, total_quantity, targets, notes=None, actor=None, request=None):
    """Replace the allocation of a DRAFT distribution after re-validating it."""
    distribution = _get_for_update(AssetDistribution, distribution_id, 'Distribution')
    if distribution.status != AssetDistribution.STATUS_DRAFT:
        raise InvalidStateError(
            f'Distribution {distribution.distribution_code} is {distribution.status}; only drafts can be edited.'
        )

    allocations = validate_allocations(total_quantity, targets)
    rooms = _load_rooms(allocations)
    old_values = _allocation_snapshot(distribution)

    distribution.targets.all().delete()
    _build_targets(distribution, allocations, rooms)

    distribution.total_quantity = total_quantity
    if notes is not None:
        distribution.notes = notes or None
    distribution.save(update_fields=['total_quantity', 'notes', 'updated_at'])

    log_user_action(
        actor, 'UPDATE', AssetDistribution._meta.db_table, distribution.pk,
        old_values=old_values, new_values=_allocation_snapshot(distribution), request=request,
    )
    transaction.on_commit(invalidate_summary_cache)
    return distribution


@transaction.atomic
def delete_distribution_draft(distribution_id, actor=None, request=None):
    distribution = _get_for_update(AssetDistribution, distribution_id, 'Distribution')
    if distribution.status != AssetDistribution.STATUS_DRAFT:
        raise InvalidStateError(
            f'Distribution {distribution.distribution_code} is {distribution.status}; only drafts can be deleted.'
        )

    old_values = _allocation_snapshot(distribution)
    record_id = distribution.pk
    distribution.delete()

    log_user_action(
        actor, 'DELETE', AssetDistribution._meta.db_table, record_id,
        old_values=old_values, request=request,
    )
    transaction.on_commit(invalidate_summary_cache)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

def generate_qr_tokens(model_id, count, max_rounds=MAX_TOKEN_ROUNDS):
    """
    Generate ``count`` QR tokens unique within the batch and against stored assets.

    Colliding candidates are regenerated; after ``max_rounds`` rounds the
    batch is abandoned.
    """
    tokens = []
    issued = set()
    rounds = 0
    while len(tokens) < count:
        rounds += 1
        if rounds > max_rounds:
            raise InventaError('Could not generate unique asset tokens. Please try again.')

        candidates = {generate_qr_token(model_id) for _ in range(count - len(tokens))}
        candidates -= issued

        taken = set(
            FixedAsset.objects.filter(qr_token__in=candidates).values_list('qr_token', flat=True)
        )
        if taken:
            logger.warning("Regenerating %d colliding asset token(s)", len(taken))

        fresh = sorted(candidates - taken)
        tokens.extend(fresh)
        issued.update(fresh)
    return tokens


def _unit_receivers(unit_ids):
    return User.objects.filter(
        unit_id__in=unit_ids,
        role__in=[User.ROLE_UNIT_STAFF, User.ROLE_UNIT_ADMIN],
        is_active=True,
    )


def execute_distribution(distribution_id, actor=None, request=None):
    """
    Ship a DRAFT distribution.

    Creates one IN_TRANSIT FixedAsset per allocated unit in its target room
    and flips the distribution to SHIPPED, all in one transaction.
    """
    try:
        with transaction.atomic():
            distribution = _get_for_update(AssetDistribution, distribution_id, 'Distribution')
            if distribution.status != AssetDistribution.STATUS_DRAFT:
                raise InvalidStateError(
                    f'Distribution {distribution.distribution_code} is already {distribution.status}.'
                )

            targets = list(distribution.targets.select_related('target_room'))
            total = sum(target.allocated_quantity for target in targets)
            if not targets or total != distribution.total_quantity:
                raise ConsistencyError(
                    f'Allocation of {distribution.distribution_code} does not match its total quantity.'
                )

            tokens = iter(generate_qr_tokens(distribution.model_id, total))
            notes = f'Distributed via {distribution.distribution_code}'
            assets = [
                FixedAsset(
                    model_id=distribution.model_id,
                    room_id=target.target_room_id,
                    warehouse=None,
                    inventory_number=None,
                    qr_token=next(tokens),
                    condition=FixedAsset.CONDITION_GOOD,
                    movement_status=FixedAsset.MOVEMENT_IN_TRANSIT,
                    is_movable=True,
                    notes=notes,
                )
                for target in targets
                for _ in range(target.allocated_quantity)
            ]
            FixedAsset.objects.bulk_create(assets)

            distribution.status = AssetDistribution.STATUS_SHIPPED
            distribution.save(update_fields=['status', 'updated_at'])

            log_user_action(
                actor, 'EXECUTE', AssetDistribution._meta.db_table, distribution.pk,
                old_values={'status': AssetDistribution.STATUS_DRAFT},
                new_values={'status': distribution.status, 'assets_created': len(assets)},
                request=request,
            )

            unit_ids = {t.target_room.unit_id for t in targets if t.target_room.unit_id}
            notify_users(
                _unit_receivers(unit_ids),
                'Incoming assets',
                f'{distribution.model} ({distribution.distribution_code}) has been shipped to your unit. '
                f'Please confirm receipt once the items arrive.',
                link='/dashboard/incoming-distributions',
            )
            transaction.on_commit(invalidate_summary_cache)
    except IntegrityError as exc:
        logger.error("Executing distribution %s failed: %s", distribution_id, exc)
        raise InventaError('Failed to create asset records. The distribution was not shipped.')

    logger.info(
        "Distribution %s shipped: %d asset(s) created",
        distribution.distribution_code, len(assets),
    )
    return distribution


# ---------------------------------------------------------------------------
# Receipt handshake
# ---------------------------------------------------------------------------

def _as_positive_int(value, label):
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not _is_integer(value) or value <= 0:
        raise ValidationFailed(f'{label} must be a positive whole number.')
    return value


@transaction.atomic
def receive_distribution(target_id, received_qty, room_id, receiver, request=None):
    """
    Confirm receipt of ``received_qty`` in-transit units for one target room.

    The received counter is bumped with a conditional UPDATE so two
    concurrent receipts can never push it past the allocated quantity.
    """
    qty = _as_positive_int(received_qty, 'Received quantity')
    target = _get_for_update(AssetDistributionTarget, target_id, 'Distribution target')
    # Receipts of one distribution are serialized on the parent row, so the
    # last receipt always sees every sibling target as received.
    distribution = AssetDistribution.objects.select_for_update().get(pk=target.distribution_id)
    room = target.target_room

    if str(target.target_room_id) != str(room_id):
        raise ValidationFailed('The room does not match this distribution target.')
    if room.unit_id and receiver.unit_id != room.unit_id and not receiver.is_super_admin:
        raise RoleNotAllowed('You can only receive assets for rooms of your own unit.')
    if distribution.status != AssetDistribution.STATUS_SHIPPED:
        raise InvalidStateError(
            f'Distribution {distribution.distribution_code} is {distribution.status}; '
            'only shipped distributions can be received.'
        )

    pending = target.allocated_quantity - target.received_quantity
    if qty > pending:
        raise ValidationFailed(
            f'Received quantity ({qty}) exceeds the pending quantity ({pending}).',
            {'pending_quantity': pending},
        )

    asset_ids = list(
        FixedAsset.objects.select_for_update()
        .filter(
            room_id=target.target_room_id,
            model_id=distribution.model_id,
            movement_status=FixedAsset.MOVEMENT_IN_TRANSIT,
        )
        .order_by('created_at', 'id')
        .values_list('id', flat=True)[:qty]
    )
    if len(asset_ids) < qty:
        raise ConsistencyError(
            f'Only {len(asset_ids)} in-transit asset(s) found for this room; expected {qty}.'
        )

    now = timezone.now()
    updated = AssetDistributionTarget.objects.filter(
        pk=target.pk,
        received_quantity__lte=F('allocated_quantity') - qty,
    ).update(
        received_quantity=F('received_quantity') + qty,
        receiver=receiver,
        received_at=now,
    )
    if updated == 0:
        raise ValidationFailed('Received quantity exceeds the pending quantity.')

    FixedAsset.objects.filter(id__in=asset_ids).update(
        movement_status=FixedAsset.MOVEMENT_IN_STORE,
        updated_at=now,
    )
    target.refresh_from_db()

    outstanding = distribution.targets.filter(received_quantity__lt=F('allocated_quantity')).exists()
    if not outstanding:
        distribution.status = AssetDistribution.STATUS_COMPLETED
        distribution.save(update_fields=['status', 'updated_at'])

    log_user_action(
        receiver, 'RECEIVE', AssetDistributionTarget._meta.db_table, target.pk,
        old_values={'received_quantity': target.received_quantity - qty},
        new_values={
            'received_quantity': target.received_quantity,
            'allocated_quantity': target.allocated_quantity,
            'distribution_status': distribution.status,
        },
        request=request,
    )
    notify_users(
        [distribution.actor],
        'Distribution received',
        f'{receiver.name} confirmed receipt of {qty} unit(s) of {distribution.model} '
        f'in {room.name} ({distribution.distribution_code}).',
        link='/dashboard/distributions',
        type=Notification.TYPE_SUCCESS,
    )
    transaction.on_commit(invalidate_summary_cache)

    logger.info(
        "Target %s of %s received %d unit(s) (%d/%d)",
        target.pk, distribution.distribution_code, qty,
        target.received_quantity, target.allocated_quantity,
    )
    return target
