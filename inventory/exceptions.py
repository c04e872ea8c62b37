"""
Business-rule exceptions raised by the inventory and requisition services.

Views catch ``InventaError`` at the action boundary and turn it into the
standard ``{"success": false, "message": ...}`` payload; anything else is
treated as an unexpected failure.
"""

from rest_framework import status


class InventaError(Exception):
    """Base class for expected, user-visible failures."""

    code = 'ERROR'
    default_message = 'The operation could not be completed.'
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationFailed(InventaError):
    """Malformed or out-of-range input, reported before any write."""

    code = 'VALIDATION_ERROR'
    default_message = 'Invalid input.'


class AllocationError(ValidationFailed):
    """Per-room allocation quantities do not satisfy the distribution total."""

    code = 'ALLOCATION_ERROR'
    default_message = 'Invalid room allocation.'


class NotFoundError(InventaError):
    code = 'NOT_FOUND'
    default_message = 'Record not found.'
    http_status = status.HTTP_404_NOT_FOUND


class InvalidStateError(InventaError):
    """The record is not in the status the operation requires."""

    code = 'INVALID_STATE'
    default_message = 'The record is not in a valid status for this operation.'


class InvalidTransition(InvalidStateError):
    code = 'INVALID_TRANSITION'
    default_message = 'This status change is not allowed.'


class RoleNotAllowed(InventaError):
    code = 'PERMISSION_DENIED'
    default_message = 'Your role is not allowed to perform this action.'
    http_status = status.HTTP_403_FORBIDDEN


class ConsistencyError(InventaError):
    """Expected related rows are missing: stored data violates an invariant."""

    code = 'CONSISTENCY_ERROR'
    default_message = 'Inventory data is inconsistent. Please contact an administrator.'


class ReferencedObjectError(InventaError):
    code = 'REFERENCED_OBJECT'
    default_message = 'Cannot delete or modify: the record is still referenced by other data.'
    http_status = status.HTTP_409_CONFLICT


class ConflictError(InventaError):
    """A concurrent write produced a duplicate of a unique value."""

    code = 'CONFLICT'
    default_message = 'The record conflicts with data saved at the same time. Please try again.'
    http_status = status.HTTP_409_CONFLICT
