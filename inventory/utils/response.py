"""
Standardized Response Utilities for workflow actions

Every mutating endpoint answers with the same envelope:
``{"success": bool, "message": str, "data": ..., "error": ...}``.
"""

import logging
from typing import Any, Callable, Dict, Optional
from datetime import datetime, timezone

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.db import IntegrityError
from django.db.models import ProtectedError
from rest_framework.response import Response
from rest_framework import status

from inventory.exceptions import ConflictError, InventaError, ReferencedObjectError

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = 'An unexpected error occurred. Please try again later.'


class ActionError:
    """Standard error payload structure"""

    @staticmethod
    def create(code: str, message: str, details: Optional[Dict] = None) -> Dict:
        """
        Create standardized error payload

        Args:
            code: Machine-readable error code
            message: Human-readable error message
            details: Additional error details
        """
        return {
            'success': False,
            'message': message,
            'data': None,
            'error': {
                'code': code,
                'details': details or {},
                'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            }
        }

    @staticmethod
    def from_exception(exc: InventaError) -> Dict:
        return ActionError.create(exc.code, exc.message, exc.details)


class ActionResponse:
    """Standard action response builder"""

    @staticmethod
    def success(message: str, data: Any = None, http_status: int = status.HTTP_200_OK) -> Response:
        return Response(
            {'success': True, 'message': message, 'data': data, 'error': None},
            status=http_status,
        )

    @staticmethod
    def error(error_dict: Dict, http_status: int = status.HTTP_400_BAD_REQUEST) -> Response:
        return Response(error_dict, status=http_status)

    @staticmethod
    def failure(exc: InventaError) -> Response:
        return Response(ActionError.from_exception(exc), status=exc.http_status)


def integrity_error_to_inventa(exc: IntegrityError) -> InventaError:
    """Foreign key failures mean a referenced row; anything else is a write conflict."""
    if 'foreign key' in str(exc).lower():
        return ReferencedObjectError()
    return ConflictError()


def run_action(operation: Callable[[], Any], success_message: str,
               serialize: Optional[Callable[[Any], Any]] = None,
               http_status: int = status.HTTP_200_OK) -> Response:
    """
    Execute ``operation`` and wrap its outcome in the action envelope.

    Business-rule failures (``InventaError``) become 4xx responses with their
    message; protected deletes and foreign key failures become a "still
    referenced" conflict, other integrity errors (duplicate codes) a retry
    conflict; anything unexpected is logged and reported with a generic
    message.
    """
    try:
        result = operation()
    except InventaError as exc:
        logger.info("Action rejected (%s): %s", exc.code, exc.message)
        return ActionResponse.failure(exc)
    except DjangoPermissionDenied as exc:
        return ActionResponse.error(
            ActionError.create('PERMISSION_DENIED', str(exc) or 'Permission denied.'),
            status.HTTP_403_FORBIDDEN,
        )
    except ProtectedError as exc:
        logger.warning("Protected delete during action: %s", exc)
        return ActionResponse.failure(ReferencedObjectError())
    except IntegrityError as exc:
        logger.warning("Integrity error during action: %s", exc)
        return ActionResponse.failure(integrity_error_to_inventa(exc))
    except Exception:
        logger.exception("Unexpected error during action")
        return ActionResponse.error(
            ActionError.create('SERVER_ERROR', GENERIC_FAILURE_MESSAGE),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = serialize(result) if serialize else None
    return ActionResponse.success(success_message, data, http_status)
