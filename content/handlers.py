import logging

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from content.exceptions import StorageFailure

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred"


def envelope_exception_handler(exc, context):
    """
    Render every API error as ``{"success": false, "message": ...}``.

    Validation errors keep their field detail under ``errors``. Storage failures
    become a generic 500; the cause goes to the log, not to the client.
    """
    if isinstance(exc, StorageFailure):
        view = context.get("view")
        logger.error(
            f"Storage failure in {view.__class__.__name__ if view else 'unknown view'}: {exc}",
            exc_info=exc,
        )
        return Response(
            {"success": False, "message": GENERIC_SERVER_ERROR},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ValidationError):
        response.data = {
            "success": False,
            "message": "Validation failed",
            "errors": response.data,
        }
    else:
        detail = response.data.get("detail") if isinstance(response.data, dict) else None
        response.data = {
            "success": False,
            "message": str(detail) if detail is not None else str(exc),
        }
    return response
