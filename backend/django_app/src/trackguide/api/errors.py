import logging
from functools import wraps

from django.conf import settings
from django.http import JsonResponse

logger = logging.getLogger(__name__)


class TrackerError(Exception):
    status = 500


class ValidationError(TrackerError):
    """A required field is missing or malformed."""
    status = 400


class NotFoundError(TrackerError):
    """The task does not exist or belongs to another user."""
    status = 404


class StoreError(TrackerError):
    """The database could not complete the read or write."""
    status = 500


def error_response(message, status, **extra):
    payload = {"success": False, "message": message}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def handle_errors(failure_message):
    """Turn tracker errors raised by a view into JSON responses.

    Validation and not-found errors carry their own message to the client.
    Store errors are logged and reported as ``failure_message``; the
    underlying detail is only included when DEBUG is on. Anything else
    unexpected is logged and reported the same way.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                return view(request, *args, **kwargs)
            except (ValidationError, NotFoundError) as exc:
                return error_response(str(exc), exc.status)
            except StoreError as exc:
                logger.exception("%s: %s %s", failure_message, request.method, request.path)
                extra = {"error": str(exc.__cause__ or exc)} if settings.DEBUG else {}
                return error_response(failure_message, exc.status, **extra)
            except Exception as exc:
                logger.exception("%s: %s %s", failure_message, request.method, request.path)
                extra = {"error": str(exc)} if settings.DEBUG else {}
                return error_response(failure_message, 500, **extra)
        return wrapper
    return decorator
