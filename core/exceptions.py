# core/exceptions.py
"""
Domain error taxonomy for the billing pipeline.

Provider errors carry a ``FailureReason`` so callers switch on a type,
never on the wording of a vendor's error message. Vendor payloads are only
inspected by the classification functions at each provider boundary
(``shop.messaging.errors`` and ``shop.storage.errors``).
"""
import enum
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class FailureReason(str, enum.Enum):
    EXPIRED_CREDENTIAL = "expired_credential"
    RECIPIENT_NOT_ALLOWED = "recipient_not_allowed"
    PERMISSION_DENIED = "permission_denied"
    MALFORMED_REQUEST = "malformed_request"
    TRANSIENT = "transient"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN = "unknown"


class BillingError(Exception):
    """Base class for every error raised by the billing pipeline."""

    default_message = "Billing error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(BillingError):
    """Required credential or setting is absent or invalid."""

    default_message = "Service is not configured"


class ValidationError(BillingError):
    """Caller input rejected before any work is done."""

    default_message = "Invalid input"

    def __init__(self, message=None, field=None):
        super().__init__(message)
        self.field = field


class PersistenceError(BillingError):
    """Database unavailable or write rejected. Fatal for a checkout."""

    default_message = "Failed to save bill"


class ProviderError(BillingError):
    """An external provider (storage, messaging) rejected a call."""

    default_message = "Provider request failed"
    reason = FailureReason.UNKNOWN

    def __init__(self, message=None, status_code=None, provider_code=None, reason=None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_code = provider_code
        if reason is not None:
            self.reason = reason


class ProviderAuthError(ProviderError):
    default_message = "Provider credential is invalid or has expired"
    reason = FailureReason.EXPIRED_CREDENTIAL


class ProviderPermissionError(ProviderError):
    default_message = "Provider denied access"
    reason = FailureReason.PERMISSION_DENIED


class ProviderRequestError(ProviderError):
    default_message = "Provider rejected the request format"
    reason = FailureReason.MALFORMED_REQUEST


class TransientNetworkError(ProviderError):
    default_message = "Provider could not be reached"
    reason = FailureReason.TRANSIENT


STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (TransientNetworkError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def api_exception_handler(exc, context):
    """DRF exception handler that understands ``BillingError`` subclasses."""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if not isinstance(exc, BillingError):
        return None

    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, mapped_status in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            http_status = mapped_status
            break

    if http_status >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message}", exc_info=exc)

    body = {"success": False, "message": exc.message}
    reason = getattr(exc, "reason", None)
    if isinstance(reason, FailureReason):
        body["reason"] = reason.value
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return Response(body, status=http_status)
