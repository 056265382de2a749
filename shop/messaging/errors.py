# shop/messaging/errors.py
"""Maps WhatsApp Cloud API failures onto ``FailureReason`` typed errors."""
import requests

from core.exceptions import (
    FailureReason,
    ProviderAuthError,
    ProviderError,
    ProviderPermissionError,
    ProviderRequestError,
    TransientNetworkError,
)

# Graph API error codes
TOKEN_EXPIRED_CODE = 190
RECIPIENT_NOT_ALLOWED_CODE = 131030


def _graph_error(response):
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def classify_whatsapp_error(exc=None, response=None, recipient=None):
    """
    Turn a ``requests`` exception or an unsuccessful Graph API response into
    a ``ProviderError`` whose ``reason`` callers can switch on.
    """
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return TransientNetworkError(f"WhatsApp API unreachable: {exc}")

    if response is None:
        return ProviderError(f"WhatsApp request failed: {exc}", reason=FailureReason.UNKNOWN)

    error = _graph_error(response)
    code = error.get("code")
    detail = error.get("message") or response.reason or "unknown error"
    status_code = response.status_code

    if code == TOKEN_EXPIRED_CODE or status_code == 401:
        return ProviderAuthError(
            "WhatsApp API token has expired. Please update your access token.",
            status_code=status_code, provider_code=code,
        )
    if code == RECIPIENT_NOT_ALLOWED_CODE:
        who = recipient or "the recipient"
        return ProviderError(
            f"Phone number not in WhatsApp allowed list. Please add {who} to your "
            f"WhatsApp Business API recipient list.",
            status_code=status_code, provider_code=code, reason=FailureReason.RECIPIENT_NOT_ALLOWED,
        )
    if status_code == 403:
        return ProviderPermissionError(
            "WhatsApp API access denied. Check your permissions and phone number verification.",
            status_code=status_code, provider_code=code,
        )
    if status_code == 400:
        return ProviderRequestError(
            f"WhatsApp API error: Invalid request or phone number format ({detail}).",
            status_code=status_code, provider_code=code,
        )
    if status_code >= 500:
        return TransientNetworkError(f"WhatsApp API error: {detail}", status_code=status_code, provider_code=code)
    return ProviderError(f"WhatsApp API error: {detail}", status_code=status_code, provider_code=code)
