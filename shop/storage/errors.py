# shop/storage/errors.py
"""Maps storage provider failures onto ``FailureReason`` typed errors."""
import requests

from core.exceptions import (
    FailureReason,
    ProviderAuthError,
    ProviderError,
    ProviderPermissionError,
    ProviderRequestError,
    TransientNetworkError,
)

POLICY_REMEDIATION = (
    "Upload blocked by the storage access policy. Use the service role key, "
    "or add an insert policy for the invoices bucket."
)


def _response_details(response):
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = body.get("message") or body.get("error") or response.text or response.reason
    status_code = response.status_code
    # Storage API reports the real status inside the body on some 400 responses
    try:
        status_code = int(body.get("statusCode", status_code))
    except (TypeError, ValueError):
        pass
    return status_code, str(message)


def classify_storage_error(exc=None, response=None):
    """
    Turn a ``requests`` exception or an unsuccessful response into a
    ``ProviderError``. Exactly one of ``exc`` / ``response`` is expected.
    """
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return TransientNetworkError(f"Storage unreachable: {exc}")

    if response is None:
        return ProviderError(f"Storage request failed: {exc}", reason=FailureReason.UNKNOWN)

    status_code, message = _response_details(response)
    lowered = message.lower()

    if "row-level security" in lowered or "policy" in lowered:
        return ProviderPermissionError(POLICY_REMEDIATION, status_code=status_code)
    if status_code == 401 or "jwt" in lowered:
        return ProviderAuthError(f"Storage credential rejected: {message}", status_code=status_code)
    if status_code == 403:
        return ProviderPermissionError(f"Storage access denied: {message}", status_code=status_code)
    if status_code in (400, 404, 409, 413, 422):
        return ProviderRequestError(f"Storage rejected request: {message}", status_code=status_code)
    if status_code >= 500:
        return TransientNetworkError(f"Storage service error: {message}", status_code=status_code)
    return ProviderError(f"Storage request failed: {message}", status_code=status_code)
