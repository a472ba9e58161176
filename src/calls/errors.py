"""Domain-specific exceptions for call relay operations.

These exceptions are safe to import from API layers without pulling in the Twilio SDK.
"""

from __future__ import annotations


class TelephonyError(Exception):
    status_code: int = 500
    default_detail: str = "Telephony error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class SessionNotFoundError(TelephonyError):
    status_code = 404
    default_detail = "Call not found"


class SessionInactiveError(TelephonyError):
    status_code = 409
    default_detail = "Call has ended"


class DuplicateSessionError(TelephonyError):
    status_code = 500
    default_detail = "Call is already registered"


class ValidationFailedError(TelephonyError):
    status_code = 400
    default_detail = "Invalid request"


class InvalidDestinationError(ValidationFailedError):
    default_detail = "Invalid phone number"


class InvalidTextError(ValidationFailedError):
    default_detail = "Text may not be empty"


class ProviderNotConfiguredError(TelephonyError):
    status_code = 503
    default_detail = "Twilio is not configured"


class ProviderError(TelephonyError):
    """Failure reported by the telephony provider, with its error code when known."""

    status_code = 502
    default_detail = "Telephony provider request failed"

    def __init__(self, detail: str | None = None, *, code: int | None = None) -> None:
        super().__init__(detail)
        self.code = code


class CallInitiationFailedError(ProviderError):
    default_detail = "Call could not be placed"
