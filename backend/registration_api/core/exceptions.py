"""
Error taxonomy for the registration core.

Every error carries the HTTP status and a stable machine-readable code so the
API layer can translate it without inspecting the type. Capacity-invariant
violations are rejected at the point of mutation; transient infrastructure
failures derive from ExternalServiceError.
"""

from typing import Optional


class RegistrationError(Exception):
    status_code = 400
    code = "registration_error"

    def __init__(self, message: Optional[str] = None, **context):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        self.context = context


class CapacityExceeded(RegistrationError):
    """Event is sold out."""
    status_code = 409
    code = "capacity_exceeded"


class ConcurrentModification(RegistrationError):
    """Stored document changed since it was read."""
    status_code = 409
    code = "concurrent_modification"


class HoldExpired(RegistrationError):
    """Your reserved spot has expired. Please restart registration."""
    status_code = 410
    code = "hold_expired"


class HoldNotFound(RegistrationError):
    """Reservation not found. Please restart registration."""
    status_code = 404
    code = "hold_not_found"


class RecordNotFound(RegistrationError):
    """Event has no registration data."""
    status_code = 404
    code = "record_not_found"


class InvalidCapacity(RegistrationError):
    """Capacity cannot be lower than committed registrations."""
    status_code = 422
    code = "invalid_capacity"


class InvalidInput(RegistrationError):
    """Request payload is invalid."""
    status_code = 422
    code = "invalid_input"


class InvalidSignature(InvalidInput):
    """Webhook signature missing or invalid."""
    status_code = 400
    code = "invalid_signature"


class ExternalServiceError(RegistrationError):
    """An upstream service failed."""
    status_code = 502
    code = "external_service_error"


class StoreUnavailable(ExternalServiceError):
    """Registration store is temporarily unavailable."""
    status_code = 503
    code = "store_unavailable"


class PaymentProviderError(ExternalServiceError):
    """Payment processing is temporarily unavailable."""
    status_code = 502
    code = "payment_provider_error"


class UpstreamError(ExternalServiceError):
    """Upstream request failed."""
    code = "upstream_error"

    def __init__(self, message: Optional[str] = None, status_code: int = 502, **context):
        super().__init__(message, **context)
        self.status_code = status_code
