from registration_api.schemas.registration import (
    CheckoutEvent, CheckoutRequest, CheckoutResponse, PlayerDetails, RegistrationForm,
)
from registration_api.schemas.reservation import (
    CapacityResponse, CapacityUpdate, ContactMessage, RecordResponse,
    ReservationCreate, ReservationResponse, SweepResponse,
)

__all__ = [
    "CheckoutEvent", "CheckoutRequest", "CheckoutResponse", "PlayerDetails", "RegistrationForm",
    "CapacityResponse", "CapacityUpdate", "ContactMessage", "RecordResponse",
    "ReservationCreate", "ReservationResponse", "SweepResponse",
]
