"""
Pydantic schemas for registration form and checkout request/response validation.
Field names are camelCase on the wire to match the web client.

The form travels to the webhook inside the payment provider's metadata,
which only holds strings of up to 500 characters. Blank optional values are
stored as None so that a form survives the trip unchanged: empty metadata
values are left out on the way back and the field defaults apply.
"""

import json
import re
from datetime import date, datetime
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from registration_api.core.exceptions import InvalidInput
from registration_api.models.registration import (
    MAX_PLAYERS_PER_BOOKING,
    Address,
    EventType,
    Player,
    Registrant,
)

METADATA_VALUE_LIMIT = 500
DEFAULT_RELATIONSHIP = "Parent"
DEFAULT_COUNTRY = "USA"

SINGLE_PLAYER_FIELDS = (
    "player_first_name",
    "player_last_name",
    "player_date_of_birth",
    "player_level_of_play",
)
REQUIRED_ADDRESS_FIELDS = ("address_street", "address_city", "address_state", "address_zip")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value in (None, ""):
        return value
    if len(re.sub(r"[^\d]", "", value)) != 10:
        raise ValueError("Invalid phone format (e.g., (555) 555-5555)")
    return value


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _blank_to_none(value):
    value = _strip(value)
    return None if value == "" else value


def _born_in_past(value: Optional[date]) -> Optional[date]:
    if value is not None and value >= date.today():
        raise ValueError("Date of birth must be in the past")
    return value


def _player_key(position: int) -> str:
    return f"player{position}"


class PlayerDetails(CamelModel):
    """One player on a multi-player booking."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    level_of_play: str = Field(..., min_length=1, max_length=100)

    @field_validator("first_name", "last_name", "level_of_play", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return _strip(value)

    @field_validator("date_of_birth")
    @classmethod
    def _past(cls, value: date) -> date:
        return _born_in_past(value)


class RegistrationForm(CamelModel):
    # Single player (camps, lessons). Optional when `players` is given.
    player_first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    player_last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    player_date_of_birth: Optional[date] = None
    player_level_of_play: Optional[str] = Field(None, min_length=1, max_length=100)

    # Multi-player booking (at-home training)
    players: Optional[list[PlayerDetails]] = Field(
        None, min_length=1, max_length=MAX_PLAYERS_PER_BOOKING
    )

    guardian_first_name: str = Field(..., min_length=1, max_length=100)
    guardian_last_name: str = Field(..., min_length=1, max_length=100)
    guardian_email: EmailStr
    guardian_phone: str
    guardian_relationship: str = Field(default=DEFAULT_RELATIONSHIP, min_length=1, max_length=100)

    # Training location (at-home training)
    address_street: Optional[str] = Field(None, max_length=200)
    address_unit: Optional[str] = Field(None, max_length=50)
    address_city: Optional[str] = Field(None, max_length=100)
    address_state: Optional[str] = Field(None, max_length=100)
    address_zip: Optional[str] = Field(None, max_length=20)
    address_country: str = Field(default=DEFAULT_COUNTRY, min_length=1, max_length=100)

    emergency_name: Optional[str] = Field(None, max_length=200)
    emergency_phone: Optional[str] = None
    emergency_relationship: Optional[str] = Field(None, max_length=100)

    medical_notes: Optional[str] = Field(None, max_length=METADATA_VALUE_LIMIT)
    waiver_accepted: bool

    @field_validator("guardian_first_name", "guardian_last_name", mode="before")
    @classmethod
    def _strip_required(cls, value):
        return _strip(value)

    @field_validator(
        "player_first_name", "player_last_name", "player_date_of_birth", "player_level_of_play",
        "address_street", "address_unit", "address_city", "address_state", "address_zip",
        "emergency_name", "emergency_phone", "emergency_relationship", "medical_notes",
        mode="before",
    )
    @classmethod
    def _optional_blank(cls, value):
        return _blank_to_none(value)

    @field_validator("guardian_relationship", mode="before")
    @classmethod
    def _relationship_default(cls, value):
        return _blank_to_none(value) or DEFAULT_RELATIONSHIP

    @field_validator("address_country", mode="before")
    @classmethod
    def _country_default(cls, value):
        return _blank_to_none(value) or DEFAULT_COUNTRY

    @field_validator("guardian_phone")
    @classmethod
    def _guardian_phone(cls, value: str) -> str:
        if not value:
            raise ValueError("Phone number is required")
        return _check_phone(value)

    @field_validator("emergency_phone")
    @classmethod
    def _emergency_phone(cls, value: Optional[str]) -> Optional[str]:
        return _check_phone(value)

    @field_validator("player_date_of_birth")
    @classmethod
    def _player_born_in_past(cls, value: Optional[date]) -> Optional[date]:
        return _born_in_past(value)

    @field_validator("waiver_accepted")
    @classmethod
    def _waiver(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must accept the waiver to continue")
        return value

    @model_validator(mode="after")
    def _player_given(self):
        if self.players is None:
            missing = [to_camel(name) for name in SINGLE_PLAYER_FIELDS if getattr(self, name) is None]
            if missing:
                raise ValueError(f"Player details are required: {', '.join(missing)}")
        return self

    @property
    def player_count(self) -> int:
        return len(self.players) if self.players else 1

    @property
    def has_address(self) -> bool:
        return all(getattr(self, name) for name in REQUIRED_ADDRESS_FIELDS)

    def roster(self) -> list[PlayerDetails]:
        if self.players:
            return list(self.players)
        return [
            PlayerDetails(
                first_name=self.player_first_name,
                last_name=self.player_last_name,
                date_of_birth=self.player_date_of_birth,
                level_of_play=self.player_level_of_play,
            )
        ]

    def to_metadata(self) -> dict[str, str]:
        """
        Flatten for the payment provider's string-only metadata.

        Each player on a multi-player booking gets its own `player{n}` key
        holding compact JSON, which keeps every value under the provider's
        per-value limit.
        """
        data = self.model_dump(mode="json", by_alias=True, exclude={"players"})
        metadata = {
            k: ("" if v is None else str(v).lower() if isinstance(v, bool) else str(v))
            for k, v in data.items()
        }
        metadata["playerCount"] = str(self.player_count)
        for position, player in enumerate(self.players or [], start=1):
            metadata[_player_key(position)] = player.model_dump_json(by_alias=True)
        return metadata

    @classmethod
    def from_metadata(cls, metadata: dict[str, str]) -> "RegistrationForm":
        fields = {to_camel(name) for name in cls.model_fields}
        values: dict = {k: v for k, v in metadata.items() if k in fields and v}

        players = []
        position = 1
        while _player_key(position) in metadata:
            try:
                players.append(json.loads(metadata[_player_key(position)]))
            except json.JSONDecodeError as e:
                raise InvalidInput(f"Player {position} metadata is not valid JSON") from e
            position += 1
        if players:
            values["players"] = players

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise InvalidInput(f"Registration metadata is invalid: {e.error_count()} errors") from e

    def to_address(self) -> Optional[Address]:
        if not self.has_address:
            return None
        return Address(
            street=self.address_street,
            unit=self.address_unit,
            city=self.address_city,
            state=self.address_state,
            zip=self.address_zip,
            country=self.address_country,
        )

    def to_registrant(
        self,
        hold_id: str,
        payment_reference: Optional[str] = None,
        amount: Optional[float] = None,
    ) -> Registrant:
        roster = self.roster()
        lead = roster[0]
        players = None
        if self.players:
            players = [Player.model_validate(p.model_dump()) for p in self.players]
        return Registrant(
            id=hold_id,
            hold_id=hold_id,
            player_first_name=lead.first_name,
            player_last_name=lead.last_name,
            player_date_of_birth=lead.date_of_birth,
            player_level_of_play=lead.level_of_play,
            player_count=len(roster),
            players=players,
            address=self.to_address(),
            guardian_first_name=self.guardian_first_name,
            guardian_last_name=self.guardian_last_name,
            guardian_email=str(self.guardian_email),
            guardian_phone=self.guardian_phone,
            guardian_relationship=self.guardian_relationship,
            emergency_contact_name=self.emergency_name,
            emergency_contact_phone=self.emergency_phone,
            emergency_contact_relationship=self.emergency_relationship,
            medical_notes=self.medical_notes,
            payment_reference=payment_reference,
            amount=amount,
        )


class CheckoutEvent(CamelModel):
    id: str = Field(..., min_length=1, max_length=255)
    summary: str = Field(default="Event Registration", max_length=255)
    price: float = Field(..., gt=0, le=10000)
    event_type: EventType
    max_capacity: Optional[int] = Field(None, ge=0, le=1000)
    start: Optional[str] = Field(None, max_length=64)
    end: Optional[str] = Field(None, max_length=64)
    slot_date: Optional[str] = Field(None, max_length=64)
    slot_time: Optional[str] = Field(None, max_length=64)


class CheckoutRequest(BaseModel):
    event: CheckoutEvent
    form_data: RegistrationForm = Field(..., alias="formData")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _form_matches_event(self):
        form = self.form_data
        if self.event.event_type == EventType.AT_HOME_TRAINING:
            if not form.players:
                raise ValueError("At-home training needs at least one entry in players")
            if not form.has_address:
                missing = [to_camel(n) for n in REQUIRED_ADDRESS_FIELDS if not getattr(form, n)]
                raise ValueError(f"Training location is required: {', '.join(missing)}")
        elif form.players:
            raise ValueError("Only at-home training accepts multiple players")
        return self

    @property
    def total_price(self) -> float:
        """Event price per player; single-player events have one."""
        return self.event.price * self.form_data.player_count

    @property
    def product_name(self) -> str:
        count = self.form_data.player_count
        if self.event.event_type != EventType.AT_HOME_TRAINING:
            return self.event.summary
        return f"{self.event.summary} ({count} player{'s' if count > 1 else ''})"

    def event_metadata(self) -> dict[str, str]:
        event = self.event
        metadata = {
            "eventId": event.id,
            "eventSummary": event.summary,
            "eventType": event.event_type.value,
            "eventPrice": f"{event.price:.2f}",
            "totalPrice": f"{self.total_price:.2f}",
            "eventStartDateTime": event.start or "",
            "eventEndDateTime": event.end or "",
        }
        if event.event_type == EventType.AT_HOME_TRAINING:
            metadata["slotDate"] = event.slot_date or ""
            metadata["slotTime"] = event.slot_time or ""
        return metadata


class CheckoutResponse(CamelModel):
    url: str
    session_id: str
    hold_id: str
    expires_at: datetime
