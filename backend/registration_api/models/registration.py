"""
Registration record and registrant models.

Key design decisions:
- One record document per event, keyed by the calendar event id
- `current_registrations` counts committed registrants only and always equals
  len(registrations); the store rejects any write that would break this
- A registrant takes one seat. An at-home training booking may list several
  players (priced per player) but still books a single session slot
- Stored as camelCase JSON so records written by earlier tooling stay readable
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    CAMP = "camp"
    LESSON = "lesson"
    AT_HOME_TRAINING = "at_home_training"
    MT_VERNON_SKATING = "mt_vernon_skating"
    ROCKVILLE_SMALL_GROUP = "rockville_small_group"
    OTHER = "other"


DEFAULT_CAPACITY: dict[EventType, int] = {
    EventType.CAMP: 20,
    EventType.LESSON: 10,
    EventType.AT_HOME_TRAINING: 1,  # one booking per session slot
    EventType.MT_VERNON_SKATING: 1,
    EventType.ROCKVILLE_SMALL_GROUP: 5,
    EventType.OTHER: 15,
}

MAX_PLAYERS_PER_BOOKING = 6


def default_capacity_for(event_type: Optional[str]) -> int:
    try:
        return DEFAULT_CAPACITY[EventType(event_type)]
    except ValueError:
        return DEFAULT_CAPACITY[EventType.OTHER]


class StoredModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Player(StoredModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    first_name: str
    last_name: str
    date_of_birth: date
    level_of_play: Optional[str] = None


class Address(StoredModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    street: str
    unit: Optional[str] = None
    city: str
    state: str
    zip: str
    country: str = "USA"


class Registrant(StoredModel):
    """
    A committed registration. Never modified after it is appended.

    The player_* fields name the first (or only) player; `players` lists
    everyone on a multi-player booking.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    hold_id: str
    player_first_name: str
    player_last_name: str
    player_date_of_birth: date
    player_level_of_play: Optional[str] = None
    player_count: int = Field(default=1, ge=1, le=MAX_PLAYERS_PER_BOOKING)
    players: Optional[list[Player]] = None
    address: Optional[Address] = None
    guardian_first_name: str
    guardian_last_name: str
    guardian_email: str
    guardian_phone: str
    guardian_relationship: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    medical_notes: Optional[str] = None
    payment_reference: Optional[str] = None
    amount: Optional[float] = None
    committed_at: Optional[datetime] = None


class RegistrationRecord(StoredModel):
    event_id: str
    event_type: str = EventType.OTHER.value
    max_capacity: int = Field(ge=0)
    current_registrations: int = Field(default=0, ge=0)
    registrations: list[Registrant] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _count_matches_registrations(self):
        if self.current_registrations != len(self.registrations):
            raise ValueError(
                f"currentRegistrations={self.current_registrations} does not match "
                f"{len(self.registrations)} stored registrations"
            )
        return self

    @property
    def is_sold_out(self) -> bool:
        return self.current_registrations >= self.max_capacity

    def find_registrant(self, hold_id: str) -> Optional[Registrant]:
        for registrant in self.registrations:
            if registrant.hold_id == hold_id:
                return registrant
        return None
