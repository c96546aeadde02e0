from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import VipLevel


@dataclass(frozen=True)
class Guest:
    """Domain entity: a guest of one event, seated in one room."""

    guest_id: int
    stadium_id: int
    event_id: int
    room_id: int
    first_name: str
    last_name: str
    vip_level: VipLevel = VipLevel.STANDARD
    company_name: Optional[str] = None
    table_number: Optional[str] = None
    seat_number: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    room_name: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[date] = None

    @property
    def full_name(self) -> str:
        return f"{self.last_name}, {self.first_name}"


@dataclass(frozen=True)
class GuestSuggestion:
    """Read-model for autocomplete."""

    guest_id: int
    display_name: str
    table_number: Optional[str]
    room_name: Optional[str]
