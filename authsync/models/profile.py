"""
Profile Model.

Application-level user record stored in the ``profiles`` table.  Only
the columns the engine reads or writes are modelled; anything else the
row carries is ignored.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Profile(BaseModel):
    """Represents a profile row.

    ``id`` equals the provider user id.  ``display_name`` stays ``None``
    until onboarding sets it or a first-time OAuth name is backfilled.
    """

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    sobriety_date: Optional[date] = None
    timezone: Optional[str] = None
    connection_intent: Optional[str] = None
    show_program_content: Optional[bool] = None
    spend_amount: Optional[float] = None
    spend_frequency: Optional[str] = None
    hide_savings_card: Optional[bool] = None
    terms_accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")

    @property
    def has_display_name(self) -> bool:
        return bool(self.display_name and self.display_name.strip())
