"""Pydantic schemas for the holiday calendar."""

import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict

from leavedesk.common.constants import HolidayType


class HolidayResponse(BaseModel):
    """Single holiday entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    date: date
    name: str
    country: str
    region: Optional[str] = None
    holiday_type: HolidayType
    is_half_day: bool = False
    is_company_holiday: bool = False
    is_national: bool = True
