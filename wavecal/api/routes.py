"""
Request and response models for the wave calendar API.
"""

import datetime as dt
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, ConfigDict, field_validator

from wavecal.config.defaults import CALENDAR_ROWS, CALENDAR_COLS
from wavecal.core.events import CalendarEvent


# ============================================================================
# Pydantic Models for Request/Response
# ============================================================================

class EventModel(BaseModel):
    """One calendar event."""
    date: dt.date = Field(..., description="Event day (ISO date)")
    category: Optional[str] = Field(default=None, description="Category key (unknown keys weigh 1.0)")
    amount: Optional[float] = Field(default=None, description="Non-negative amount; missing counts as 0")

    def to_event(self) -> CalendarEvent:
        return CalendarEvent(date=self.date, category=self.category, amount=self.amount)


class SetEventsRequest(BaseModel):
    """Replace the event set of the displayed month."""
    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)
    events: List[EventModel] = Field(default_factory=list)
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "year": 2025,
                "month": 1,
                "events": [
                    {"date": "2025-01-16", "category": "mutui", "amount": 45000},
                ],
            }
        }
    )


class SetEventsResponse(BaseModel):
    status: str
    impulses: int


class PointerMoveRequest(BaseModel):
    """Pointer position in screen space, origin top-left."""
    x: float
    y: float
    width: float = Field(..., gt=0, description="Viewport width in pixels")
    height: float = Field(..., gt=0, description="Viewport height in pixels")


class PointerResponse(BaseModel):
    active: bool
    hovered: bool
    position: Optional[List[float]] = None


class DropRequest(BaseModel):
    """Click on a calendar cell."""
    row: int
    col: int

    @field_validator('row')
    def validate_row(cls, v):
        if not (0 <= v < CALENDAR_ROWS):
            raise ValueError(f"row {v} must be in range [0, {CALENDAR_ROWS})")
        return v

    @field_validator('col')
    def validate_col(cls, v):
        if not (0 <= v < CALENDAR_COLS):
            raise ValueError(f"col {v} must be in range [0, {CALENDAR_COLS})")
        return v


class StatusResponse(BaseModel):
    """Frame loop status."""
    state: str
    step: int
    time: float
    grid_size: int
    impulses: int
    drops: int
    pointer_active: bool
    hovered: bool
    backend: str


class FrameSummaryResponse(BaseModel):
    """JSON summary of the latest frame."""
    step: int
    time: float
    grid_size: int
    min_height: float
    max_height: float
    energy: float
    pointer_active: bool
    hovered: bool
    static: bool
    markers: List[Dict[str, Any]]
