from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


#  event posting flow


class EventCreateModel(BaseModel):
    """Schema for recording a funnel event (API Input). The user comes from the token."""

    variant: str = Field(..., min_length=1)
    event_name: str = Field(
        ..., min_length=1, description="e.g. 'signup', 'onboarding_complete', 'paid_convert'"
    )
    properties: Dict[str, Any] = Field(default_factory=dict, description="Flexible JSON object.")


class EventResponseModel(BaseModel):
    id: str
    experiment_id: str
    user_id: Optional[str] = None
    variant: str
    event_name: str
    properties: Dict[str, Any]
    occurred_at: datetime

    model_config = ConfigDict(from_attributes=True)
