from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from applypass.models.orm.experiment import ExperimentStatus


class ExperimentCreateModel(BaseModel):
    """Schema for creating an experiment definition (API Input)."""

    id: str = Field(..., min_length=1, description="e.g. 'landing-cta-v1'")
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    status: ExperimentStatus = ExperimentStatus.DRAFT
    variants: List[str] = Field(default_factory=lambda: ["control", "treatment"], min_length=1)
    traffic_pct: int = Field(
        100,
        ge=1,
        le=100,
        description="Percentage of eligible users enrolled; the rest get 'control'.",
    )
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @field_validator("variants")
    @classmethod
    def _variant_names_not_blank(cls, value: List[str]) -> List[str]:
        if any(not name.strip() for name in value):
            raise ValueError("Variant names must be non-empty strings.")
        return value


class ExperimentResponseModel(BaseModel):
    """Data model for a persistent experiment record."""

    id: str
    name: str
    description: Optional[str] = None
    status: ExperimentStatus
    variants: List[str]
    traffic_pct: int
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- User Assignment ---


class AssignmentModel(BaseModel):
    """Variant assignment for the calling user."""

    experiment_id: str
    user_id: str
    variant: str = Field(..., description="The name of the variant the user was assigned.")
    enrolled: bool = Field(
        ..., description="False when the experiment is not running and nothing was persisted."
    )


# --- Reporting ---


class VariantStatsModel(BaseModel):
    variant: str
    enrolled: int
    activated: int
    converters: int
    activation_rate: Optional[float] = None
    conversion_rate: Optional[float] = None


class SignificanceModel(BaseModel):
    """Control vs treatment comparison on conversion."""

    p_value: float
    significant: bool
    relative_lift: Optional[float] = None
    wilson_low_control: float
    wilson_low_treatment: float


class ExperimentResultsModel(BaseModel):
    experiment_id: str
    name: str
    status: ExperimentStatus
    started_at: Optional[datetime] = None
    window_days: int
    since: datetime
    variant_stats: List[VariantStatsModel]
    significance: Optional[SignificanceModel] = None
    totals: Dict[str, int] = Field(default_factory=dict)
