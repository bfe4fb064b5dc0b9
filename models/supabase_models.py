"""
Supabase (PostgREST) row models for glucose and insulin storage tables.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GlucoseReadingRow(BaseModel):
    """
    Model for a row of the glucose_readings table.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default=None, description="Row ID")
    user_id: Optional[str] = Field(default=None, description="Owning user ID")
    value: Optional[float] = Field(default=None, description="Glucose value in mg/dL")
    system_time: str = Field(description="Device system time (ISO 8601)")
    display_time: Optional[str] = Field(default=None, description="Device display time (ISO 8601)")
    trend: Optional[str] = Field(default=None, description="Provider trend label")
    source: Optional[str] = Field(default=None, description="Reading provenance (e.g. dexcom, manual)")


class InsulinDeliveryRow(BaseModel):
    """
    Model for a row of the all_insulin_delivery table.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default=None, description="Row ID")
    user_id: Optional[str] = Field(default=None, description="Owning user ID")
    units: Optional[float] = Field(default=None, description="Units delivered")
    taken_at: str = Field(description="Delivery time (ISO 8601)")
    insulin_type: Optional[str] = Field(default=None, description="rapid, short, intermediate or long")
    delivery_type: Optional[str] = Field(default=None, description="bolus or basal")
