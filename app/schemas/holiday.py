"""
Holiday calendar schemas
"""
from datetime import date as date_type, datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class HolidayCreate(BaseModel):
    """Schema for creating a holiday"""
    year: int = Field(..., description="Year (e.g., 2026)")
    date: date_type = Field(..., description="Holiday date")
    name: str = Field(..., description="Holiday name")
    active: bool = Field(True, description="Whether the holiday is active")


class HolidayUpdate(BaseModel):
    """Schema for updating a holiday"""
    date: Optional[date_type] = Field(None, description="New holiday date; moves the year with it")
    name: Optional[str] = Field(None, description="Holiday name")
    active: Optional[bool] = Field(None, description="Whether the holiday is active")


class HolidayOut(BaseModel):
    """Schema for holiday output"""
    id: int
    year: int
    date: date_type
    name: str
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
