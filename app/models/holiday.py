"""
Holiday calendar model
"""
from sqlalchemy import Column, Integer, Date, DateTime, String, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from app.db.base import Base


class Holiday(Base):
    """Company holiday. Inactive rows are kept for history and ignored by the day calculator."""
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    __table_args__ = (
        UniqueConstraint('year', 'date', name='uq_holiday_year_date'),
    )
