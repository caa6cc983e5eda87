"""
In-app notification model
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from app.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="info")  # event type, e.g. LEAVE_APPLIED
    leave_request_id = Column(Integer, nullable=True)  # no FK: survives request deletion
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
