"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    Time,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from app.db.base import Base


class LeaveType(str, enum.Enum):
    CASUAL = "CASUAL"
    SICK = "SICK"
    LOP = "LOP"
    PERMISSION = "PERMISSION"


class DayGranularity(str, enum.Enum):
    """Start/end day type as chosen by the applicant. FIRST_HALF/SECOND_HALF weigh as HALF."""
    FULL = "FULL"
    HALF = "HALF"
    FIRST_HALF = "FIRST_HALF"
    SECOND_HALF = "SECOND_HALF"


class DayType(str, enum.Enum):
    FULL = "FULL"
    HALF = "HALF"


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"


class DayStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    start_date = Column(Date, nullable=False)
    start_type = Column(SQLEnum(DayGranularity), nullable=False, default=DayGranularity.FULL)
    end_date = Column(Date, nullable=False)
    end_type = Column(SQLEnum(DayGranularity), nullable=False, default=DayGranularity.FULL)
    reason = Column(Text, nullable=True)
    no_of_days = Column(Numeric(5, 2), nullable=False)  # 0.5 increments
    permission_start_time = Column(Time, nullable=True)  # PERMISSION only
    permission_end_time = Column(Time, nullable=True)
    doctor_note = Column(String, nullable=True)  # opaque certificate key, SICK only
    current_status = Column(SQLEnum(LeaveStatus), nullable=False, default=LeaveStatus.PENDING)
    applied_date = Column(Date, nullable=False)

    # Tier 1: reporting manager
    manager_approval_status = Column(SQLEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING)
    manager_approval_date = Column(DateTime(timezone=True), nullable=True)
    manager_approval_comment = Column(Text, nullable=True)
    manager_approved_by = Column(Integer, ForeignKey("employees.id"), nullable=True)

    # Tier 2: HR
    hr_approval_status = Column(SQLEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING)
    hr_approval_date = Column(DateTime(timezone=True), nullable=True)
    hr_approval_comment = Column(Text, nullable=True)
    hr_approved_by = Column(Integer, ForeignKey("employees.id"), nullable=True)

    # Tier 3: super admin
    super_admin_approval_status = Column(SQLEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING)
    super_admin_approval_date = Column(DateTime(timezone=True), nullable=True)
    super_admin_approval_comment = Column(Text, nullable=True)
    super_admin_approved_by = Column(Integer, ForeignKey("employees.id"), nullable=True)

    last_updated_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    last_updated_by_role = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    days = relationship(
        "LeaveDay",
        back_populates="leave_request",
        cascade="all, delete-orphan",
        order_by="LeaveDay.leave_date",
    )

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="check_start_date_le_end_date"),
    )


class LeaveDay(Base):
    """One chargeable calendar date of a leave request."""
    __tablename__ = "leave_days"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_date = Column(Date, nullable=False)
    day_type = Column(SQLEnum(DayType), nullable=False, default=DayType.FULL)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)  # denormalized from the request
    day_status = Column(SQLEnum(DayStatus), nullable=False, default=DayStatus.PENDING)
    updated_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    leave_request = relationship("LeaveRequest", back_populates="days")

    __table_args__ = (
        Index("ix_leave_days_employee_date", "employee_id", "leave_date"),
    )


class LeaveBalance(Base):
    """
    Running leave balances: one row per employee.
    last_updated is read by the batch credit jobs to skip same-day reruns.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, unique=True, index=True)
    casual_balance = Column(Numeric(5, 2), nullable=False, default=0)
    sick_balance = Column(Numeric(5, 2), nullable=False, default=0)
    lop_balance = Column(Numeric(5, 2), nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    employee = relationship("Employee", foreign_keys=[employee_id])

    __table_args__ = (
        CheckConstraint("casual_balance >= 0", name="check_casual_non_negative"),
        CheckConstraint("sick_balance >= 0", name="check_sick_non_negative"),
    )
