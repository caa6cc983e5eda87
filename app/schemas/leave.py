"""
Leave schemas
"""
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.leave import (
    ApprovalStatus,
    DayGranularity,
    DayStatus,
    DayType,
    LeaveStatus,
    LeaveType,
)


class LeaveApplyRequest(BaseModel):
    """Schema for applying for (or editing) a leave request"""
    leave_type: LeaveType = Field(..., description="Type of leave")
    start_date: date = Field(..., description="Start date (YYYY-MM-DD)")
    start_type: DayGranularity = Field(DayGranularity.FULL, description="Granularity of the first day")
    end_date: date = Field(..., description="End date (YYYY-MM-DD)")
    end_type: DayGranularity = Field(DayGranularity.FULL, description="Granularity of the last day")
    reason: Optional[str] = Field(None, description="Reason for leave")
    permission_start_time: Optional[time] = Field(None, description="Permission window start (PERMISSION only)")
    permission_end_time: Optional[time] = Field(None, description="Permission window end (PERMISSION only)")
    doctor_note: Optional[str] = Field(None, description="Medical certificate key (SICK only)")


class ApprovalActionRequest(BaseModel):
    """Schema for leave approval request"""
    comment: Optional[str] = Field(None, description="Optional comment for approval")


class RejectActionRequest(BaseModel):
    """Schema for leave rejection request"""
    comment: str = Field(..., description="Reason for rejection")


class DayIdsApproveRequest(BaseModel):
    """Approve the listed days; every other pending day is rejected"""
    day_ids: List[int] = Field(..., description="Leave day ids to approve")
    comment: Optional[str] = Field(None, description="Optional comment")


class DayIdsRejectRequest(BaseModel):
    day_ids: List[int] = Field(..., description="Leave day ids to reject")
    comment: str = Field(..., description="Reason for rejection")


class LeaveStatusUpdateRequest(BaseModel):
    """Schema for the HR/Super Admin status override"""
    status: LeaveStatus = Field(..., description="APPROVED, REJECTED or PARTIALLY_APPROVED")
    selected_day_ids: Optional[List[int]] = Field(
        None, description="Days to approve when status is PARTIALLY_APPROVED; the rest are rejected"
    )
    reason: Optional[str] = Field(None, description="Rejection reason")

    @model_validator(mode="after")
    def check_status(self) -> "LeaveStatusUpdateRequest":
        if self.status == LeaveStatus.PENDING:
            raise ValueError("status must be APPROVED, REJECTED or PARTIALLY_APPROVED")
        return self


class LeaveDayOut(BaseModel):
    id: int
    leave_date: date
    day_type: DayType
    leave_type: LeaveType
    day_status: DayStatus

    model_config = ConfigDict(from_attributes=True)


class LeaveOut(BaseModel):
    """Schema for leave request output"""
    id: int
    employee_id: int
    leave_type: LeaveType
    start_date: date
    start_type: DayGranularity
    end_date: date
    end_type: DayGranularity
    reason: Optional[str]
    no_of_days: Decimal
    permission_start_time: Optional[time] = None
    permission_end_time: Optional[time] = None
    doctor_note: Optional[str] = None
    current_status: LeaveStatus
    applied_date: date
    manager_approval_status: ApprovalStatus
    manager_approval_date: Optional[datetime] = None
    manager_approval_comment: Optional[str] = None
    manager_approved_by: Optional[int] = None
    hr_approval_status: ApprovalStatus
    hr_approval_date: Optional[datetime] = None
    hr_approval_comment: Optional[str] = None
    hr_approved_by: Optional[int] = None
    super_admin_approval_status: ApprovalStatus
    super_admin_approval_date: Optional[datetime] = None
    super_admin_approval_comment: Optional[str] = None
    super_admin_approved_by: Optional[int] = None
    last_updated_by: Optional[int] = None
    last_updated_by_role: Optional[str] = None
    days: List[LeaveDayOut] = []

    model_config = ConfigDict(from_attributes=True)


class LeaveListItemOut(LeaveOut):
    """Leave request with day-derived display fields"""
    employee_name: Optional[str] = None
    employee_code: Optional[str] = None
    display_status: LeaveStatus
    approved_days: Decimal
    rejected_days: Decimal
    pending_days: Decimal
    rejection_reason: Optional[str] = None
    approver_name: Optional[str] = None


class LeaveListResponse(BaseModel):
    items: List[LeaveListItemOut]
    total: int
    page: int
    limit: int


class DecidedLeaveItemOut(LeaveListItemOut):
    """Decided request with the approver at each tier"""
    manager_name: Optional[str] = None
    hr_name: Optional[str] = None
    super_admin_name: Optional[str] = None
    approved_dates: List[date] = []
    rejected_dates: List[date] = []


class DecidedLeaveListResponse(BaseModel):
    items: List[DecidedLeaveItemOut]
    total: int
    page: int
    limit: int


class ApproveDaysResult(BaseModel):
    approved: int
    auto_rejected: int
    status: LeaveStatus


class RejectDaysResult(BaseModel):
    rejected: int
    status: LeaveStatus


class ConversionResult(BaseModel):
    leave_request: LeaveOut
    previous_casual_balance: float
    new_casual_balance: float
    previous_lop_balance: float
    new_lop_balance: float


class BalancesOut(BaseModel):
    casual: float
    sick: float
    lop: float


class LeaveRuleOut(BaseModel):
    leave_required: str = Field(..., description="Casual leave length band")
    prior_information_days: int = Field(..., description="Minimum notice in calendar days")


class MessageOut(BaseModel):
    message: str
    details: Optional[Dict[str, str]] = None
