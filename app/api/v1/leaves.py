"""
Leave endpoints
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_today
from app.models.employee import Employee
from app.models.leave import LeaveType
from app.schemas.leave import (
    LeaveApplyRequest,
    LeaveOut,
    LeaveListResponse,
    LeaveListItemOut,
    DecidedLeaveListResponse,
    ApprovalActionRequest,
    RejectActionRequest,
    DayIdsApproveRequest,
    DayIdsRejectRequest,
    LeaveStatusUpdateRequest,
    ApproveDaysResult,
    RejectDaysResult,
    ConversionResult,
    BalancesOut,
    LeaveRuleOut,
    MessageOut,
)
from app.services import approval_service
from app.services.balance_service import get_leave_balances
from app.services.leave_service import (
    apply_leave,
    update_leave_request,
    delete_leave_request,
    get_leave_request,
    describe_leave_request,
    list_my_leave_requests,
    list_pending_requests,
    list_approved_requests,
    get_leave_rules,
)

router = APIRouter()


@router.post("/apply", response_model=LeaveOut, status_code=201)
async def apply_leave_endpoint(
    leave_data: LeaveApplyRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    today: date = Depends(get_today),
):
    """
    Apply for leave (creates PENDING request)

    Any authenticated user except Super Admin applies for themselves.

    Validations:
    - Start/end on a working day (LOP exempt)
    - Type-specific date window and casual prior notice
    - No overlap with live leave days
    - Monthly LOP/Casual caps
    - Sufficient casual/sick balance
    """
    return apply_leave(db, current_user, leave_data, today)


@router.get("/my", response_model=LeaveListResponse)
async def list_my_leaves_endpoint(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """List the current user's leave requests, newest first"""
    return list_my_leave_requests(db, current_user, page=page, limit=limit)


@router.get("/balances", response_model=BalancesOut)
async def balances_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Current user's casual, sick and LOP balances"""
    return get_leave_balances(db, current_user)


@router.get("/rules", response_model=List[LeaveRuleOut])
async def leave_rules_endpoint(current_user: Employee = Depends(get_current_user)):
    """Casual leave prior-notice rules"""
    return get_leave_rules()


@router.get("/pending", response_model=LeaveListResponse)
async def list_pending_endpoint(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Employee code or name"),
    leave_type: Optional[LeaveType] = Query(None, description="Filter by leave type"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Leave requests awaiting the current user's decision

    - Manager: direct reports
    - HR: employees whose L1/L2 is the current user
    - Super Admin: everyone
    """
    return list_pending_requests(
        db, current_user, page=page, limit=limit, search=search, leave_type=leave_type
    )


@router.get("/approved", response_model=DecidedLeaveListResponse)
async def list_approved_endpoint(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Page size"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Fully decided leave requests within the current user's approval reach"""
    return list_approved_requests(db, current_user, page=page, limit=limit)


@router.get("/{leave_id}", response_model=LeaveListItemOut)
async def get_leave_endpoint(
    leave_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Get one leave request (owner, approvers and anyone above in the chain)"""
    leave_request = get_leave_request(db, leave_id, current_user)
    return describe_leave_request(db, leave_request)


@router.put("/{leave_id}", response_model=LeaveOut)
async def update_leave_endpoint(
    leave_id: int,
    leave_data: LeaveApplyRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    today: date = Depends(get_today),
):
    """
    Edit a leave request

    All days are recalculated and the approval pipeline restarts.
    """
    return update_leave_request(db, leave_id, current_user, leave_data, today)


@router.delete("/{leave_id}", response_model=MessageOut)
async def delete_leave_endpoint(
    leave_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Delete a pending leave request and refund its balance"""
    delete_leave_request(db, leave_id, current_user)
    return {"message": "Leave request deleted successfully"}


@router.post("/{leave_id}/approve", response_model=LeaveOut)
async def approve_leave_endpoint(
    leave_id: int,
    action_data: Optional[ApprovalActionRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Approve a leave request

    - Manager: direct reports (final only when no HR/Super Admin sits above)
    - HR: L1/L2 of intern, employee or manager
    - Super Admin: anyone
    - Cannot approve own leave
    """
    comment = action_data.comment if action_data else None
    return approval_service.approve_leave(db, leave_id, current_user, comment)


@router.post("/{leave_id}/reject", response_model=LeaveOut)
async def reject_leave_endpoint(
    leave_id: int,
    action_data: RejectActionRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Reject a leave request (reason required); charged days are refunded"""
    return approval_service.reject_leave(db, leave_id, current_user, action_data.comment)


@router.post("/{leave_id}/days/approve", response_model=ApproveDaysResult)
async def approve_leave_days_endpoint(
    leave_id: int,
    action_data: DayIdsApproveRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Approve the selected days; every other pending day is rejected and refunded"""
    result = approval_service.approve_leave_days(
        db, leave_id, action_data.day_ids, current_user, action_data.comment
    )
    return {k: result[k] for k in ("approved", "auto_rejected", "status")}


@router.post("/{leave_id}/days/reject", response_model=RejectDaysResult)
async def reject_leave_days_endpoint(
    leave_id: int,
    action_data: DayIdsRejectRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Reject the selected days"""
    result = approval_service.reject_leave_days(
        db, leave_id, action_data.day_ids, current_user, action_data.comment
    )
    return {k: result[k] for k in ("rejected", "status")}


@router.post("/{leave_id}/days/{day_id}/approve", response_model=LeaveOut)
async def approve_leave_day_endpoint(
    leave_id: int,
    day_id: int,
    action_data: Optional[ApprovalActionRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Approve a single day"""
    comment = action_data.comment if action_data else None
    return approval_service.approve_leave_day(db, leave_id, day_id, current_user, comment)


@router.post("/{leave_id}/days/{day_id}/reject", response_model=LeaveOut)
async def reject_leave_day_endpoint(
    leave_id: int,
    day_id: int,
    action_data: RejectActionRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Reject a single day and refund it"""
    return approval_service.reject_leave_day(db, leave_id, day_id, current_user, action_data.comment)


@router.patch("/{leave_id}/status", response_model=LeaveOut)
async def update_leave_status_endpoint(
    leave_id: int,
    status_data: LeaveStatusUpdateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Force a leave status (HR/Super Admin only)"""
    return approval_service.update_leave_status(
        db,
        leave_id,
        current_user,
        status_data.status,
        selected_day_ids=status_data.selected_day_ids,
        reason=status_data.reason,
    )


@router.post("/{leave_id}/convert-lop-to-casual", response_model=ConversionResult)
async def convert_lop_to_casual_endpoint(
    leave_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Convert a pending LOP request to Casual leave (HR/Super Admin only)"""
    return approval_service.convert_lop_to_casual(db, leave_id, current_user)
