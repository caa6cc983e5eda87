"""
Holiday calendar service - business logic for holiday management
"""
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_
from app.core.errors import ConflictError, LeaveValidationError, NotFoundError
from app.models.holiday import Holiday
from app.services.audit_service import log_audit


def _ensure_unique(db: Session, holiday_date: date, exclude_id: Optional[int] = None) -> None:
    query = db.query(Holiday).filter(Holiday.date == holiday_date)
    if exclude_id is not None:
        query = query.filter(Holiday.id != exclude_id)
    if query.first():
        raise ConflictError(f"Holiday already exists for date {holiday_date}")


def create_holiday(
    db: Session,
    year: int,
    holiday_date: date,
    name: str,
    active: bool = True,
    actor_id: Optional[int] = None
) -> Holiday:
    """
    Create a new holiday

    Args:
        db: Database session
        year: Calendar year
        holiday_date: Holiday date
        name: Holiday name
        active: Whether holiday is active
        actor_id: ID of user creating the holiday

    Returns:
        Created Holiday instance

    Raises:
        LeaveValidationError: If the date is outside the year or the name is blank
        ConflictError: If a holiday already exists on that date
    """
    if holiday_date.year != year:
        raise LeaveValidationError(f"Date {holiday_date} does not fall within year {year}")
    if not name or not name.strip():
        raise LeaveValidationError("Holiday name is required")

    _ensure_unique(db, holiday_date)

    # Explicit timestamps: SQLite server defaults are not reliable here
    now = datetime.now(timezone.utc)
    holiday = Holiday(
        year=year,
        date=holiday_date,
        name=name.strip(),
        active=active,
        created_at=now,
        updated_at=now
    )
    db.add(holiday)
    db.flush()

    if actor_id:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="HOLIDAY_CREATE",
            entity_type="holidays",
            entity_id=holiday.id,
            meta={"year": year, "date": holiday_date, "name": holiday.name}
        )

    db.commit()
    db.refresh(holiday)
    return holiday


def list_holidays(
    db: Session,
    year: Optional[int] = None,
    active_only: bool = False
) -> List[Holiday]:
    """List holidays, optionally filtered by year and active flag"""
    query = db.query(Holiday)

    if year:
        query = query.filter(Holiday.year == year)

    if active_only:
        query = query.filter(Holiday.active == True)  # noqa: E712

    return query.order_by(Holiday.date).all()


def get_holiday(db: Session, holiday_id: int) -> Holiday:
    holiday = db.query(Holiday).filter(Holiday.id == holiday_id).first()
    if not holiday:
        raise NotFoundError(f"Holiday with id {holiday_id} not found")
    return holiday


def update_holiday(
    db: Session,
    holiday_id: int,
    holiday_date: Optional[date] = None,
    name: Optional[str] = None,
    active: Optional[bool] = None,
    actor_id: Optional[int] = None
) -> Holiday:
    """
    Update a holiday

    Moving a holiday to a new date also moves its year.

    Raises:
        NotFoundError: If holiday not found
        ConflictError: If another holiday already occupies the new date
    """
    holiday = get_holiday(db, holiday_id)

    if holiday_date is not None and holiday_date != holiday.date:
        _ensure_unique(db, holiday_date, exclude_id=holiday.id)
        holiday.date = holiday_date
        holiday.year = holiday_date.year
    if name is not None:
        if not name.strip():
            raise LeaveValidationError("Holiday name is required")
        holiday.name = name.strip()
    if active is not None:
        holiday.active = active

    holiday.updated_at = datetime.now(timezone.utc)

    if actor_id:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="HOLIDAY_UPDATE",
            entity_type="holidays",
            entity_id=holiday.id,
            meta={"date": holiday_date, "name": name, "active": active}
        )

    db.commit()
    db.refresh(holiday)
    return holiday


def delete_holiday(db: Session, holiday_id: int, actor_id: Optional[int] = None) -> None:
    holiday = get_holiday(db, holiday_id)
    if actor_id:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="HOLIDAY_DELETE",
            entity_type="holidays",
            entity_id=holiday.id,
            meta={"date": holiday.date, "name": holiday.name}
        )
    db.delete(holiday)
    db.commit()


def get_holiday_map(
    db: Session,
    from_date: date,
    to_date: date
) -> Dict[date, str]:
    """
    Active holidays within a date range

    Args:
        db: Database session
        from_date: Start date (inclusive)
        to_date: End date (inclusive)

    Returns:
        {holiday date: holiday name}
    """
    rows = db.query(Holiday.date, Holiday.name).filter(
        and_(
            Holiday.active == True,  # noqa: E712
            Holiday.date >= from_date,
            Holiday.date <= to_date
        )
    ).all()

    return {holiday_date: name for holiday_date, name in rows}
