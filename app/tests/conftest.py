"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from app.main import app
from app.db.base import Base
from app.core.deps import get_db, get_today
from app.core.security import create_access_token
from app.services import notification_service
from app.services.certificate_store import CertificateStore, set_certificate_store

# Import all models to ensure they're registered with Base.metadata
from app.models import (
    Employee,
    EmployeeStatus,
    Role,
    AuditLog,
    LeaveRequest,
    LeaveDay,
    LeaveBalance,
    Holiday,
    Notification,
)  # noqa


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

# Monday; every leave date in the tests is relative to this
TODAY = date(2026, 3, 2)

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database and calendar overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_employee(
    db: Session,
    emp_code: str,
    role: Role,
    manager: Optional[Employee] = None,
    status: EmployeeStatus = EmployeeStatus.ACTIVE,
    casual: Optional[str] = None,
    sick: Optional[str] = None,
    lop: Optional[str] = None,
) -> Employee:
    """Create an employee, with a balance row when any balance is given"""
    employee = Employee(
        emp_code=emp_code,
        name=f"{role.value.title()} {emp_code}",
        email=f"{emp_code.lower()}@example.com",
        role=role.value,
        status=status.value,
        reporting_manager_id=manager.id if manager else None,
        join_date=date(2024, 1, 1),
        active=True,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)

    if casual is not None or sick is not None or lop is not None:
        db.add(LeaveBalance(
            employee_id=employee.id,
            casual_balance=Decimal(casual or "0"),
            sick_balance=Decimal(sick or "0"),
            lop_balance=Decimal(lop if lop is not None else "10"),
        ))
        db.commit()
    return employee


def auth_headers(employee: Employee) -> Dict[str, str]:
    token = create_access_token({"sub": str(employee.id)})
    return {"Authorization": f"Bearer {token}"}


def get_balance(db: Session, employee: Employee) -> LeaveBalance:
    db.expire_all()
    return db.query(LeaveBalance).filter(LeaveBalance.employee_id == employee.id).one()


@pytest.fixture
def org(db: Session) -> Dict[str, Employee]:
    """
    Standard reporting chain

    super admin <- hr <- manager <- employee / intern
    """
    super_admin = create_employee(db, "SA001", Role.SUPER_ADMIN)
    hr = create_employee(db, "HR001", Role.HR, manager=super_admin)
    manager = create_employee(db, "MGR001", Role.MANAGER, manager=hr)
    employee = create_employee(db, "EMP001", Role.EMPLOYEE, manager=manager, casual="5", sick="5", lop="10")
    intern = create_employee(db, "INT001", Role.INTERN, manager=manager, casual="5", sick="5", lop="10")
    outsider_hr = create_employee(db, "HR002", Role.HR, manager=super_admin)
    return {
        "super_admin": super_admin,
        "hr": hr,
        "manager": manager,
        "employee": employee,
        "intern": intern,
        "outsider_hr": outsider_hr,
    }


@pytest.fixture
def captured_events():
    """Collect every emitted leave event"""
    events: List[notification_service.LeaveEvent] = []

    def capture(db, event):
        events.append(event)

    notification_service.subscribe(capture)
    yield events
    notification_service.unsubscribe(capture)


@pytest.fixture
def certificate_store(tmp_path):
    store = CertificateStore(str(tmp_path), "medical-certificates/")
    set_certificate_store(store)
    yield store
    set_certificate_store(None)


def apply_for(client: TestClient, employee: Employee, leave_type: str, start: date, end: Optional[date] = None, **fields):
    """POST /leaves/apply as employee; returns the raw response"""
    body = {
        "leave_type": leave_type,
        "start_date": start.isoformat(),
        "end_date": (end or start).isoformat(),
        "reason": "Personal work",
    }
    body.update(fields)
    return client.post("/api/v1/leaves/apply", json=body, headers=auth_headers(employee))
