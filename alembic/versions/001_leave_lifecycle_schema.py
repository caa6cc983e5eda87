"""Leave lifecycle schema

Revision ID: 001_leave_lifecycle
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_leave_lifecycle'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUM_VALUES = {
    'leavetype': ('CASUAL', 'SICK', 'LOP', 'PERMISSION'),
    'daygranularity': ('FULL', 'HALF', 'FIRST_HALF', 'SECOND_HALF'),
    'daytype': ('FULL', 'HALF'),
    'leavestatus': ('PENDING', 'APPROVED', 'REJECTED', 'PARTIALLY_APPROVED'),
    'daystatus': ('PENDING', 'APPROVED', 'REJECTED'),
    'approvalstatus': ('PENDING', 'APPROVED', 'REJECTED'),
}


def _enum(name: str) -> sa.Enum:
    """Enum column type; PostgreSQL types are created once, up front"""
    values = ENUM_VALUES[name]
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), 'postgresql'
    )


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name, values in ENUM_VALUES.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emp_code', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='ACTIVE'),
        sa.Column('reporting_manager_id', sa.Integer(), nullable=True),
        sa.Column('join_date', sa.Date(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['reporting_manager_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_employees_id'), 'employees', ['id'], unique=False)
    op.create_index(op.f('ix_employees_emp_code'), 'employees', ['emp_code'], unique=True)

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', _enum('leavetype'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('start_type', _enum('daygranularity'), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('end_type', _enum('daygranularity'), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('no_of_days', sa.Numeric(5, 2), nullable=False),
        sa.Column('permission_start_time', sa.Time(), nullable=True),
        sa.Column('permission_end_time', sa.Time(), nullable=True),
        sa.Column('doctor_note', sa.String(), nullable=True),
        sa.Column('current_status', _enum('leavestatus'), nullable=False, server_default='PENDING'),
        sa.Column('applied_date', sa.Date(), nullable=False),
        sa.Column('manager_approval_status', _enum('approvalstatus'), nullable=False, server_default='PENDING'),
        sa.Column('manager_approval_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('manager_approval_comment', sa.Text(), nullable=True),
        sa.Column('manager_approved_by', sa.Integer(), nullable=True),
        sa.Column('hr_approval_status', _enum('approvalstatus'), nullable=False, server_default='PENDING'),
        sa.Column('hr_approval_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hr_approval_comment', sa.Text(), nullable=True),
        sa.Column('hr_approved_by', sa.Integer(), nullable=True),
        sa.Column('super_admin_approval_status', _enum('approvalstatus'), nullable=False, server_default='PENDING'),
        sa.Column('super_admin_approval_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('super_admin_approval_comment', sa.Text(), nullable=True),
        sa.Column('super_admin_approved_by', sa.Integer(), nullable=True),
        sa.Column('last_updated_by', sa.Integer(), nullable=True),
        sa.Column('last_updated_by_role', sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['manager_approved_by'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['hr_approved_by'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['super_admin_approved_by'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['last_updated_by'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('start_date <= end_date', name='check_start_date_le_end_date')
    )
    op.create_index(op.f('ix_leave_requests_id'), 'leave_requests', ['id'], unique=False)
    op.create_index(op.f('ix_leave_requests_employee_id'), 'leave_requests', ['employee_id'], unique=False)
    op.create_index('ix_leave_requests_employee_dates', 'leave_requests', ['employee_id', 'start_date', 'end_date'], unique=False)

    op.create_table(
        'leave_days',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_date', sa.Date(), nullable=False),
        sa.Column('day_type', _enum('daytype'), nullable=False),
        sa.Column('leave_type', _enum('leavetype'), nullable=False),
        sa.Column('day_status', _enum('daystatus'), nullable=False, server_default='PENDING'),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['updated_by'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leave_days_id'), 'leave_days', ['id'], unique=False)
    op.create_index(op.f('ix_leave_days_leave_request_id'), 'leave_days', ['leave_request_id'], unique=False)
    op.create_index(op.f('ix_leave_days_employee_id'), 'leave_days', ['employee_id'], unique=False)
    op.create_index('ix_leave_days_employee_date', 'leave_days', ['employee_id', 'leave_date'], unique=False)

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('casual_balance', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('sick_balance', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('lop_balance', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['updated_by'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('casual_balance >= 0', name='check_casual_non_negative'),
        sa.CheckConstraint('sick_balance >= 0', name='check_sick_non_negative')
    )
    op.create_index(op.f('ix_leave_balances_id'), 'leave_balances', ['id'], unique=False)
    op.create_index(op.f('ix_leave_balances_employee_id'), 'leave_balances', ['employee_id'], unique=True)

    op.create_table(
        'holidays',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', 'date', name='uq_holiday_year_date')
    )
    op.create_index(op.f('ix_holidays_id'), 'holidays', ['id'], unique=False)
    op.create_index(op.f('ix_holidays_year'), 'holidays', ['year'], unique=False)
    op.create_index(op.f('ix_holidays_date'), 'holidays', ['date'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('audit_logs')
    op.drop_table('holidays')
    op.drop_table('leave_balances')
    op.drop_table('leave_days')
    op.drop_table('leave_requests')
    op.drop_table('employees')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name, values in ENUM_VALUES.items():
            postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
