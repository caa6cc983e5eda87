"""
Approval hierarchy - reporting chain resolution and authorization matrix

The chain is derived from Employee.reporting_manager_id:
L1 = reporting manager, L2 = L1's manager, L3 = L2's manager.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError
from app.models.employee import Employee, Role

logger = logging.getLogger(__name__)

CHAIN_DEPTH = 3

# Roles HR may act on; HR never acts on HR or super admin peers
HR_ACTIONABLE_ROLES = frozenset({Role.INTERN.value, Role.EMPLOYEE.value, Role.MANAGER.value})

# Roles that finalize a request when they sit above the approving manager
ESCALATION_ROLES = frozenset({Role.HR.value, Role.SUPER_ADMIN.value})


def resolve_chain(db: Session, employee_id: int, depth: int = CHAIN_DEPTH) -> List[Employee]:
    """
    Resolve an employee's approval chain.

    Args:
        db: Database session
        employee_id: Employee whose chain is resolved
        depth: Number of levels to walk (L1..L3 by default)

    Returns:
        [L1, L2, L3] as Employee rows, shorter when the chain ends early.
        Walking stops on a reporting cycle.
    """
    chain: List[Employee] = []
    seen = {employee_id}
    current = db.query(Employee).filter(Employee.id == employee_id).first()

    while current is not None and current.reporting_manager_id and len(chain) < depth:
        if current.reporting_manager_id in seen:
            logger.warning(
                "reporting cycle detected: employee_id=%s manager_id=%s",
                employee_id, current.reporting_manager_id,
            )
            break
        manager = db.query(Employee).filter(Employee.id == current.reporting_manager_id).first()
        if manager is None:
            break
        chain.append(manager)
        seen.add(manager.id)
        current = manager

    return chain


def can_act_on(actor: Employee, employee: Employee, chain: List[Employee]) -> bool:
    """
    Approve/reject authorization matrix.

    - super admin: anyone but themselves
    - HR: L1 or L2 of an intern, employee or manager
    - manager: direct reports only
    """
    if actor.id == employee.id:
        return False
    if actor.role == Role.SUPER_ADMIN.value:
        return True
    if actor.role == Role.HR.value:
        upper_ids = [m.id for m in chain[:2]]
        return actor.id in upper_ids and employee.role in HR_ACTIONABLE_ROLES
    if actor.role == Role.MANAGER.value:
        return employee.reporting_manager_id == actor.id
    return False


def authorize_action(db: Session, actor: Employee, employee: Employee, verb: str = "approve") -> List[Employee]:
    """
    Raise ForbiddenError unless actor may approve/reject employee's leave.

    Returns the resolved chain so callers can reuse it.
    """
    if actor.id == employee.id:
        raise ForbiddenError(f"Cannot {verb} your own leave request")
    if actor.role not in (Role.SUPER_ADMIN.value, Role.HR.value, Role.MANAGER.value):
        raise ForbiddenError(f"Not authorized to {verb} leaves")

    chain = resolve_chain(db, employee.id)
    if not can_act_on(actor, employee, chain):
        logger.warning(
            "leave authorization denied: actor_id=%s actor_role=%s employee_id=%s verb=%s",
            actor.id, actor.role, employee.id, verb,
        )
        raise ForbiddenError(f"Not authorized to {verb} this leave")
    return chain


def can_view(db: Session, actor: Employee, employee: Employee) -> bool:
    """Read access: owner, super admin, anyone in L1..L3, or anyone allowed to act."""
    if actor.id == employee.id or actor.role == Role.SUPER_ADMIN.value:
        return True
    if actor.role not in (Role.HR.value, Role.MANAGER.value):
        return False
    chain = resolve_chain(db, employee.id)
    if actor.id in [m.id for m in chain]:
        return True
    return can_act_on(actor, employee, chain)


def can_edit(db: Session, actor: Employee, employee: Employee) -> bool:
    """Edit access: owner, super admin, HR on L1/L2 of non-HR staff, manager on direct reports."""
    if actor.id == employee.id or actor.role == Role.SUPER_ADMIN.value:
        return True
    if actor.role == Role.HR.value:
        return can_act_on(actor, employee, resolve_chain(db, employee.id, depth=2))
    if actor.role == Role.MANAGER.value:
        return employee.reporting_manager_id == actor.id
    return False


def is_terminal_approver(actor: Employee, chain: List[Employee]) -> bool:
    """
    Whether an approval by actor finalizes the request.

    Super admin and HR always finalize. A manager finalizes only when no HR
    or super admin sits above them in the employee's chain, so every chain
    reaches a terminal tier.
    """
    if actor.role in ESCALATION_ROLES:
        return True
    if actor.role != Role.MANAGER.value:
        return False
    ids = [m.id for m in chain]
    above = chain[ids.index(actor.id) + 1:] if actor.id in ids else []
    return not any(m.role in ESCALATION_ROLES for m in above)


def next_approver(actor: Employee, chain: List[Employee]) -> Optional[Employee]:
    """First HR/super admin above actor in the chain, if any."""
    ids = [m.id for m in chain]
    above = chain[ids.index(actor.id) + 1:] if actor.id in ids else chain
    for manager in above:
        if manager.role in ESCALATION_ROLES:
            return manager
    return None
