"""
Identity resolution.

Appraisal records name their approvers by account id, while reporting lines
live on employee records. This module bridges the two: given an account it
finds the linked employee and the employees that employee directly
supervises or reviews.
"""
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from sqlalchemy.orm import Session

from appraisal_engine.core.exceptions import UnauthorizedError
from appraisal_engine.core.logging import account_id_var
from appraisal_engine.models.account import AccountRole
from appraisal_engine.models.employee import Employee
from appraisal_engine.services.repository import AppraisalRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorContext:
    account_id: int
    role: AccountRole
    employee_id: Optional[int] = None
    full_name: Optional[str] = None
    supervised_employees: FrozenSet[int] = field(default_factory=frozenset)
    reviewed_employees: FrozenSet[int] = field(default_factory=frozenset)

    def supervises(self, employee_id: int) -> bool:
        return employee_id in self.supervised_employees

    def reviews(self, employee_id: int) -> bool:
        return employee_id in self.reviewed_employees

    def owns(self, employee_id: int) -> bool:
        return self.employee_id is not None and self.employee_id == employee_id


class IdentityResolver:
    def __init__(self, db: Session, repository: Optional[AppraisalRepository] = None):
        self.db = db
        self.repository = repository or AppraisalRepository(db)

    def resolve_actor_context(self, account_id: int) -> ActorContext:
        """
        Build the actor's context. Direct reports only: a supervisor does not
        see their reports' reports, and cycles in the links cannot recurse.
        """
        account = self.repository.find_account(account_id)
        if account is None or not account.is_active:
            logger.warning(f"Actor resolution failed for account {account_id}")
            raise UnauthorizedError("Actor does not resolve to an active account")

        account_id_var.set(account.id)

        employee = self.repository.find_employee_for_account(account.id)
        if employee is None:
            return ActorContext(account_id=account.id, role=account.role, full_name=account.full_name)

        supervised = self._direct_links(Employee.supervisor_id, employee.id)
        reviewed = self._direct_links(Employee.reviewer_id, employee.id)

        return ActorContext(
            account_id=account.id,
            role=account.role,
            employee_id=employee.id,
            full_name=account.full_name or employee.full_name,
            supervised_employees=supervised,
            reviewed_employees=reviewed,
        )

    def _direct_links(self, column, employee_id: int) -> FrozenSet[int]:
        rows = self.db.query(Employee.id).filter(column == employee_id, Employee.id != employee_id).all()
        return frozenset(row[0] for row in rows)
