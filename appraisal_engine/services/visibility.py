"""
Visibility rules for appraisal records.

HR-privileged roles see every appraisal. Everyone else sees a record only
when they approve it (by account id on the record) or when they supervise or
review its employee (by employee-level link). Both paths are honored so that
moving an employee to a new supervisor is reflected without rewriting the
account ids on existing appraisals.
"""
from typing import Optional

from sqlalchemy import and_, or_, true
from sqlalchemy.sql.elements import ColumnElement

from appraisal_engine.core.roles import RoleTable
from appraisal_engine.models.account import AccountRole
from appraisal_engine.models.appraisal import Appraisal
from appraisal_engine.services.identity import ActorContext


class VisibilityFilter:
    def __init__(self, role_table: RoleTable):
        self.role_table = role_table

    def is_privileged(self, role: AccountRole) -> bool:
        return self.role_table.is_hr_privileged(role)

    def build_predicate(
        self,
        actor: ActorContext,
        role: AccountRole,
        employee_id_filter: Optional[int] = None,
    ) -> ColumnElement:
        """Return a WHERE clause over Appraisal. A filter only ever narrows."""
        if self.is_privileged(role):
            if employee_id_filter is not None:
                return Appraisal.employee_id == employee_id_filter
            return true()

        related = or_(
            Appraisal.supervisor_account_id == actor.account_id,
            Appraisal.reviewer_account_id == actor.account_id,
            Appraisal.employee_id.in_(sorted(actor.supervised_employees)),
            Appraisal.employee_id.in_(sorted(actor.reviewed_employees)),
        )
        if employee_id_filter is not None:
            return and_(Appraisal.employee_id == employee_id_filter, related)
        return related

    def is_visible(self, actor: ActorContext, role: AccountRole, appraisal: Appraisal) -> bool:
        """Same rule as build_predicate, evaluated against a loaded record."""
        if self.is_privileged(role):
            return True
        return (
            appraisal.supervisor_account_id == actor.account_id
            or appraisal.reviewer_account_id == actor.account_id
            or actor.supervises(appraisal.employee_id)
            or actor.reviews(appraisal.employee_id)
        )

    def can_act_as_supervisor(self, actor: ActorContext, appraisal: Appraisal) -> bool:
        return (
            self.is_privileged(actor.role)
            or appraisal.supervisor_account_id == actor.account_id
            or actor.supervises(appraisal.employee_id)
        )

    def can_act_as_reviewer(self, actor: ActorContext, appraisal: Appraisal) -> bool:
        return (
            self.is_privileged(actor.role)
            or appraisal.reviewer_account_id == actor.account_id
            or actor.reviews(appraisal.employee_id)
        )
