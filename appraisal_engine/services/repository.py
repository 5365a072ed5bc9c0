"""
Store lookups and writes the appraisal engine depends on.

All calls are synchronous and return-or-fail. Writes only add and flush;
committing belongs to the caller.
"""
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from appraisal_engine.core.exceptions import NotFoundError
from appraisal_engine.models.account import Account
from appraisal_engine.models.employee import Employee
from appraisal_engine.models.performance_plan import PerformancePlan
from appraisal_engine.models.appraisal import Appraisal


class AppraisalRepository:
    def __init__(self, db: Session):
        self.db = db

    # --- Lookups ---

    def find_account(self, account_id: int) -> Optional[Account]:
        return self.db.get(Account, account_id)

    def find_employee(self, employee_id: int) -> Optional[Employee]:
        return self.db.get(Employee, employee_id)

    def get_employee(self, employee_id: int) -> Employee:
        employee = self.find_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def get_employee_by_email(self, email: str) -> Employee:
        employee = self.db.query(Employee).filter(func.lower(Employee.email) == email.strip().lower()).first()
        if employee is None:
            raise NotFoundError("Employee", email)
        return employee

    def find_employee_for_account(self, account_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.account_id == account_id).first()

    def get_plan(self, plan_id: int) -> PerformancePlan:
        plan = self.db.get(PerformancePlan, plan_id)
        if plan is None:
            raise NotFoundError("PerformancePlan", plan_id)
        return plan

    def find_plan(self, employee_id: int, year: int) -> Optional[PerformancePlan]:
        return self.db.query(PerformancePlan).filter(
            PerformancePlan.employee_id == employee_id,
            PerformancePlan.year == year
        ).first()

    def get_appraisal(self, appraisal_id: int) -> Appraisal:
        appraisal = self.db.get(Appraisal, appraisal_id)
        if appraisal is None:
            raise NotFoundError("Appraisal", appraisal_id)
        return appraisal

    # --- Writes ---

    def add_appraisal(self, appraisal: Appraisal) -> Appraisal:
        self.db.add(appraisal)
        self.db.flush()
        return appraisal

    def add_plan(self, plan: PerformancePlan) -> PerformancePlan:
        self.db.add(plan)
        self.db.flush()
        return plan
