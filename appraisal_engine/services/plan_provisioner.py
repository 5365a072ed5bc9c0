import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from appraisal_engine.core.config import settings
from appraisal_engine.core.exceptions import MissingSupervisorAccountError
from appraisal_engine.models.performance_plan import PerformancePlan, PlanStatus
from appraisal_engine.services.repository import AppraisalRepository

logger = logging.getLogger(__name__)


class PlanProvisioner:
    """Makes sure an employee has a performance plan for a year before an appraisal attaches to it."""

    def __init__(self, db: Session, repository: Optional[AppraisalRepository] = None):
        self.db = db
        self.repository = repository or AppraisalRepository(db)

    def ensure_plan(self, employee_id: int, year: int) -> PerformancePlan:
        plan = self.repository.find_plan(employee_id, year)
        if plan is not None:
            return plan

        employee = self.repository.get_employee(employee_id)

        # The approving side must be able to log in; the reviewer is optional
        if employee.supervisor_id is None:
            raise MissingSupervisorAccountError(employee.id, "Employee has no supervisor assigned")
        supervisor = self.repository.get_employee(employee.supervisor_id)
        if supervisor.account_id is None:
            raise MissingSupervisorAccountError(employee.id, "Employee's supervisor has no login account")

        reviewer_account_id = None
        if employee.reviewer_id is not None:
            reviewer = self.repository.find_employee(employee.reviewer_id)
            reviewer_account_id = reviewer.account_id if reviewer else None

        plan = PerformancePlan(
            employee_id=employee.id,
            supervisor_account_id=supervisor.account_id,
            reviewer_account_id=reviewer_account_id,
            year=year,
            period_label=settings.default_period_label.format(year=year),
            period_start=date(year, 1, 1),
            period_end=date(year, 12, 31),
            status=PlanStatus.DRAFT.value,
        )

        # A concurrent provision of the same (employee, year) fails here with
        # IntegrityError; AppraisalService rolls back and retries the save.
        self.repository.add_plan(plan)

        logger.info(
            f"Provisioned plan {plan.id} ({plan.period_label}) for employee {employee.id}",
            extra={"plan_id": plan.id, "employee_id": employee.id}
        )
        return plan
