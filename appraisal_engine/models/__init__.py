# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import account, employee, performance_plan, appraisal, audit_log

# Explicit class exports for cleaner imports
from .account import Account, AccountRole
from .employee import Employee
from .performance_plan import PerformancePlan, PlanStatus
from .appraisal import Appraisal, AppraisalStatus, WorkflowAction, WorkflowRole
from .audit_log import AuditLog

__all__ = [
    "Account",
    "AccountRole",
    "Employee",
    "PerformancePlan",
    "PlanStatus",
    "Appraisal",
    "AppraisalStatus",
    "WorkflowAction",
    "WorkflowRole",
    "AuditLog",
]
