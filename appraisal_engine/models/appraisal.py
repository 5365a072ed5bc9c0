from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, Index, text
from sqlalchemy.orm import relationship
from appraisal_engine.database import Base
import enum


def _utcnow():
    return datetime.now(timezone.utc)


class AppraisalStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    SUPERVISOR_REVIEW = "supervisor_review"
    REVIEWER_ASSESSMENT = "reviewer_assessment"
    REVISION_REQUESTED = "revision_requested"
    APPROVED = "approved"
    REJECTED = "rejected"


# At most one draft per (employee, plan, type). The partial index closes the
# find-then-insert race between two concurrent first saves.
ACTIVE_DRAFT_INDEX = "uq_appraisal_active_draft"


class Appraisal(Base):
    __tablename__ = "appraisals"
    __table_args__ = (
        Index(
            ACTIVE_DRAFT_INDEX,
            "employee_id", "plan_id", "appraisal_type",
            unique=True,
            sqlite_where=text("status = 'draft'"),
            postgresql_where=text("status = 'draft'"),
        ),
        Index("ix_appraisal_triple", "employee_id", "plan_id", "appraisal_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("performance_plans.id"), nullable=False, index=True)

    # Account ids of the people who approve, not employee ids
    supervisor_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)
    reviewer_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)

    appraisal_type = Column(String, nullable=False, default="annual")
    status = Column(String, nullable=False, default=AppraisalStatus.DRAFT.value, index=True)
    overall_rating = Column(Float, nullable=False, default=0)

    self_assessment = Column(JSON, nullable=True)
    supervisor_assessment = Column(JSON, nullable=True)
    value_goals_assessment = Column(JSON, nullable=True)
    comments = Column(JSON, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    supervisor_approved_at = Column(DateTime(timezone=True), nullable=True)
    reviewer_approved_at = Column(DateTime(timezone=True), nullable=True)

    # Python-side defaults keep sub-second ordering on SQLite
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    employee = relationship("Employee", backref="appraisals")
    plan = relationship("PerformancePlan", backref="appraisals")

    def __repr__(self):
        return f"<Appraisal {self.id}: employee={self.employee_id} {self.appraisal_type} [{self.status}]>"


class WorkflowRole(str, enum.Enum):
    SUPERVISOR = "supervisor"
    REVIEWER = "reviewer"


class WorkflowAction(str, enum.Enum):
    COMMENT = "comment"
    BEGIN_REVIEW = "begin_review"
    APPROVE = "approve"
    FINAL_APPROVE = "final_approve"
    REQUEST_CHANGES = "request_changes"
    REJECT = "reject"
