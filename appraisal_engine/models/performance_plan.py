from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_engine.database import Base
import enum


class PlanStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class PerformancePlan(Base):
    __tablename__ = "performance_plans"
    __table_args__ = (
        UniqueConstraint("employee_id", "year", name="uq_plan_employee_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    supervisor_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    reviewer_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)

    year = Column(Integer, nullable=False)
    period_label = Column(String, nullable=False)
    period_start = Column(Date, nullable=True)
    period_end = Column(Date, nullable=True)
    status = Column(String, default=PlanStatus.DRAFT.value, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("Employee", backref="performance_plans")

    def __repr__(self):
        return f"<PerformancePlan {self.id}: employee={self.employee_id} {self.period_label}>"
