"""
Account model: the login identity an actor authenticates as.
An account may or may not be linked to an Employee record.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from appraisal_engine.database import Base


class AccountRole(str, enum.Enum):
    """
    Account roles.

    Which of these see every appraisal is decided by the role table
    (see appraisal_engine.core.roles), not by the role itself.
    """
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    HR_ADMIN = "HR_ADMIN"
    HR_MANAGER = "HR_MANAGER"
    HR_STAFF = "HR_STAFF"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    role = Column(Enum(AccountRole), default=AccountRole.EMPLOYEE, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee_profile = relationship("Employee", back_populates="account", uselist=False)

    def __repr__(self):
        return f"<Account {self.email} ({self.role.value})>"
