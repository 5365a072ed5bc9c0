from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_engine.database import Base


class Employee(Base):
    """
    A person record, distinct from the Account used to log in.

    supervisor_id / reviewer_id point at other employees. Nothing here stops
    those links from forming a cycle; readers only ever follow one hop.
    """
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)

    # Not every employee has login access
    account_id = Column(Integer, ForeignKey("accounts.id"), unique=True, nullable=True, index=True)

    supervisor_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    reviewer_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)

    department = Column(String, nullable=True)
    position = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    account = relationship("Account", back_populates="employee_profile")
    supervisor = relationship("Employee", remote_side=[id], foreign_keys=[supervisor_id])
    reviewer = relationship("Employee", remote_side=[id], foreign_keys=[reviewer_id])

    def __repr__(self):
        return f"<Employee {self.id}: {self.full_name}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
