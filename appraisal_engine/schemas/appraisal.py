from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from appraisal_engine.core.documents import normalize_comments, normalize_document
from appraisal_engine.models.appraisal import AppraisalStatus, WorkflowAction, WorkflowRole

DOCUMENT_FIELDS = ("self_assessment", "supervisor_assessment", "value_goals_assessment")


class AppraisalSaveRequest(BaseModel):
    """
    Input for SaveAppraisal.

    With ``appraisal_id`` the named record is updated. Without it the save is
    keyed on (employee, plan, appraisal type): the employee comes from
    ``employee_id``, ``employee_email`` or the caller's own employee record,
    and the plan defaults to the employee's plan for the current year.
    """
    appraisal_id: Optional[int] = None
    employee_id: Optional[int] = None
    employee_email: Optional[EmailStr] = None
    plan_id: Optional[int] = None
    appraisal_type: Optional[str] = Field(default=None, min_length=1, max_length=64)
    status: Optional[AppraisalStatus] = None

    overall_rating: Optional[float] = Field(default=None, ge=0, le=5)
    self_assessment: Optional[Dict[str, Any]] = None
    supervisor_assessment: Optional[Dict[str, Any]] = None
    value_goals_assessment: Optional[Dict[str, Any]] = None
    comments: Optional[Dict[str, Any]] = None

    @field_validator(*DOCUMENT_FIELDS, mode="before")
    @classmethod
    def _normalize_document(cls, value):
        return normalize_document(value)

    @field_validator("comments", mode="before")
    @classmethod
    def _normalize_comments(cls, value):
        return None if value is None else normalize_comments(value)

    def patch(self) -> Dict[str, Any]:
        """Content fields the caller actually sent."""
        return self.model_dump(
            exclude_unset=True,
            include={"status", "overall_rating", "comments", *DOCUMENT_FIELDS},
        )


class AppraisalResponse(BaseModel):
    id: int
    employee_id: int
    plan_id: int
    supervisor_account_id: Optional[int] = None
    reviewer_account_id: Optional[int] = None
    appraisal_type: str
    status: AppraisalStatus
    overall_rating: float = 0

    self_assessment: Optional[Dict[str, Any]] = None
    supervisor_assessment: Optional[Dict[str, Any]] = None
    value_goals_assessment: Optional[Dict[str, Any]] = None
    comments: Dict[str, Any] = Field(default_factory=dict)

    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    supervisor_approved_at: Optional[datetime] = None
    reviewer_approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    # Older rows may hold pre-serialized strings
    @field_validator(*DOCUMENT_FIELDS, mode="before")
    @classmethod
    def _normalize_document(cls, value):
        return normalize_document(value)

    @field_validator("comments", mode="before")
    @classmethod
    def _normalize_comments(cls, value):
        return normalize_comments(value)


class StatusCounts(BaseModel):
    draft: int = 0
    submitted: int = 0
    supervisor_review: int = 0
    reviewer_assessment: int = 0
    revision_requested: int = 0
    approved: int = 0
    rejected: int = 0
    pending: int = 0
    total: int = 0

    @classmethod
    def from_counts(cls, counts: Dict[str, int]) -> "StatusCounts":
        buckets = {s.value: int(counts.get(s.value, 0)) for s in AppraisalStatus}
        pending = (
            buckets[AppraisalStatus.SUBMITTED.value]
            + buckets[AppraisalStatus.SUPERVISOR_REVIEW.value]
            + buckets[AppraisalStatus.REVIEWER_ASSESSMENT.value]
        )
        return cls(**buckets, pending=pending, total=sum(buckets.values()))


class AppraisalListResponse(BaseModel):
    appraisals: List[AppraisalResponse]
    statistics: StatusCounts


class WorkflowActionRequest(BaseModel):
    role: WorkflowRole
    action: WorkflowAction
    comment: Optional[str] = Field(default=None, max_length=5000)


# Resolve forward references for Pydantic V2
AppraisalSaveRequest.model_rebuild()
AppraisalResponse.model_rebuild()
AppraisalListResponse.model_rebuild()
