"""
Draft reconciliation: one active draft per (employee, plan, appraisal type).

Saving a draft twice must update the first draft rather than create a second
row. Nothing here commits; the orchestrating service owns the transaction.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from appraisal_engine.core.documents import merge_comments, normalize_comments
from appraisal_engine.core.exceptions import DuplicateSubmissionError
from appraisal_engine.models.appraisal import Appraisal, AppraisalStatus
from appraisal_engine.models.performance_plan import PerformancePlan
from appraisal_engine.services.repository import AppraisalRepository
from appraisal_engine.services.state_machine import AppraisalStateMachine

logger = logging.getLogger(__name__)

# Overwrite wholesale when present in the patch, otherwise keep what is stored.
# supervisor_assessment is not listed: only the supervisor side writes it.
# The same goes for the supervisor and reviewer comment lists, see merge_comments.
SCALAR_FIELDS = ("overall_rating",)
DOCUMENT_FIELDS = ("self_assessment", "value_goals_assessment")


class DraftReconciler:
    def __init__(
        self,
        db: Session,
        state_machine: Optional[AppraisalStateMachine] = None,
        repository: Optional[AppraisalRepository] = None,
    ):
        self.db = db
        self.state_machine = state_machine or AppraisalStateMachine()
        self.repository = repository or AppraisalRepository(db)

    def _triple_query(self, employee_id: int, plan_id: int, appraisal_type: str):
        return self.db.query(Appraisal).filter(
            Appraisal.employee_id == employee_id,
            Appraisal.plan_id == plan_id,
            Appraisal.appraisal_type == appraisal_type,
        )

    def find_active_draft(self, employee_id: int, plan_id: int, appraisal_type: str) -> Optional[Appraisal]:
        # Newest first in case an older store predates the unique draft index
        return self._triple_query(employee_id, plan_id, appraisal_type).filter(
            Appraisal.status == AppraisalStatus.DRAFT.value
        ).order_by(Appraisal.updated_at.desc(), Appraisal.id.desc()).first()

    def find_post_draft(self, employee_id: int, plan_id: int, appraisal_type: str) -> Optional[Appraisal]:
        return self._triple_query(employee_id, plan_id, appraisal_type).filter(
            Appraisal.status != AppraisalStatus.DRAFT.value
        ).order_by(Appraisal.created_at.desc(), Appraisal.id.desc()).first()

    @staticmethod
    def merge_patch(appraisal: Appraisal, patch: Dict[str, Any]) -> Appraisal:
        """Apply the self-service fields of ``patch``; absent keys keep stored values."""
        for name in SCALAR_FIELDS + DOCUMENT_FIELDS:
            if name in patch and patch[name] is not None:
                # JSON columns only notice reassignment, so always hand over a fresh object
                value = patch[name]
                setattr(appraisal, name, dict(value) if isinstance(value, dict) else value)
        if patch.get("comments") is not None:
            appraisal.comments = merge_comments(appraisal.comments, patch["comments"])
        return appraisal

    def upsert_draft(
        self,
        employee_id: int,
        plan: PerformancePlan,
        appraisal_type: str,
        patch: Dict[str, Any],
    ) -> Appraisal:
        """
        Merge ``patch`` into the active draft for the triple, or start one.

        Raises DuplicateSubmissionError when the triple already has a record
        past draft; the caller should edit that record instead.
        """
        requested = AppraisalStatus(patch.get("status") or AppraisalStatus.DRAFT)

        existing = self.find_active_draft(employee_id, plan.id, appraisal_type)
        if existing is not None:
            self.merge_patch(existing, patch)
            self.state_machine.apply(existing, requested, plan)
            self.db.flush()
            logger.info(
                f"Merged save into draft appraisal {existing.id}",
                extra={"appraisal_id": existing.id, "employee_id": employee_id}
            )
            return existing

        submitted = self.find_post_draft(employee_id, plan.id, appraisal_type)
        if submitted is not None:
            logger.info(
                f"Refusing new appraisal for employee {employee_id}: appraisal {submitted.id} is {submitted.status}",
                extra={"appraisal_id": submitted.id, "employee_id": employee_id}
            )
            raise DuplicateSubmissionError(submitted.id)

        appraisal = Appraisal(
            employee_id=employee_id,
            plan_id=plan.id,
            supervisor_account_id=plan.supervisor_account_id,
            reviewer_account_id=plan.reviewer_account_id,
            appraisal_type=appraisal_type,
            status=AppraisalStatus.DRAFT.value,
            overall_rating=0,
            comments=normalize_comments(None),
        )
        self.merge_patch(appraisal, patch)
        # Checked before the row is added so a rejected submission writes nothing
        self.state_machine.apply(appraisal, requested, plan)
        self.repository.add_appraisal(appraisal)
        logger.info(
            f"Created appraisal {appraisal.id} for employee {employee_id}",
            extra={"appraisal_id": appraisal.id, "employee_id": employee_id}
        )
        return appraisal
