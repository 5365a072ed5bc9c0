"""
Appraisal lifecycle.

    draft -> submitted -> supervisor_review -> reviewer_assessment -> approved

Any review state may send the record to revision_requested (which returns to
draft or straight back to submitted) or end it as rejected. A supervisor can
approve outright when no reviewer is assigned.

Only the move into ``submitted`` looks at content. The review steps are
gated by who is asking, and that check belongs to the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from appraisal_engine.core.exceptions import AppraisalValidationError, InvalidTransitionError
from appraisal_engine.models.appraisal import Appraisal, AppraisalStatus
from appraisal_engine.models.performance_plan import PerformancePlan

logger = logging.getLogger(__name__)

S = AppraisalStatus

TRANSITIONS: Mapping[AppraisalStatus, FrozenSet[AppraisalStatus]] = {
    S.DRAFT: frozenset({S.SUBMITTED}),
    S.REVISION_REQUESTED: frozenset({S.DRAFT, S.SUBMITTED}),
    S.SUBMITTED: frozenset({S.SUPERVISOR_REVIEW, S.REVISION_REQUESTED, S.REJECTED}),
    S.SUPERVISOR_REVIEW: frozenset({S.REVIEWER_ASSESSMENT, S.APPROVED, S.REVISION_REQUESTED, S.REJECTED}),
    S.REVIEWER_ASSESSMENT: frozenset({S.APPROVED, S.REVISION_REQUESTED, S.REJECTED}),
    S.APPROVED: frozenset(),
    S.REJECTED: frozenset(),
}

INITIAL_STATE = S.DRAFT
TERMINAL_STATES = frozenset({S.APPROVED, S.REJECTED})
EDITABLE_STATES = frozenset({S.DRAFT, S.REVISION_REQUESTED})

MIN_RATING = 1
MAX_RATING = 5


def _utcnow():
    return datetime.now(timezone.utc)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class AppraisalStateMachine:

    def allowed_transitions(self, current) -> FrozenSet[AppraisalStatus]:
        return TRANSITIONS[AppraisalStatus(current)]

    def validate_transition(
        self,
        current,
        requested,
        payload: Dict[str, Any],
        plan: Optional[PerformancePlan] = None,
        reviewer_assigned: bool = False,
    ) -> None:
        """
        Raise InvalidTransitionError or AppraisalValidationError if the move
        is not allowed. ``payload`` is the merged record content:
        self_assessment and overall_rating.

        With a reviewer assigned, supervisor_review can only move on to
        reviewer_assessment; the supervisor cannot approve outright.
        """
        current = AppraisalStatus(current)
        requested = AppraisalStatus(requested)

        if current in TERMINAL_STATES:
            raise InvalidTransitionError(current.value, requested.value)
        if requested == current:
            # Saving without moving
            return
        if requested not in TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, requested.value)
        if current == S.SUPERVISOR_REVIEW and requested == S.APPROVED and reviewer_assigned:
            raise InvalidTransitionError(current.value, requested.value)

        if requested == S.SUBMITTED and current in EDITABLE_STATES:
            errors = self.submission_errors(payload, plan)
            if errors:
                raise AppraisalValidationError(errors)

    def submission_errors(self, payload: Dict[str, Any], plan: Optional[PerformancePlan]) -> List[Dict[str, str]]:
        """Every reason the payload cannot be submitted, in one pass."""
        errors: List[Dict[str, str]] = []
        self_assessment = payload.get("self_assessment") or {}

        achievements = self_assessment.get("achievements")
        if not isinstance(achievements, list) or not achievements:
            errors.append({
                "field": "self_assessment.achievements",
                "msg": "At least one achievement must be assessed"
            })
        else:
            for i, item in enumerate(achievements):
                item = item if isinstance(item, dict) else {}
                if _is_blank(item.get("achievement_status")):
                    errors.append({
                        "field": f"self_assessment.achievements[{i}].achievement_status",
                        "msg": f"Achievement {i + 1} must have an achievement status"
                    })
                if _is_blank(item.get("comment")):
                    errors.append({
                        "field": f"self_assessment.achievements[{i}].comment",
                        "msg": f"Achievement {i + 1} must have a comment"
                    })

        categories = self_assessment.get("performance_categories")
        if not isinstance(categories, list) or not categories:
            errors.append({
                "field": "self_assessment.performance_categories",
                "msg": "At least one performance category must be rated"
            })
        else:
            for i, category in enumerate(categories):
                category = category if isinstance(category, dict) else {}
                name = category.get("name") or f"Category {i + 1}"
                rating = category.get("rating")
                if not isinstance(rating, (int, float)) or isinstance(rating, bool) or rating == 0:
                    errors.append({
                        "field": f"self_assessment.performance_categories[{i}].rating",
                        "msg": f"{name} must have a rating"
                    })
                elif not MIN_RATING <= rating <= MAX_RATING:
                    errors.append({
                        "field": f"self_assessment.performance_categories[{i}].rating",
                        "msg": f"{name} rating must be between {MIN_RATING} and {MAX_RATING}"
                    })

        # 0 is the stored "not rated yet" value
        overall = payload.get("overall_rating")
        if overall is None or overall == 0:
            errors.append({"field": "overall_rating", "msg": "Overall rating is required"})
        elif not MIN_RATING <= overall <= MAX_RATING:
            errors.append({
                "field": "overall_rating",
                "msg": f"Overall rating must be between {MIN_RATING} and {MAX_RATING}"
            })

        if plan is None or plan.period_start is None or plan.period_end is None:
            errors.append({
                "field": "review_period",
                "msg": "Review period dates could not be resolved from the performance plan"
            })
        elif plan.period_start >= plan.period_end:
            errors.append({
                "field": "review_period",
                "msg": "Review period end date must be after start date"
            })

        return errors

    def apply(self, appraisal: Appraisal, requested, plan: Optional[PerformancePlan] = None) -> Appraisal:
        """Validate, then move ``appraisal`` into ``requested`` and stamp timestamps."""
        requested = AppraisalStatus(requested)
        current = AppraisalStatus(appraisal.status or INITIAL_STATE)
        payload = {
            "self_assessment": appraisal.self_assessment,
            "overall_rating": appraisal.overall_rating,
        }
        self.validate_transition(
            current, requested, payload, plan or appraisal.plan,
            reviewer_assigned=appraisal.reviewer_account_id is not None,
        )

        if requested == current:
            return appraisal

        appraisal.status = requested.value
        now = _utcnow()
        if requested == S.SUBMITTED and appraisal.submitted_at is None:
            appraisal.submitted_at = now
        elif requested == S.APPROVED and appraisal.approved_at is None:
            appraisal.approved_at = now

        logger.info(
            f"Appraisal {appraisal.id} moved {current.value} -> {requested.value}",
            extra={"appraisal_id": appraisal.id}
        )
        return appraisal
