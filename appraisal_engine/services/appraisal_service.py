"""
Appraisal Service Layer

Orchestrates the appraisal engine for the routers:
- Router -> AppraisalService (this module) -> IdentityResolver / VisibilityFilter
  -> DraftReconciler / AppraisalStateMachine / PlanProvisioner -> Models

Every public operation resolves the actor first, scopes what they may see or
touch, and then either commits the whole change or rolls all of it back.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appraisal_engine.core.config import settings
from appraisal_engine.core.documents import normalize_comments
from appraisal_engine.core.exceptions import (
    AccessDeniedError,
    AppraisalValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from appraisal_engine.core.roles import RoleTable, load_role_table
from appraisal_engine.models.account import AccountRole
from appraisal_engine.models.appraisal import Appraisal, AppraisalStatus, WorkflowAction, WorkflowRole
from appraisal_engine.models.employee import Employee
from appraisal_engine.models.performance_plan import PerformancePlan
from appraisal_engine.schemas.appraisal import AppraisalSaveRequest, StatusCounts
from appraisal_engine.services.audit import AuditService
from appraisal_engine.services.base import BaseService
from appraisal_engine.services.draft_reconciler import DraftReconciler
from appraisal_engine.services.identity import ActorContext, IdentityResolver
from appraisal_engine.services.plan_provisioner import PlanProvisioner
from appraisal_engine.services.repository import AppraisalRepository
from appraisal_engine.services.state_machine import EDITABLE_STATES, AppraisalStateMachine
from appraisal_engine.services.visibility import VisibilityFilter

S = AppraisalStatus

# Reached only through apply_workflow_action, never through a save
REVIEW_SIDE_TARGETS = frozenset({
    S.SUPERVISOR_REVIEW, S.REVIEWER_ASSESSMENT, S.REVISION_REQUESTED, S.APPROVED, S.REJECTED,
})

ROLE_ACTIONS = {
    WorkflowRole.SUPERVISOR: frozenset({
        WorkflowAction.COMMENT, WorkflowAction.BEGIN_REVIEW, WorkflowAction.APPROVE,
        WorkflowAction.REQUEST_CHANGES, WorkflowAction.REJECT,
    }),
    WorkflowRole.REVIEWER: frozenset({
        WorkflowAction.COMMENT, WorkflowAction.FINAL_APPROVE,
        WorkflowAction.REQUEST_CHANGES, WorkflowAction.REJECT,
    }),
}

# Bounded retry for a lost race on the draft or plan uniqueness constraints
MAX_SAVE_ATTEMPTS = 2


@dataclass
class AppraisalListResult:
    appraisals: List[Appraisal]
    statistics: StatusCounts


def _snapshot(appraisal: Appraisal) -> Dict[str, Any]:
    return {
        "status": appraisal.status,
        "overall_rating": appraisal.overall_rating,
        "submitted_at": appraisal.submitted_at,
        "supervisor_approved_at": appraisal.supervisor_approved_at,
        "reviewer_approved_at": appraisal.reviewer_approved_at,
    }


class AppraisalService(BaseService):
    def __init__(
        self,
        db: Session,
        role_table: Optional[RoleTable] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(db)
        self.repository = AppraisalRepository(db)
        self.identity = IdentityResolver(db, self.repository)
        self.visibility = VisibilityFilter(role_table or load_role_table())
        self.state_machine = AppraisalStateMachine()
        self.reconciler = DraftReconciler(db, self.state_machine, self.repository)
        self.plans = PlanProvisioner(db, self.repository)
        self.audit = AuditService(db)
        self.today = today

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_appraisals(
        self,
        actor_account_id: int,
        employee_id_filter: Optional[int] = None,
        actor_role: Optional[AccountRole] = None,
    ) -> AppraisalListResult:
        """Appraisals visible to the actor, newest first, with per-status counts."""
        actor = self.identity.resolve_actor_context(actor_account_id)
        role = AccountRole(actor_role) if actor_role is not None else actor.role
        predicate = self.visibility.build_predicate(actor, role, employee_id_filter)

        appraisals = self.db.query(Appraisal).filter(predicate).order_by(
            Appraisal.created_at.desc(), Appraisal.id.desc()
        ).all()

        rows = self.db.query(Appraisal.status, func.count(Appraisal.id)).filter(
            predicate
        ).group_by(Appraisal.status).all()
        statistics = StatusCounts.from_counts({status: count for status, count in rows})

        self.log_info(
            f"Listed {len(appraisals)} appraisals for account {actor.account_id}",
            account_id=actor.account_id,
        )
        return AppraisalListResult(appraisals=appraisals, statistics=statistics)

    def get_appraisal(self, actor_account_id: int, appraisal_id: int) -> Appraisal:
        actor = self.identity.resolve_actor_context(actor_account_id)
        appraisal = self.repository.get_appraisal(appraisal_id)
        self._authorize_read(actor, appraisal)
        return appraisal

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_appraisal(self, actor_account_id: int, request: AppraisalSaveRequest) -> Appraisal:
        """
        Create or update an appraisal.

        Without an appraisal id the save is reconciled against the active
        draft for (employee, plan, type), so repeating it never creates a
        second row. Any failure rolls the whole save back.
        """
        actor = self.identity.resolve_actor_context(actor_account_id)

        for attempt in range(1, MAX_SAVE_ATTEMPTS + 1):
            try:
                if request.appraisal_id is not None:
                    appraisal, action, before = self._update(actor, request)
                else:
                    appraisal, action, before = self._create_or_reconcile(actor, request)

                self.audit.log_action(
                    action=action,
                    entity_type="appraisal",
                    entity_id=appraisal.id,
                    account_id=actor.account_id,
                    account_role=actor.role,
                    details={
                        "employee_id": appraisal.employee_id,
                        "plan_id": appraisal.plan_id,
                        "appraisal_type": appraisal.appraisal_type,
                    },
                    before_state=before,
                    after_state=_snapshot(appraisal),
                )
                self.commit()
            except IntegrityError:
                self.db.rollback()
                if attempt == MAX_SAVE_ATTEMPTS:
                    raise
                self.log_warning(
                    "Concurrent save hit a uniqueness constraint, retrying",
                    account_id=actor.account_id,
                )
                continue
            except Exception:
                self.db.rollback()
                raise

            self.db.refresh(appraisal)
            return appraisal

    def _update(self, actor: ActorContext, request: AppraisalSaveRequest):
        appraisal = self.repository.get_appraisal(request.appraisal_id)
        self._authorize_read(actor, appraisal)
        before = _snapshot(appraisal)

        current = S(appraisal.status)
        patch = request.patch()
        requested = S(patch.get("status") or current)
        supervisor_side = self.visibility.can_act_as_supervisor(actor, appraisal)
        approving_side = supervisor_side or self.visibility.can_act_as_reviewer(actor, appraisal)

        if patch.get("supervisor_assessment") is not None and not supervisor_side:
            raise AccessDeniedError("Only the supervisor may edit the supervisor assessment")
        if requested != current and requested in REVIEW_SIDE_TARGETS:
            raise InvalidTransitionError(current.value, requested.value)
        if current not in EDITABLE_STATES and not approving_side:
            raise AccessDeniedError("Appraisal is locked while it is under review")

        self.reconciler.merge_patch(appraisal, patch)
        if patch.get("supervisor_assessment") is not None:
            appraisal.supervisor_assessment = dict(patch["supervisor_assessment"])
        self.state_machine.apply(appraisal, requested, appraisal.plan)
        self.db.flush()

        action = "update_appraisal" if requested == current else f"appraisal_{requested.value}"
        return appraisal, action, before

    def _create_or_reconcile(self, actor: ActorContext, request: AppraisalSaveRequest):
        employee = self._resolve_employee(actor, request)
        if not (
            actor.owns(employee.id)
            or self.visibility.is_privileged(actor.role)
            or actor.supervises(employee.id)
            or actor.reviews(employee.id)
        ):
            raise AccessDeniedError("You may not create appraisals for this employee")

        patch = request.patch()
        if patch.get("supervisor_assessment") is not None:
            raise AppraisalValidationError([{
                "field": "supervisor_assessment",
                "msg": "Supervisor assessment can only be saved on an existing appraisal (pass appraisal_id)"
            }])

        plan = self._resolve_plan(employee, request.plan_id)
        appraisal_type = request.appraisal_type or settings.default_appraisal_type

        existing = self.reconciler.find_active_draft(employee.id, plan.id, appraisal_type)
        before = _snapshot(existing) if existing is not None else None

        appraisal = self.reconciler.upsert_draft(employee.id, plan, appraisal_type, patch)
        action = "create_appraisal" if before is None else "update_appraisal"
        if appraisal.status == S.SUBMITTED.value and (before is None or before["status"] != appraisal.status):
            action = "appraisal_submitted"
        return appraisal, action, before

    def _resolve_employee(self, actor: ActorContext, request: AppraisalSaveRequest) -> Employee:
        if request.employee_id is not None:
            return self.repository.get_employee(request.employee_id)
        if request.employee_email is not None:
            return self.repository.get_employee_by_email(request.employee_email)
        if actor.employee_id is not None:
            return self.repository.get_employee(actor.employee_id)
        raise NotFoundError("Employee profile")

    def _resolve_plan(self, employee: Employee, plan_id: Optional[int]) -> PerformancePlan:
        if plan_id is None:
            return self.plans.ensure_plan(employee.id, self.today().year)
        plan = self.repository.get_plan(plan_id)
        if plan.employee_id != employee.id:
            raise NotFoundError("PerformancePlan", plan_id)
        return plan

    # ------------------------------------------------------------------
    # Supervisor / reviewer workflow
    # ------------------------------------------------------------------

    def apply_workflow_action(
        self,
        actor_account_id: int,
        appraisal_id: int,
        role: WorkflowRole,
        action: WorkflowAction,
        comment: Optional[str] = None,
    ) -> Appraisal:
        actor = self.identity.resolve_actor_context(actor_account_id)
        role = WorkflowRole(role)
        action = WorkflowAction(action)
        appraisal = self.repository.get_appraisal(appraisal_id)

        if role == WorkflowRole.SUPERVISOR:
            allowed = self.visibility.can_act_as_supervisor(actor, appraisal)
        else:
            allowed = self.visibility.can_act_as_reviewer(actor, appraisal)
        if not allowed:
            raise AccessDeniedError(f"You are not authorized to act as {role.value} for this appraisal")
        if action not in ROLE_ACTIONS[role]:
            raise AppraisalValidationError([{
                "field": "action",
                "msg": f"A {role.value} cannot perform '{action.value}'"
            }])

        before = _snapshot(appraisal)
        try:
            target = self._workflow_target(appraisal, action)
            now = datetime.now(timezone.utc)
            self.state_machine.apply(appraisal, target, appraisal.plan)

            if action == WorkflowAction.APPROVE:
                appraisal.supervisor_approved_at = now
            elif action == WorkflowAction.FINAL_APPROVE:
                appraisal.reviewer_approved_at = now
            elif action == WorkflowAction.REQUEST_CHANGES and role == WorkflowRole.REVIEWER:
                # The supervisor has to sign off again after the revision
                appraisal.supervisor_approved_at = None

            appraisal.comments = self._append_comment(appraisal.comments, actor, role, action, comment, now)
            self.db.flush()

            self.audit.log_action(
                action=f"workflow_{action.value}",
                entity_type="appraisal",
                entity_id=appraisal.id,
                account_id=actor.account_id,
                account_role=actor.role,
                details={"role": role.value, "comment": comment},
                before_state=before,
                after_state=_snapshot(appraisal),
            )
            self.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appraisal)
        self.log_info(
            f"Appraisal {appraisal.id}: {role.value} performed {action.value}",
            appraisal_id=appraisal.id,
        )
        return appraisal

    @staticmethod
    def _workflow_target(appraisal: Appraisal, action: WorkflowAction) -> AppraisalStatus:
        if action == WorkflowAction.COMMENT:
            # Same-state move: a no-op while open, refused once closed
            return S(appraisal.status)
        if action == WorkflowAction.BEGIN_REVIEW:
            return S.SUPERVISOR_REVIEW
        if action == WorkflowAction.APPROVE:
            # No reviewer assigned: the supervisor's approval is final
            return S.REVIEWER_ASSESSMENT if appraisal.reviewer_account_id else S.APPROVED
        if action == WorkflowAction.FINAL_APPROVE:
            return S.APPROVED
        if action == WorkflowAction.REQUEST_CHANGES:
            return S.REVISION_REQUESTED
        return S.REJECTED

    @staticmethod
    def _append_comment(comments, actor: ActorContext, role: WorkflowRole, action: WorkflowAction, text, now):
        bundle = normalize_comments(comments)
        entry = {
            "id": uuid.uuid4().hex,
            "account_id": actor.account_id,
            "name": actor.full_name,
            "action": action.value,
            "comment": text or "",
            "timestamp": now.isoformat(),
        }
        # New containers so the JSON column sees the change
        updated = dict(bundle)
        updated[role.value] = list(bundle[role.value]) + [entry]
        return updated

    # ------------------------------------------------------------------

    def _authorize_read(self, actor: ActorContext, appraisal: Appraisal) -> None:
        if actor.owns(appraisal.employee_id):
            return
        if self.visibility.is_visible(actor, actor.role, appraisal):
            return
        raise AccessDeniedError("You do not have access to this appraisal")
