import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from appraisal_engine.core.limiter import DEFAULT_LIMIT, limiter
from appraisal_engine.core.roles import RoleTable, load_role_table
from appraisal_engine.database import get_db
from appraisal_engine.models.account import Account
from appraisal_engine.routers.auth_deps import get_current_account
from appraisal_engine.schemas.appraisal import (
    AppraisalListResponse,
    AppraisalResponse,
    AppraisalSaveRequest,
    WorkflowActionRequest,
)
from appraisal_engine.services.appraisal_service import AppraisalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appraisals", tags=["appraisals"])

_role_table = load_role_table()


def get_role_table() -> RoleTable:
    """Overridable in tests to run against a different role table."""
    return _role_table


def get_appraisal_service(
    db: Session = Depends(get_db),
    role_table: RoleTable = Depends(get_role_table),
) -> AppraisalService:
    return AppraisalService(db, role_table=role_table)


@router.get("", response_model=AppraisalListResponse)
@limiter.limit(DEFAULT_LIMIT)
def list_appraisals(
    request: Request,
    employee_id: Optional[int] = None,
    service: AppraisalService = Depends(get_appraisal_service),
    current_account: Account = Depends(get_current_account),
):
    result = service.list_appraisals(current_account.id, employee_id_filter=employee_id)
    return AppraisalListResponse(
        appraisals=[AppraisalResponse.model_validate(a) for a in result.appraisals],
        statistics=result.statistics,
    )


@router.post("", response_model=AppraisalResponse)
@limiter.limit(DEFAULT_LIMIT)
def save_appraisal(
    request: Request,
    payload: AppraisalSaveRequest,
    service: AppraisalService = Depends(get_appraisal_service),
    current_account: Account = Depends(get_current_account),
):
    appraisal = service.save_appraisal(current_account.id, payload)
    return AppraisalResponse.model_validate(appraisal)


@router.get("/{appraisal_id}", response_model=AppraisalResponse)
def get_appraisal(
    appraisal_id: int,
    service: AppraisalService = Depends(get_appraisal_service),
    current_account: Account = Depends(get_current_account),
):
    return AppraisalResponse.model_validate(service.get_appraisal(current_account.id, appraisal_id))


@router.post("/{appraisal_id}/workflow", response_model=AppraisalResponse)
@limiter.limit(DEFAULT_LIMIT)
def apply_workflow_action(
    request: Request,
    appraisal_id: int,
    payload: WorkflowActionRequest,
    service: AppraisalService = Depends(get_appraisal_service),
    current_account: Account = Depends(get_current_account),
):
    appraisal = service.apply_workflow_action(
        current_account.id,
        appraisal_id,
        role=payload.role,
        action=payload.action,
        comment=payload.comment,
    )
    return AppraisalResponse.model_validate(appraisal)
