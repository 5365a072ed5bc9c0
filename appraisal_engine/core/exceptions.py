from typing import Any, Dict, List, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "id": entity_id}
        )


class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )


# The engine's name for "actor resolves to no valid identity".
UnauthorizedError = AuthenticationError


class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )


class AppraisalValidationError(AppException):
    """Submission content is incomplete. Carries every failing field."""
    def __init__(self, errors: List[Dict[str, str]], message: str = "Appraisal is incomplete"):
        self.errors = errors
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details={"errors": errors}
        )

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]


class InvalidTransitionError(AppException):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            message=f"Cannot move appraisal from '{current}' to '{requested}'",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"current": current, "requested": requested}
        )


class DuplicateSubmissionError(AppException):
    def __init__(self, existing_id: int):
        self.existing_id = existing_id
        super().__init__(
            message="An appraisal for this employee, plan and type has already been submitted",
            status_code=409,
            error_code="DUPLICATE_SUBMISSION",
            details={"existing_id": existing_id}
        )


class MissingSupervisorAccountError(AppException):
    def __init__(self, employee_id: int, reason: str = "Employee has no supervisor with a login account"):
        self.employee_id = employee_id
        super().__init__(
            message=reason,
            status_code=422,
            error_code="MISSING_SUPERVISOR_ACCOUNT",
            details={"employee_id": employee_id}
        )
