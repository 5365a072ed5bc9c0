from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone


class ErrorInfo(BaseModel):
    field: Optional[str] = None
    code: Optional[str] = None
    msg: str


class ApiResponse(BaseModel):
    """Envelope for error responses."""
    success: bool
    errors: List[ErrorInfo] = []
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with JSON-serializable values."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def fail(cls, errors: List[ErrorInfo], details: Optional[Dict[str, Any]] = None) -> "ApiResponse":
        return cls(success=False, errors=errors, details=details)
