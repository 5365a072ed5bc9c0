from slowapi import Limiter
from slowapi.util import get_remote_address

from appraisal_engine.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.environment != "testing",
)

DEFAULT_LIMIT = f"{settings.rate_limit_per_minute}/minute"
