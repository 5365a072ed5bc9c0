import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from pythonjsonlogger import jsonlogger
from contextvars import ContextVar

# Context variables for the current task/request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
account_id_var: ContextVar[Optional[int]] = ContextVar("account_id", default=None)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON lines with the request id and the acting account attached.

    Engine modules pass appraisal_id / employee_id / plan_id through
    ``extra``; those land in the record as-is. account_id falls back to the
    account resolved for the current request.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        # Inject correlation ID if available
        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id

        if log_record.get("account_id") is None:
            account_id = account_id_var.get()
            if account_id is not None:
                log_record["account_id"] = account_id

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname


def setup_logging(level: Union[int, str] = logging.INFO):
    logger = logging.getLogger()
    # Idempotent: the app module may be imported more than once under test runners
    if any(isinstance(h.formatter, CustomJsonFormatter) for h in logger.handlers):
        return
    log_handler = logging.StreamHandler()
    formatter = CustomJsonFormatter("%(timestamp) %(level) %(name) %(message)")
    log_handler.setFormatter(formatter)
    logger.addHandler(log_handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # Suppress verbose logs from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
