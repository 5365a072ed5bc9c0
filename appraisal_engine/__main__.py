"""Run the API server: ``python -m appraisal_engine`` or ``appraisal-engine``."""
import uvicorn

from appraisal_engine.core.config import settings


def main():
    uvicorn.run(
        "appraisal_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_config=None,  # logging is configured by setup_logging
    )


if __name__ == "__main__":
    main()
