import asyncio
import sys

import structlog
from prometheus_client import start_http_server

from app.modules.reaper.supervisor import ReconciliationSupervisor
from app.shared.core.config import get_settings
from app.shared.core.exceptions import SupervisorAbortError
from app.shared.core.logging import setup_logging

logger = structlog.get_logger()


def main() -> int:
    setup_logging()
    settings = get_settings()
    logger.info(
        "reaper_starting",
        app=settings.APP_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        ttl_annotation=settings.TTL_ANNOTATION,
        allowlist=settings.RESOURCE_ALLOWLIST,
    )

    if settings.METRICS_PORT:
        start_http_server(settings.METRICS_PORT)
        logger.info("metrics_server_started", port=settings.METRICS_PORT)

    try:
        asyncio.run(ReconciliationSupervisor(settings).run_forever())
    except SupervisorAbortError as e:
        logger.critical("reaper_aborted", error=e.message, **e.details)
        return 1
    except KeyboardInterrupt:
        logger.info("reaper_interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
