from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_app_logging(level: str = "INFO", sql_echo: bool = False) -> None:
    """
    Set levels for the deptguard logger tree.

    Under uvicorn the root logger already has handlers and only levels change.
    Run any other way (scripts, a bare ASGI server) and a stderr handler is
    attached so guard decisions are not lost. `DEPTGUARD_LOG_LEVEL=DEBUG`
    logs every decision with its matched record and required priority.
    """

    normalized = level.upper()
    package_logger = logging.getLogger("deptguard")
    package_logger.setLevel(normalized)
    package_logger.propagate = True

    if not logging.getLogger().handlers:
        logging.basicConfig(format=LOG_FORMAT)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)
