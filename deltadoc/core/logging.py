"""
Настройка логирования.

Стандартный ``logging`` используется как транспорт, structlog отвечает за
структурированные события. В продакшене вывод в JSON, при разработке
читаемый консольный формат.

Использование:
    >>> from deltadoc.core.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("version_created", file_id=str(file_id), version=3)
"""
import logging
import sys
from typing import Optional

import structlog

from deltadoc.core.config import settings

_configured = False


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Однократная настройка stdlib logging и structlog"""
    global _configured
    if _configured:
        return

    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    use_json = settings.log_json if json_output is None else json_output

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    # Шумные библиотеки
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Получение структурированного логгера"""
    return structlog.get_logger(name)
