import logging
import logging.config
import os
from datetime import datetime
from count_engine.core.config import settings

MAX_LOG_BYTES = 10485760  # 10MB

# pre-commit stock lines written by reconciliations
RECONCILIATION_LOGGER = "count_engine.services.inventory.count_reconciliation_service"


def _rotating_file(log_dir: str, kind: str, level: str, formatter: str, backups: int = 10) -> dict:
    current_date = datetime.now().strftime("%Y-%m-%d")
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": os.path.join(log_dir, kind, f"{kind}-{current_date}.log"),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": backups,
    }


def setup_logging():
    """Console plus rotating app, error, audit and stock-commit files under LOG_DIR"""

    log_dir = settings.LOG_DIR
    for kind in ("app", "error", "audit", "stock"):
        os.makedirs(os.path.join(log_dir, kind), exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "app_file": _rotating_file(log_dir, "app", settings.LOG_LEVEL, "detailed"),
            "error_file": _rotating_file(log_dir, "error", "ERROR", "detailed"),
            "audit_file": _rotating_file(log_dir, "audit", "INFO", "default", backups=30),
            "stock_file": _rotating_file(log_dir, "stock", "INFO", "default", backups=30),
        },
        "loggers": {
            "": {
                "level": settings.LOG_LEVEL,
                "handlers": ["console", "app_file", "error_file"],
            },
            "count_engine.audit": {
                "level": "INFO",
                "handlers": ["audit_file", "console"],
                "propagate": False,
            },
            RECONCILIATION_LOGGER: {
                "level": "INFO",
                "handlers": ["stock_file"],
                "propagate": True,
            },
            "sqlalchemy.engine": {
                "level": "INFO" if settings.DEBUG else "WARNING",
                "handlers": ["app_file"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)
    logger.info(f"📦 Count engine logging configured (level {settings.LOG_LEVEL}, environment {settings.ENVIRONMENT})")
    logger.info(f"🗂️  Logs directory: {log_dir}/")
