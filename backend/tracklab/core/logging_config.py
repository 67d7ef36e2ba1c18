"""
Configuration du logging conditionnée par ENVIRONMENT
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import List

import sentry_sdk

from tracklab.core.settings import Settings


def init_sentry(settings: Settings) -> bool:
    """Initialise Sentry uniquement si SENTRY_DSN est configuré"""
    if not settings.SENTRY_DSN:
        return False
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )
    return True


def configure_logging(settings: Settings) -> None:
    """Stdout (JSON en production) + fichier tournant hors production"""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)

    if settings.ENVIRONMENT == "production":
        from pythonjsonlogger import jsonlogger
        handler.setFormatter(jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        ))
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    handlers: List[logging.Handler] = [handler]
    if settings.ENVIRONMENT != "production" and settings.LOG_FILE:
        handlers.append(RotatingFileHandler(
            settings.LOG_FILE, maxBytes=5_000_000, backupCount=3,
        ))

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    # En production, réduire le bruit des modules tiers
    if settings.ENVIRONMENT == "production":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
