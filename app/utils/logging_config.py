import logging
from logging.config import dictConfig

from app.utils.env_helper import env_bool, env_none_or_str

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(request_id)s | %(name)s | %(message)s"


def setup_logging(level: str = None, json_logs: bool = None):
    level = (level or env_none_or_str("LOG_LEVEL", "INFO")).upper()
    if json_logs is None:
        json_logs = env_bool("LOG_JSON")

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_id": {"()": "app.core.middleware.RequestIdFilter"},
            },
            "formatters": {
                "default": {
                    "format": LOG_FORMAT,
                },
                "json": {  # structured logs for prod
                    "format": '{"time":"%(asctime)s","level":"%(levelname)s","request_id":"%(request_id)s","logger":"%(name)s","message":"%(message)s"}'
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "default",
                    "filters": ["request_id"],
                },
            },
            "root": {
                "level": level,
                "handlers": ["console"],
            },
        }
    )
    logging.getLogger(__name__).debug("logging configured level=%s json=%s", level, json_logs)
