import logging
import os
from logging.handlers import RotatingFileHandler

import seqlog

from core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DIR = os.getenv("LOG_DIR", "logs")


def setup_logging_to_console(level=logging.INFO):
    root = logging.getLogger()
    root.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    if settings.SEQ_SERVER_URL:
        seqlog.log_to_seq(
            server_url=settings.SEQ_SERVER_URL,
            api_key=settings.SEQ_SERVER_API_KEY,
            level=level,
            batch_size=10,
            auto_flush_timeout=10,
            override_root_logger=False,
        )
        seqlog.set_global_log_properties(
            Application=settings.PROJECT_NAME,
            Environment=settings.ENVIRONMENT_NAME,
        )


def setup_logging_to_file(app: str, level=logging.INFO, logger=None):
    os.makedirs(LOG_DIR, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(LOG_DIR, f"{app}.log"), maxBytes=10 * 1024 * 1024, backupCount=5
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)

    target = logger or logging.getLogger()
    target.setLevel(level)
    target.addHandler(handler)
    return handler
