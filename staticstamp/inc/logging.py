import logging
import logging.handlers
import os

import staticstamp

logger = logging.getLogger('staticstamp')
logger.setLevel(logging.DEBUG)

dt_fmt = '%Y-%m-%d %H:%M:%S'
formatter = logging.Formatter('[{asctime}] [{levelname:<8}] {name}: {message}', dt_fmt, style='{')

_handler = None

def _resolve_log_path() -> str:
    override = os.getenv("STATICSTAMP_LOG_PATH")
    if override:
        return override
    settings = getattr(staticstamp, "settings", None)
    if settings is not None:
        path = settings.get("LOG.path", None)
        if path:
            return path
    return "staticstamp.log"

def setup_logging(path: str | None = None) -> logging.Handler:
    """Attach the rotating file handler once; later calls return the existing one."""
    global _handler
    if _handler is not None:
        return _handler

    log_path = path or _resolve_log_path()
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    _handler = logging.handlers.RotatingFileHandler(
        filename=log_path,
        encoding='utf-8',
        maxBytes=8 * 1024 * 1024,  # 8 MiB
        backupCount=5,
    )
    _handler.setFormatter(formatter)
    logger.addHandler(_handler)
    return _handler
