# -------
# staticstamp: fingerprinted static files with long-lived cache headers
# -------
import threading
from pathlib import Path
from typing import Optional

__version__ = "0.1.0"

# predefine boolean
__initialized__ = False

# predefined process-wide state, set once by initialize() and read-only afterwards
settings = static_files = None

thread_lock = threading.Lock()

def initialize(config_path: Optional[Path] = None, *, log_path: Optional[str] = None):
    """Load settings, start logging and build the shared StaticFiles value."""
    global __initialized__, settings, static_files
    from staticstamp.inc.settings import load_settings
    from staticstamp.inc.logging import setup_logging, logger
    from staticstamp.modules.resolver import StaticFiles

    with thread_lock:
        if __initialized__:
            return static_files
        settings = load_settings(config_path)
        setup_logging(log_path)
        logger.info(f"[init] settings loaded from {settings.path}")
        static_files = StaticFiles.from_settings(settings)
        __initialized__ = True
    return static_files
