# ristosync/logs.py
import logging
import os

FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = None) -> None:
    """Logging su stderr per tutto il processo. Livello da RISTOSYNC_LOG_LEVEL (default INFO)."""
    level = (level or os.getenv("RISTOSYNC_LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        root.addHandler(handler)
    # httpx logga ogni richiesta a INFO: troppo rumore col backup
    logging.getLogger("httpx").setLevel(logging.WARNING)
