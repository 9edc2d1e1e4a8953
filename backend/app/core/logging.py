from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
_HANDLER_NAME = "smartshop"


def setup_logging(settings) -> None:
    """Configure root logging once (stream + optional rotating file under LOG_FILE)."""
    level = getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers (create_app peut être appelé plusieurs fois)
    if any(getattr(h, "name", None) == _HANDLER_NAME for h in root.handlers):
        return

    fmt = logging.Formatter(_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        )

    for handler in handlers:
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(fmt)
        handler.setLevel(level)
        root.addHandler(handler)

    # uvicorn garde ses propres handlers ; on aligne juste le niveau
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        logging.getLogger(name).setLevel(level)
