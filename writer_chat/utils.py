"""Logging helpers shared by the HTTP entry point and embedding callers."""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILENAME = "writer_chat.log"


def setup_logging(log_dir: Optional[str], level: int = logging.INFO) -> None:
    """Configure console and file logging once per process.

    Calling this again with the same ``log_dir`` is a no-op, so app
    factories can call it unconditionally.
    """
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    if not any(getattr(h, "_writer_chat_console", False) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console._writer_chat_console = True  # type: ignore[attr-defined]
        root.addHandler(console)

    if not log_dir:
        return

    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.abspath(os.path.join(log_dir, LOG_FILENAME))
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_path:
            return

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    logging.getLogger(__name__).info("Logging to %s", log_path)
