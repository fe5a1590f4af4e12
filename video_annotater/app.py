# video_annotater/app.py
from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from typing import Optional

from PyQt5.QtWidgets import QApplication

from .domain import AppConfig
from .main_window import MainWindow
from .persistence import load_app_config

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = os.path.join(os.path.expanduser("~"), ".video_annotater_logs")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> str:
    """Console + rotating file logging. Returns the log file path."""
    log_dir = log_dir or DEFAULT_LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "video_annotater.log")

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.handlers.RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8"),
            logging.StreamHandler(),
        ],
        force=True,
    )
    return log_file


def log_uncaught_exceptions(exctype, value, tb):
    logging.critical("Uncaught exception", exc_info=(exctype, value, tb))


def run_app(
    folder: Optional[str] = None,
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> int:
    cfg: AppConfig = load_app_config(config_path)
    log_file = setup_logging(log_level or cfg.log_level, cfg.log_dir or None)
    sys.excepthook = log_uncaught_exceptions
    logger.info("Video Annotater starting; logging to %s", log_file)

    app = QApplication(sys.argv)
    app.setApplicationName("Video Annotater")

    win = MainWindow(config=cfg, config_path=config_path)
    win.show()

    if folder:
        win.open_folder(folder)

    return app.exec_()
