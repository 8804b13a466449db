# src/edushield/app_logger.py
"""
Logger hierarchy for the package.

Everything logs under ``edushield``; the two channels other code filters on
are ``edushield.audit`` (access denials) and ``edushield.cache`` (absorbed
cache failures). Importing this module only installs a ``NullHandler``;
output is turned on by the host application through ``setup_logging``.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

ROOT = "edushield"
AUDIT = "audit"
CACHE = "cache"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
AUDIT_FORMAT = "%(asctime)s %(message)s"

logging.getLogger(ROOT).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger(ROOT)
    return base.getChild(name) if name else base


def _has_handler(logger: logging.Logger, kind: type, target: Optional[str] = None) -> bool:
    for h in logger.handlers:
        if type(h) is kind and (target is None or getattr(h, "baseFilename", None) == target):
            return True
    return False


def setup_logging(level: str | None = None, audit_file: str | None = None) -> logging.Logger:
    """
    Attach a console handler to the package logger; safe to call repeatedly.

    Defaults come from ``LOG_LEVEL`` / ``EDUSHIELD_LOG_LEVEL`` and
    ``AUDIT_LOG_FILE``. With an audit file, denials are written there too.
    """
    from edushield.core.config import settings

    level = (level or settings.LOG_LEVEL).upper()
    audit_file = audit_file or settings.AUDIT_LOG_FILE

    logger = logging.getLogger(ROOT)
    logger.setLevel(getattr(logging, level, logging.INFO))
    if not _has_handler(logger, logging.StreamHandler):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    # Records stop here so an app that also configures root logging does not print them twice.
    logger.propagate = False

    if audit_file:
        audit = logger.getChild(AUDIT)
        path = os.path.abspath(audit_file)
        if not _has_handler(audit, logging.FileHandler, path):
            fh = logging.FileHandler(audit_file, delay=True)
            fh.setFormatter(logging.Formatter(AUDIT_FORMAT))
            fh.setLevel(logging.WARNING)
            audit.addHandler(fh)

    return logger
