# tests/test_app_logger.py
from __future__ import annotations

import logging

import pytest

from edushield.app_logger import AUDIT, CACHE, ROOT, get_logger, setup_logging


@pytest.fixture
def restore_package_logger():
    root = logging.getLogger(ROOT)
    audit = root.getChild(AUDIT)
    handlers, audit_handlers = list(root.handlers), list(audit.handlers)
    propagate, level = root.propagate, root.level
    yield
    for h in audit.handlers:
        if h not in audit_handlers:
            h.close()
    root.handlers[:] = handlers
    audit.handlers[:] = audit_handlers
    root.propagate = propagate
    root.setLevel(level)


def test_child_loggers_live_under_package_root():
    assert get_logger().name == "edushield"
    assert get_logger(AUDIT).name == "edushield.audit"
    assert get_logger(CACHE).name == "edushield.cache"


def test_import_installs_no_output_handler():
    handlers = logging.getLogger(ROOT).handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_setup_logging_is_idempotent(restore_package_logger):
    setup_logging("debug")
    logger = setup_logging("debug")

    streams = [h for h in logger.handlers if type(h) is logging.StreamHandler]
    assert len(streams) == 1
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_audit_file_receives_denials_only(restore_package_logger, tmp_path):
    target = tmp_path / "audit.log"
    setup_logging("info", audit_file=str(target))
    setup_logging("info", audit_file=str(target))

    audit = get_logger(AUDIT)
    assert len([h for h in audit.handlers if isinstance(h, logging.FileHandler)]) == 1

    audit.info("routine lookup")
    audit.warning("access denied: actor_id=u-1 role=parent")
    get_logger(CACHE).warning("cache get failed")
    for h in audit.handlers:
        h.flush()

    lines = target.read_text().splitlines()
    assert len(lines) == 1
    assert lines[0].endswith("access denied: actor_id=u-1 role=parent")
