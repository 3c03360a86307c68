from __future__ import annotations

import logging
import logging.handlers

import pytest

from core.logging import HANDLER_NAME, LOG_FILE_NAME, setup_logging


@pytest.fixture()
def clean_root():
    root = logging.getLogger()
    ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
    for h in ours:
        root.removeHandler(h)
    saved_level = root.level
    saved = {name: logging.getLogger(name).level for name in ("solver", "services", "sqlalchemy.engine")}
    yield root
    for h in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(h)
        h.close()
    for h in ours:
        root.addHandler(h)
    root.setLevel(saved_level)
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def _ours(root):
    return [h for h in root.handlers if h.get_name() == HANDLER_NAME]


def test_development_logs_to_console_only(clean_root, tmp_path):
    setup_logging(environment="development", log_dir=tmp_path)

    assert len(_ours(clean_root)) == 1
    assert clean_root.level == logging.DEBUG
    assert logging.getLogger("services").level == logging.DEBUG
    # The search engine stays at INFO unless asked otherwise.
    assert logging.getLogger("solver").level == logging.INFO
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert not (tmp_path / LOG_FILE_NAME).exists()


def test_production_adds_rotating_file(clean_root, tmp_path):
    setup_logging(environment="production", solver_level="warning", log_dir=tmp_path)

    handlers = _ours(clean_root)
    assert len(handlers) == 2
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers)
    assert (tmp_path / LOG_FILE_NAME).exists()
    assert clean_root.level == logging.INFO
    assert logging.getLogger("solver").level == logging.WARNING


def test_setup_is_idempotent(clean_root, tmp_path):
    setup_logging(environment="development", log_dir=tmp_path)
    setup_logging(environment="development", level="ERROR", log_dir=tmp_path)

    assert len(_ours(clean_root)) == 1
    assert clean_root.level == logging.DEBUG


def test_unknown_level_is_rejected(clean_root):
    with pytest.raises(ValueError):
        setup_logging(environment="development", level="LOUD")
