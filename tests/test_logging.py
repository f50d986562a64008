"""
Unit tests for logging configuration.

Tests cover:
- JSONFormatter output and repository extra fields
- ConsoleFormatter table tag
- setup_logging handler installation and idempotence
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from tablerepo.core.logging import (
    ConsoleFormatter,
    JSONFormatter,
    own_handlers,
    setup_logging,
)


def _record(msg="load users id=1", level=logging.DEBUG, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="tablerepo.repositories.base",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_base_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "DEBUG"
        assert entry["logger"] == "tablerepo.repositories.base"
        assert entry["message"] == "load users id=1"
        assert "timestamp" in entry

    def test_repository_extras(self):
        record = _record(table="users", operation="delete", row_id=2, rowcount=0)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["table"] == "users"
        assert entry["operation"] == "delete"
        assert entry["row_id"] == 2
        assert entry["rowcount"] == 0

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestConsoleFormatter:
    def test_table_tag(self):
        line = ConsoleFormatter().format(_record(table="users"))
        assert "[users]" in line
        assert "load users id=1" in line

    def test_without_table(self):
        line = ConsoleFormatter().format(_record())
        assert "[" not in line.split("|")[2]


class TestSetupLogging:
    @pytest.fixture()
    def clean_root(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        root.handlers = []
        yield root
        for handler in own_handlers(root):
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)

    def test_installs_handlers_once(self, clean_root, tmp_path):
        setup_logging(log_dir=str(tmp_path))
        installed = own_handlers(clean_root)
        assert len(installed) == 3
        assert (tmp_path / "tablerepo.log").exists()

        setup_logging(log_dir=str(tmp_path))
        assert own_handlers(clean_root) == installed

    def test_foreign_handlers_do_not_block_setup(self, clean_root, tmp_path):
        foreign = logging.NullHandler()
        clean_root.addHandler(foreign)

        setup_logging(log_dir=str(tmp_path))

        assert foreign in clean_root.handlers
        assert len(own_handlers(clean_root)) == 3

    def test_file_and_error_handlers(self, clean_root, tmp_path):
        setup_logging(log_dir=str(tmp_path))
        file_levels = sorted(
            h.level for h in own_handlers(clean_root) if isinstance(h, RotatingFileHandler)
        )
        assert len(file_levels) == 2
        assert file_levels[-1] == logging.ERROR
        consoles = [h for h in own_handlers(clean_root) if isinstance(h.formatter, ConsoleFormatter)]
        assert len(consoles) == 1
