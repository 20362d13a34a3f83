from __future__ import annotations

import pytest

from deptcms.utils import logging_config
from deptcms.utils.logging_config import LogFiles, Logger, clear_trace_id, set_trace_id


@pytest.fixture
def log_dir(tmp_path):
    Logger.init(level="INFO", base_dir=str(tmp_path), force=True)
    yield tmp_path
    clear_trace_id()
    Logger.init(level="DEBUG", base_dir=str(tmp_path), force=True)


def test_log_files_resolve_case_insensitively():
    assert LogFiles.EVENTS == "events/events.log"
    assert LogFiles.get("Research") == "research/research.log"
    assert LogFiles.get("reports") == "reports/reports.log"
    with pytest.raises(AttributeError):
        LogFiles.NOT_CONFIGURED


def test_messages_land_in_their_file_with_trace_id(log_dir):
    trace_id = set_trace_id("req-abc123")

    Logger.info("category created", file=LogFiles.CATEGORIES)
    Logger.debug("filtered out at INFO", file=LogFiles.CATEGORIES)

    text = (log_dir / "categories" / "categories.log").read_text(encoding="utf-8")
    assert "[INFO] [req-abc123] test_logging_config.py" in text
    assert "category created" in text
    assert "filtered out" not in text
    assert logging_config.get_trace_id() == trace_id


def test_set_level_changes_threshold(log_dir):
    Logger.set_level("error")
    Logger.warning("quiet")
    Logger.error("loud")

    text = (log_dir / "deptcms.log").read_text(encoding="utf-8")
    assert "quiet" not in text
    assert "[ERROR] [-]" in text


def test_errors_are_copied_to_error_log(log_dir):
    Logger.error("slug lookup failed", file=LogFiles.CATEGORIES)
    Logger.warning("audit write skipped", file=LogFiles.ACTIVITY)

    errors = (log_dir / "errors" / "error.log").read_text(encoding="utf-8")
    assert "slug lookup failed" in errors
    assert "audit write skipped" not in errors
    assert "slug lookup failed" in (log_dir / "categories" / "categories.log").read_text(
        encoding="utf-8"
    )
