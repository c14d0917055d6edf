import json
from collections.abc import Iterator

import pytest
import structlog

from qase_mcp.core.logging import setup_logging


@pytest.fixture(autouse=True)
def _restore_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_json_records_go_to_stderr_only(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(json_output=True, log_level="info")

    with structlog.contextvars.bound_contextvars(session_id="s-1", transport="sse"):
        structlog.get_logger().info("session_created", active_sessions=1)

    captured = capsys.readouterr()
    assert captured.out == ""
    record = json.loads(captured.err.strip())
    assert record["event"] == "session_created"
    assert record["session_id"] == "s-1"
    assert record["transport"] == "sse"
    assert record["level"] == "info"


def test_records_below_level_are_dropped(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(json_output=True, log_level="WARNING")

    log = structlog.get_logger()
    log.info("quiet")
    log.warning("loud")

    lines = capsys.readouterr().err.strip().splitlines()
    assert [json.loads(line)["event"] for line in lines] == ["loud"]


def test_unknown_level_name_means_info(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(json_output=True, log_level="chatty")

    log = structlog.get_logger()
    log.debug("hidden")
    log.info("shown")

    lines = capsys.readouterr().err.strip().splitlines()
    assert [json.loads(line)["event"] for line in lines] == ["shown"]
