"""
Tests for the logging helpers.
"""
import pytest
from loguru import logger as root_logger

from retrace.utils.logging import get_logger, setup_logging


@pytest.fixture
def captured():
    """Collect formatted log records from loguru."""
    messages = []
    handler_id = root_logger.add(
        lambda message: messages.append(str(message).strip()),
        format="{level} {extra[name]} {extra[context]} {message}",
        level="DEBUG",
    )
    yield messages
    root_logger.remove(handler_id)


def test_get_logger_is_cached():
    assert get_logger("retrace.sample") is get_logger("retrace.sample")
    assert get_logger("retrace.sample").name == "retrace.sample"


def test_context_is_bound_to_records(captured):
    log = get_logger("retrace.sample").with_context(operation_id="op_1")

    log.info("reversing")
    log.warning("skipped", extra={"edit": 2})

    assert captured[0] == "INFO retrace.sample {'operation_id': 'op_1'} reversing"
    assert captured[1] == "WARNING retrace.sample {'operation_id': 'op_1', 'edit': 2} skipped"
    assert get_logger("retrace.sample").context == {}


def test_setup_logging_creates_log_files(temp_dir):
    setup_logging(debug=True, log_dir=temp_dir / "logs")
    get_logger("retrace.sample").info("written to file")

    root_logger.remove()

    assert (temp_dir / "logs" / "retrace.log").read_text().strip().endswith("written to file")
    assert "written to file" in (temp_dir / "logs" / "retrace_structured.log").read_text()


def test_records_name_the_calling_function():
    functions = []
    handler_id = root_logger.add(lambda message: functions.append(message.record["function"]), level="DEBUG")
    try:
        get_logger("retrace.sample").debug("from here")
    finally:
        root_logger.remove(handler_id)

    assert functions == ["test_records_name_the_calling_function"]
