import logging

from dataquality.logging import StructuredFormatter, get_logger, log_with_context


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)


def test_log_with_context_formats_key_values():
    logger = get_logger("dataquality.tests.logging")
    capture = _Capture()
    logger.addHandler(capture)
    logger.setLevel(logging.INFO)
    try:
        log_with_context(logger, logging.INFO, "Completeness recompute started", run_id="run-1", page_size=50)
    finally:
        logger.removeHandler(capture)

    record = capture.records[0]
    line = StructuredFormatter().format(record)

    assert record.run_id == "run-1"
    assert record.extra_data == {"page_size": 50}
    assert "message=Completeness recompute started" in line
    assert "run_id=run-1" in line
    assert "page_size=50" in line
    assert "level=INFO" in line


def test_get_logger_installs_one_handler():
    first = get_logger("dataquality.tests.single")
    second = get_logger("dataquality.tests.single")

    assert first is second
    assert len(first.handlers) == 1
