import logging

from marketplace.utils.logging_config import setup_logging


def test_quiet_loggers_are_held_at_warning():
    setup_logging(level="DEBUG", quiet=["pymongo", "uvicorn.access"])

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("pymongo").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING
    assert logging.getLogger("marketplace").getEffectiveLevel() == logging.DEBUG


def test_json_formatter_is_selected():
    setup_logging(json_logs=True, quiet=[])

    formats = [h.formatter._fmt for h in logging.getLogger().handlers if h.formatter is not None]
    assert any(fmt.startswith('{"time"') for fmt in formats)
