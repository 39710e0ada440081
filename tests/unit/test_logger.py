from logging.handlers import RotatingFileHandler

from telemetry_viz.config import settings
from telemetry_viz.utils.logger import get_logger

# --- Tests for Logger ---

def test_logger_attaches_handlers_once():
    first = get_logger("telemetry_viz.tests.once")
    second = get_logger("telemetry_viz.tests.once")
    assert first is second
    assert len(second.handlers) == 2
    assert second.propagate is False

def test_file_handler_rotates_by_size():
    logger = get_logger("telemetry_viz.tests.rotation")
    file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == settings.LOG_FILE_MAX_MB * 1024 * 1024
    assert file_handlers[0].backupCount == settings.LOG_FILE_BACKUPS
    assert file_handlers[0].baseFilename.endswith("telemetry_viz.log")
