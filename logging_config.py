import json
import logging
import os
from logging.handlers import RotatingFileHandler

from config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Extra attributes callers may attach with logger.info(..., extra={...})
CONTEXT_FIELDS = ('calculator_id', 'locale', 'unit_system', 'state')


class JsonFormatter(logging.Formatter):
    """Single-line JSON records, carrying calculator context when present."""

    def format(self, record):
        entry = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "filename": record.filename,
            "lineno": record.lineno,
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _resolve_log_dir(log_dir):
    if not os.path.exists(log_dir):
        try:
            os.makedirs(log_dir)
        except OSError:
            return '.'
    return log_dir


def _rotating(path, max_bytes, backups, level):
    try:
        handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups)
    except OSError:
        return None
    handler.setLevel(level)
    return handler


def configure_logging(log_dir=None, log_format=None):
    """Attach console and rotating file handlers to the root logger.

    Safe to call more than once: handlers installed by an earlier call are
    replaced, not duplicated.
    """
    log_dir = _resolve_log_dir(log_dir or Config.LOG_DIR)
    use_json = (log_format or Config.LOG_FORMAT).lower() == 'json'
    fmt = JsonFormatter() if use_json else logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    handlers = [
        console,
        # Full debug log, 5MB x 5
        _rotating(os.path.join(log_dir, 'calc_engine.log'), 5 * 1024 * 1024, 5, logging.DEBUG),
        # Error-only log, 2MB x 3
        _rotating(os.path.join(log_dir, 'errors.log'), 2 * 1024 * 1024, 3, logging.ERROR),
    ]

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for old in [h for h in root.handlers if getattr(h, '_calc_engine', False)]:
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        if handler is None:
            continue
        handler.setFormatter(fmt)
        handler._calc_engine = True
        root.addHandler(handler)

    # Third-party noise
    for name in ('urllib3', 'requests', 'werkzeug'):
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger = logging.getLogger('calc_engine')
    app_logger.setLevel(logging.DEBUG)
    return app_logger


logger = configure_logging()
logger.info("Calculation engine logging initialized")
