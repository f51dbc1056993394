import logging
import os
import sys
from datetime import datetime, timezone
import json
from logging.handlers import RotatingFileHandler


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured log lines, one object per record."""

    def format(self, record):
        log_data = {
            'level': record.levelname.lower(),
            'time': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'service': 'voilab-send',
            'msg': record.getMessage()
        }

        # Add exception info if present
        if record.exc_info:
            log_data['err'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'stack': self.formatException(record.exc_info)
            }

        # Add extra fields from the record
        if hasattr(record, 'extra_data'):
            log_data.update(record.extra_data)

        # Payloads may hold SDK objects or bytes
        return json.dumps(log_data, default=str)


logger = logging.getLogger('voilab-send')
logger.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    logger.addHandler(console_handler)

    # File output only when the embedding application asks for it
    log_file_path = os.getenv('VOILAB_SEND_LOG_FILE')
    if log_file_path:
        file_handler = RotatingFileHandler(
            log_file_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

# Prevent propagation to root logger
logger.propagate = False


def log_with_context(level, msg, **context):
    """Helper function to log with additional context fields."""
    extra = {'extra_data': context} if context else {}
    logger.log(level, msg, extra=extra)


# Convenience methods
def info(msg, **context):
    log_with_context(logging.INFO, msg, **context)


def error(msg, err=None, **context):
    if err:
        context['err'] = {'message': str(err), 'type': type(err).__name__}
    log_with_context(logging.ERROR, msg, **context)


def warn(msg, **context):
    log_with_context(logging.WARNING, msg, **context)


def debug(msg, **context):
    log_with_context(logging.DEBUG, msg, **context)
