"""
Logging setup for the marking pipeline.

Stage timings and submission summaries go to a daily file under LOGS_DIR
as well as stdout, so a slow or failed submission can be traced after the
SSE stream has closed.
"""
import logging
import sys
from datetime import datetime
from ..config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name: str, log_file: str = None, level: int = None) -> logging.Logger:
    """
    Build a named logger writing to stdout and, optionally, a log file.

    Args:
        name: Logger name
        log_file: File name relative to settings.LOGS_DIR
        level: Logging level; DEBUG when settings.DEBUG is on, INFO otherwise

    Returns:
        Configured logger
    """
    if level is None:
        level = logging.DEBUG if settings.DEBUG else logging.INFO

    named = logging.getLogger(name)
    named.setLevel(level)
    if named.handlers:
        return named

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(settings.LOGS_DIR / log_file, encoding='utf-8')
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        named.addHandler(handler)
    # Records already reach stdout here
    named.propagate = False
    return named


class SubmissionLogger(logging.LoggerAdapter):
    """Prefixes every record with the submission id"""

    def process(self, msg, kwargs):
        return f"[{self.extra['submission_id']}] {msg}", kwargs


def submission_logger(submission_id: str) -> SubmissionLogger:
    return SubmissionLogger(pipeline_logger, {"submission_id": submission_id})


pipeline_logger = setup_logger(
    'pipeline',
    f'pipeline_{datetime.now().strftime("%Y%m%d")}.log'
)

logger = setup_logger(
    'app',
    f'app_{datetime.now().strftime("%Y%m%d")}.log'
)
