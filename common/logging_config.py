import logging
import os
import re
import sys
from typing import Iterable, Optional

MASK = '***MASKED***'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# loggers of libraries that print request URLs (and therefore ?token=...)
LIBRARY_LOGGERS = ('httpx', 'httpcore')


def _key_pattern(key: str) -> re.Pattern:
    return re.compile(rf'({key}["\']?\s*[:=]\s*["\']?)([^"\'}}\s,&]+)', re.IGNORECASE)


class SensitiveDataFilter(logging.Filter):
    """
    Mask credentials before a record reaches any handler.

    Covers bearer tokens, the ``token`` query parameter of content URLs,
    encryption secrets and wallet signatures.
    """

    PATTERNS = [
        (re.compile(r'(bearer\s+)([^\s,}\'\"]+)', re.IGNORECASE), rf'\1{MASK}'),
        (_key_pattern('token'), rf'\1{MASK}'),
        (_key_pattern('secret'), rf'\1{MASK}'),
        (_key_pattern('signature'), rf'\1{MASK}'),
        (_key_pattern('password'), rf'\1{MASK}'),
        (_key_pattern(r'api[_-]?key'), rf'\1{MASK}'),
    ]

    @classmethod
    def mask(cls, text: str) -> str:
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if isinstance(record.args, dict):
            record.args = {k: self._masked(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._masked(arg) for arg in record.args)

        return True

    def _masked(self, value):
        return self.mask(value) if isinstance(value, str) else value


def _resolve_level(log_level: Optional[str]) -> int:
    name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    return getattr(logging, name, logging.INFO)


def _build_handler(level: int, correlation_id: Optional[str] = None) -> logging.Handler:
    fmt = LOG_FORMAT
    if correlation_id:
        fmt = fmt.replace('%(message)s', f'[{correlation_id}] - %(message)s')

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    handler.addFilter(SensitiveDataFilter())
    return handler


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> logging.Logger:
    """
    Attach a masking stream handler to a component logger.

    Calling it again for the same component only updates the level.

    Args:
        component_name: Top-level logger name ('cli', 'drive', 'common')
        log_level: DEBUG, INFO, WARNING or ERROR; defaults to LOG_LEVEL env var or INFO
        correlation_id: Optional ID included in every line

    Returns:
        Configured logger instance
    """
    level = _resolve_level(log_level)
    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    logger.addHandler(_build_handler(level, correlation_id))
    logger.propagate = False
    return logger


def setup_application_logging(
    components: Iterable[str],
    log_level: Optional[str] = None,
    debug: bool = False,
) -> logging.Logger:
    """
    Configure every component logger plus the HTTP library loggers.

    The HTTP libraries stay at WARNING unless debug is set, since their INFO
    lines carry full request URLs.

    Returns:
        Logger of the first component
    """
    components = list(components)
    level_name = 'DEBUG' if debug else log_level
    loggers = [setup_logging(name, level_name) for name in components]

    for name in LIBRARY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.DEBUG if debug else logging.WARNING)
        if not any(isinstance(f, SensitiveDataFilter) for f in library_logger.filters):
            library_logger.addFilter(SensitiveDataFilter())

    return loggers[0]


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
