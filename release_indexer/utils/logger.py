"""
Structured logging with secret masking.

Provides the standard logger for all release_indexer modules with:
- Structured output (timestamps, log levels, module names)
- Secret masking (purge API keys, tokens, passwords)
- Configurable log levels
"""

import logging
import os
import re
import sys

# Patterns for secret masking
SECRET_PATTERNS = [
    (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)([^"\'\s]+)(["\']?)', re.IGNORECASE), r'\1***REDACTED***\3'),
    (re.compile(r'(fastly[_-]key["\']?\s*[:=]\s*["\']?)([^"\'\s]+)(["\']?)', re.IGNORECASE), r'\1***REDACTED***\3'),
    (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'\s]+)(["\']?)', re.IGNORECASE), r'\1***REDACTED***\3'),
    (re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^"\'\s]+)(["\']?)', re.IGNORECASE), r'\1***REDACTED***\3'),
    # Basic auth embedded in download URLs
    (re.compile(r'(https?://[^:/\s]+:)([^@\s]+)(@)'), r'\1***REDACTED***\3'),
]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SecretMaskingFormatter(logging.Formatter):
    """
    Logging formatter that masks secrets in log messages.

    Redacts API keys, tokens and credentials embedded in URLs.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record and mask secrets."""
        masked = super().format(record)
        for pattern, replacement in SECRET_PATTERNS:
            masked = pattern.sub(replacement, masked)
        return masked


def setup_logger(
    name: str = "release_indexer",
    level: str = "INFO",
    mask_secrets: bool = True
) -> logging.Logger:
    """
    Set up a structured logger with optional secret masking.

    Args:
        name: Logger name (typically module name)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        mask_secrets: Enable secret masking in log messages

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger("release_indexer.cli", level="DEBUG")
        >>> logger.info("Looking for archives in ~/CPAN/authors/id")
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if mask_secrets:
        formatter = SecretMaskingFormatter(LOG_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with default configuration.

    Uses environment variable LOG_LEVEL if set.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    level = os.getenv("LOG_LEVEL", "INFO")
    return setup_logger(name, level=level)


def set_level(level: str) -> None:
    """Change the level of every release_indexer logger created so far."""
    numeric = getattr(logging, level.upper())
    for name, logger in logging.root.manager.loggerDict.items():
        if name.startswith("release_indexer") and isinstance(logger, logging.Logger):
            logger.setLevel(numeric)


# Module-level logger for release_indexer
logger = get_logger("release_indexer")


__all__ = ["setup_logger", "get_logger", "set_level", "logger", "SecretMaskingFormatter"]
