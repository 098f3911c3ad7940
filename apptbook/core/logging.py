"""
Structured logging for the interactive session.

Log lines go through structlog on top of the stdlib logging module. The
logged-in actor is carried in context variables so every event emitted while
a session is open is tagged with it.
"""
import logging
from typing import Optional

import structlog


class TokenEfficientProcessor:
    """Processor to keep logs concise."""

    def __init__(self, max_length: int = 200):
        self.max_length = max_length

    def __call__(self, logger, method_name, event_dict):
        # Truncate long messages
        if 'message' in event_dict:
            event_dict['message'] = str(event_dict['message'])[:self.max_length]

        # Truncate error messages
        if 'error' in event_dict:
            event_dict['error'] = str(event_dict['error'])[:self.max_length]

        return event_dict


def setup_logging(debug: bool = False, level: str = "WARNING",
                  log_file: Optional[str] = None, max_log_length: int = 200):
    """Configure structured logging for the application."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        TokenEfficientProcessor(max_length=max_log_length),
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging; a file keeps the prompt clean
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        filename=log_file,
        force=True,
    )


def get_logger(name: str = __name__):
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_actor(username: str, **kwargs):
    """Tag subsequent log events with the logged-in user."""
    structlog.contextvars.bind_contextvars(actor=username, **kwargs)


def clear_context():
    """Clear actor context."""
    structlog.contextvars.clear_contextvars()
