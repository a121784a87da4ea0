"""Logging implementation of the EventSink port."""

import logging
from typing import Any

from ..application.domain import EventSink


class LoggingEventSink(EventSink):
    """Writes pipeline events to the standard logging module."""

    def __init__(self, level: int = logging.INFO):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.level = level

    def emit(self, event: str, **fields: Any):
        details = " ".join(f"{key}={value}" for key, value in fields.items())
        self.logger.log(self.level, f"{event} {details}".rstrip())
