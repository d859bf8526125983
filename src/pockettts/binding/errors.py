"""Read-and-clear access to the native error slot."""

import logging
from typing import Optional, Type

from pockettts.core.exceptions import UNKNOWN_ERRORS, EngineError, UnknownEngineError
from pockettts.engine.base import NativeEngine

logger = logging.getLogger(__name__)


class ErrorChannel:
    """Most-recent-failure message slot of one native engine.

    The slot is shared by every thread that talks to the engine, so the
    failing call and :meth:`failure` must run under the same hold of
    ``engine.lock``. Nothing else may touch the engine in between.
    """

    def __init__(self, engine: NativeEngine):
        self._engine = engine

    def take(self) -> Optional[str]:
        """Return the pending message (if any) and clear the slot."""
        message = self._engine.last_error_message()
        self._engine.clear_error()
        return message or None

    def clear(self) -> None:
        self._engine.clear_error()

    def failure(self, kind: Type[EngineError], operation: str) -> EngineError:
        """Drain the slot into an error of ``kind`` for a failed ``operation``."""
        message = self.take()
        if message is None:
            unknown = UNKNOWN_ERRORS.get(kind, UnknownEngineError)
            logger.debug(f"{operation} failed without an error message")
            return unknown(operation=operation)
        logger.debug(f"{operation} failed: {message}")
        return kind(message, operation=operation)
