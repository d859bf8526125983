"""Exclusive ownership of one opaque native pointer."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pockettts.binding.errors import ErrorChannel
from pockettts.core.exceptions import ResourceNotLiveError
from pockettts.engine.base import NativeEngine

logger = logging.getLogger(__name__)


class NativeHandle(ABC):
    """Base for Model, VoiceState and Stream.

    The wrapper owns its pointer exclusively. ``release()`` frees it once
    and leaves the wrapper permanently empty; later calls are no-ops.
    Any other operation on an empty wrapper raises ResourceNotLiveError
    before touching the engine. Copying and pickling are refused, since
    a duplicate would free the same pointer twice.
    """

    kind = "resource"

    def __init__(self, engine: NativeEngine, ptr: Optional[int]):
        self._engine = engine
        self._ptr = ptr
        self._errors = ErrorChannel(engine)

    @property
    def engine(self) -> NativeEngine:
        return self._engine

    @property
    def is_live(self) -> bool:
        return self._ptr is not None

    def _require_live(self) -> int:
        """Return the pointer; callers hold ``engine.lock``."""
        if self._ptr is None:
            raise ResourceNotLiveError(f"{self.kind} is not live", operation=self.kind)
        return self._ptr

    @abstractmethod
    def _free(self, ptr: int) -> None:
        """Free ``ptr`` through the engine; called once, under the lock."""

    def release(self) -> None:
        """Free the native resource. Safe to call any number of times."""
        with self._engine.lock:
            if self._ptr is None:
                return
            ptr = self._ptr
            try:
                self._free(ptr)
            finally:
                self._ptr = None
                self._on_released()
        logger.debug(f"Released {self.kind} {ptr:#x}")

    def _on_released(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} owns a native handle and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} owns a native handle and cannot be copied")

    def __reduce__(self):
        raise TypeError(f"{type(self).__name__} owns a native handle and cannot be pickled")

    def __repr__(self) -> str:
        state = "live" if self.is_live else "released"
        return f"<{type(self).__name__} {state}>"
