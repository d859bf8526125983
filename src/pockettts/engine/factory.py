"""Locating the native library and creating engines."""

import ctypes.util
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

from pockettts.core.constants import ENV_LIBRARY, LIBRARY_FILENAMES, LIBRARY_NAME
from pockettts.core.exceptions import LibraryNotFoundError
from pockettts.engine.base import NativeEngine

logger = logging.getLogger(__name__)

_default_engine: Optional[NativeEngine] = None
_default_lock = threading.Lock()

# One lock per loaded library file: the native error slot is process-wide
_library_locks = {}
_library_locks_guard = threading.Lock()


def library_lock(library_path: str) -> threading.RLock:
    """Return the lock shared by every engine that loads ``library_path``."""
    key = os.path.realpath(library_path)
    with _library_locks_guard:
        lock = _library_locks.get(key)
        if lock is None:
            lock = _library_locks[key] = threading.RLock()
        return lock


def find_library(library_path: Optional[str] = None) -> str:
    """Resolve the native library: explicit path, then $POCKET_TTS_LIBRARY, then the system search path."""
    candidate = library_path or os.environ.get(ENV_LIBRARY)
    if candidate:
        path = Path(candidate)
        if path.is_dir():
            filename = LIBRARY_FILENAMES.get(sys.platform, LIBRARY_FILENAMES["linux"])
            path = path / filename
        if not path.exists():
            raise LibraryNotFoundError(f"pocket-tts library not found at {path}")
        return str(path)

    found = ctypes.util.find_library(LIBRARY_NAME)
    if found is None:
        raise LibraryNotFoundError(
            f"Could not find the {LIBRARY_NAME} library. Build it with "
            f"`cargo build --release -p pocket-tts-ffi` and set {ENV_LIBRARY} "
            f"to the resulting file."
        )
    return found


def create_engine(library_path: Optional[str] = None) -> NativeEngine:
    """Load the native library and wrap it in a fresh engine."""
    from pockettts.engine.ctypes_engine import CtypesEngine

    path = find_library(library_path)
    logger.debug(f"Creating ctypes engine for {path}")
    return CtypesEngine(path)


def get_default_engine() -> NativeEngine:
    """Return the process-wide engine, creating it on first use."""
    global _default_engine
    with _default_lock:
        if _default_engine is None:
            _default_engine = create_engine()
        return _default_engine


def set_default_engine(engine: Optional[NativeEngine]) -> None:
    """Replace the process-wide engine (``None`` resets it)."""
    global _default_engine
    with _default_lock:
        _default_engine = engine
