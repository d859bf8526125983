"""Ownership transfer of native sample buffers."""

from typing import Optional

import numpy as np

from pockettts.engine.base import NativeEngine


def take_samples(engine: NativeEngine, ptr: Optional[int], length: int) -> np.ndarray:
    """Copy a native float32 buffer into a numpy array and free it exactly once.

    A NULL pointer is an empty result and is never passed to ``audio_free``.
    """
    if not ptr:
        return np.empty(0, dtype=np.float32)
    try:
        if length == 0:
            return np.empty(0, dtype=np.float32)
        return engine.copy_audio(ptr, length)
    finally:
        engine.audio_free(ptr, length)


def discard_buffer(engine: NativeEngine, ptr: Optional[int], length: int) -> None:
    """Free a buffer handed back alongside a failure or end-of-stream status."""
    if ptr:
        engine.audio_free(ptr, length)
