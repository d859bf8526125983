"""Audio playback via sounddevice with timeout protection."""

import logging
import time
from typing import Iterable

import numpy as np

from pockettts.core.exceptions import AudioError, PocketTTSError

logger = logging.getLogger(__name__)

# Maximum seconds a single buffered playback may last
PLAYBACK_TIMEOUT = 120


def _load_sounddevice():
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise AudioError(
            f"sounddevice is not available ({e}). Run: pip install pocket-tts-py[playback]"
        ) from e
    return sd


class AudioPlayer:
    """Plays float32 sample buffers or chunk streams through the speakers.

    ``stop()`` may be called from another thread to halt playback.
    """

    def __init__(self, timeout: float = PLAYBACK_TIMEOUT):
        self._timeout = timeout
        self._stopped = False

    def _wait_with_timeout(self, sd):
        """Wait for buffered playback, checking the stop flag every 50ms."""
        start = time.monotonic()
        while True:
            if self._stopped:
                sd.stop()
                return

            elapsed = time.monotonic() - start
            if elapsed > self._timeout:
                logger.warning(
                    f"Playback timed out after {self._timeout:.0f}s, force stopping."
                )
                sd.stop()
                return
            stream = sd.get_stream()
            if stream is None or not stream.active:
                return
            time.sleep(0.05)

    def play(self, samples: np.ndarray, sample_rate: int):
        """Play one buffer and block until it finishes."""
        sd = _load_sounddevice()
        self._stopped = False
        try:
            sd.play(np.asarray(samples, dtype=np.float32), samplerate=sample_rate)
            self._wait_with_timeout(sd)
        except AudioError:
            raise
        except Exception as e:
            raise AudioError(f"Playback error: {e}") from e

    def play_chunks(self, chunks: Iterable[np.ndarray], sample_rate: int) -> int:
        """Play chunks as they arrive. Returns the number of samples played."""
        sd = _load_sounddevice()
        self._stopped = False
        played = 0
        try:
            with sd.OutputStream(samplerate=sample_rate, channels=1, dtype="float32") as out:
                for chunk in chunks:
                    if self._stopped:
                        break
                    data = np.asarray(chunk, dtype=np.float32).reshape(-1, 1)
                    out.write(data)
                    played += len(data)
        except PocketTTSError:
            raise
        except Exception as e:
            raise AudioError(f"Stream playback error: {e}") from e
        return played

    def stop(self):
        """Stop current playback."""
        self._stopped = True
