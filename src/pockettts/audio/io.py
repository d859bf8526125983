"""Reading and writing float32 audio with soundfile."""

import io
import logging
import os
from typing import Iterable, Tuple, Union

import numpy as np
import soundfile as sf

from pockettts.core.exceptions import AudioError

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def concat_chunks(chunks: Iterable[np.ndarray]) -> np.ndarray:
    """Join stream chunks into one float32 buffer."""
    parts = [np.asarray(c, dtype=np.float32).reshape(-1) for c in chunks]
    if not parts:
        return np.empty(0, dtype=np.float32)
    return np.concatenate(parts)


def to_wav_bytes(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode mono float samples as a 32-bit float WAV file in memory."""
    if sample_rate <= 0:
        raise AudioError(f"Invalid sample rate: {sample_rate}")
    try:
        with io.BytesIO() as buf:
            sf.write(buf, np.asarray(samples, dtype=np.float32), sample_rate, format="WAV", subtype="FLOAT")
            return buf.getvalue()
    except AudioError:
        raise
    except Exception as e:
        raise AudioError(f"WAV encoding error: {e}") from e


def write_wav(path: PathLike, samples: np.ndarray, sample_rate: int) -> None:
    """Write mono float samples to a WAV file."""
    if sample_rate <= 0:
        raise AudioError(f"Invalid sample rate: {sample_rate}")
    try:
        sf.write(os.fspath(path), np.asarray(samples, dtype=np.float32), sample_rate, subtype="FLOAT")
    except Exception as e:
        raise AudioError(f"Could not write {path}: {e}") from e
    logger.info(f"Wrote {len(samples)} samples at {sample_rate} Hz to {path}")


def read_audio(path: PathLike) -> Tuple[np.ndarray, int]:
    """Read an audio file as mono float32 samples."""
    try:
        data, sample_rate = sf.read(os.fspath(path), dtype="float32", always_2d=True)
    except Exception as e:
        raise AudioError(f"Could not read {path}: {e}") from e
    # Downmix to mono
    return data.mean(axis=1).astype(np.float32), int(sample_rate)
