"""Abstract surface of the pocket-tts native ABI."""

import threading
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

# Opaque native pointer; None stands for NULL
Handle = Optional[int]

# (status, buffer pointer, buffer length) as reported by calls with out-params
BufferResult = Tuple[int, Handle, int]


class NativeEngine(ABC):
    """One loaded instance of the native engine.

    Methods mirror the C functions one-to-one, with Python types at the
    boundary: strings are ``str``, handles are integers or ``None``, and
    out-parameters come back as part of the return value. Ownership rules
    are those of the C API; the binding layer enforces them.

    ``lock`` serializes every native call together with the read of the
    error slot that may follow it. The native error slot is process-wide,
    so all callers sharing this engine must hold it.
    """

    name = "native"

    def __init__(self, lock=None):
        self.lock = lock if lock is not None else threading.RLock()

    # ---- Error slot ----

    @abstractmethod
    def last_error_message(self) -> Optional[str]:
        ...

    @abstractmethod
    def clear_error(self) -> None:
        ...

    # ---- Model ----

    @abstractmethod
    def model_load(self, variant: str) -> Handle:
        ...

    @abstractmethod
    def model_load_from_dir(self, variant: str, model_dir: str) -> Handle:
        ...

    @abstractmethod
    def model_load_with_params(
        self,
        variant: str,
        temperature: float,
        lsd_decode_steps: int,
        eos_threshold: float,
    ) -> Handle:
        ...

    @abstractmethod
    def model_load_with_params_from_dir(
        self,
        variant: str,
        model_dir: str,
        temperature: float,
        lsd_decode_steps: int,
        eos_threshold: float,
    ) -> Handle:
        ...

    @abstractmethod
    def model_free(self, model: int) -> None:
        ...

    @abstractmethod
    def model_sample_rate(self, model: int) -> int:
        ...

    # ---- Voice state ----

    @abstractmethod
    def voice_state_default(self) -> Handle:
        ...

    @abstractmethod
    def voice_state_from_path(self, model: int, path: str) -> Handle:
        ...

    @abstractmethod
    def voice_state_from_audio_bytes(self, model: int, data: bytes) -> Handle:
        ...

    @abstractmethod
    def voice_state_from_prompt_bytes(self, model: int, data: bytes) -> Handle:
        ...

    @abstractmethod
    def voice_state_free(self, state: int) -> None:
        ...

    # ---- Generation ----

    @abstractmethod
    def generate(self, model: int, text: str, voice: Handle) -> BufferResult:
        ...

    @abstractmethod
    def generate_with_pauses(self, model: int, text: str, voice: Handle) -> BufferResult:
        ...

    @abstractmethod
    def stream_new(self, model: int, text: str, voice: Handle, long_text: bool) -> Handle:
        ...

    @abstractmethod
    def stream_next(self, stream: int) -> BufferResult:
        ...

    @abstractmethod
    def stream_free(self, stream: int) -> None:
        ...

    # ---- Audio buffers ----

    @abstractmethod
    def copy_audio(self, ptr: int, length: int) -> np.ndarray:
        """Copy ``length`` float32 samples out of a native buffer without freeing it."""
        ...

    @abstractmethod
    def audio_free(self, ptr: int, length: int) -> None:
        ...
