"""ctypes adapter for libpocket_tts_ffi.

Every exported symbol gets explicit ``argtypes``/``restype`` so handles are
never truncated to C ``int`` and strings cross the boundary as UTF-8.
"""

import ctypes
import logging
import os
from typing import Optional

import numpy as np

from pockettts.core.exceptions import LibraryNotFoundError
from pockettts.engine.base import BufferResult, Handle, NativeEngine
from pockettts.engine.factory import library_lock

logger = logging.getLogger(__name__)

_c_float_p = ctypes.POINTER(ctypes.c_float)
_c_ubyte_p = ctypes.POINTER(ctypes.c_uint8)


def _encode(value: str, what: str) -> bytes:
    if "\x00" in value:
        raise ValueError(f"{what} must not contain NUL characters")
    return value.encode("utf-8")


class CtypesEngine(NativeEngine):
    """Native engine backed by the pocket-tts C ABI."""

    name = "ctypes"

    def __init__(self, library_path: str):
        super().__init__(lock=library_lock(library_path))
        self.library_path = library_path
        try:
            self._lib = ctypes.CDLL(library_path)
        except OSError as e:
            raise LibraryNotFoundError(
                f"Failed to load pocket-tts library from {library_path}: {e}"
            ) from e
        try:
            self._setup_prototypes()
        except AttributeError as e:
            raise LibraryNotFoundError(
                f"{library_path} does not export the pocket-tts ABI: {e}"
            ) from e
        logger.info(f"Loaded pocket-tts library from {library_path}")

    def _setup_prototypes(self) -> None:
        lib = self._lib
        handle = ctypes.c_void_p

        # const char *pocket_tts_last_error_message(void);
        lib.pocket_tts_last_error_message.argtypes = []
        lib.pocket_tts_last_error_message.restype = ctypes.c_char_p

        # void pocket_tts_clear_error(void);
        lib.pocket_tts_clear_error.argtypes = []
        lib.pocket_tts_clear_error.restype = None

        # pocket_tts_model_t *pocket_tts_model_load(const char *variant);
        lib.pocket_tts_model_load.argtypes = [ctypes.c_char_p]
        lib.pocket_tts_model_load.restype = handle

        lib.pocket_tts_model_load_with_params.argtypes = [
            ctypes.c_char_p,  # variant
            ctypes.c_float,  # temp
            ctypes.c_size_t,  # lsd_decode_steps
            ctypes.c_float,  # eos_threshold
        ]
        lib.pocket_tts_model_load_with_params.restype = handle

        lib.pocket_tts_model_load_from_dir.argtypes = [ctypes.c_char_p, ctypes.c_char_p]
        lib.pocket_tts_model_load_from_dir.restype = handle

        lib.pocket_tts_model_load_with_params_from_dir.argtypes = [
            ctypes.c_char_p,  # variant
            ctypes.c_char_p,  # model_dir
            ctypes.c_float,  # temp
            ctypes.c_size_t,  # lsd_decode_steps
            ctypes.c_float,  # eos_threshold
        ]
        lib.pocket_tts_model_load_with_params_from_dir.restype = handle

        lib.pocket_tts_model_free.argtypes = [handle]
        lib.pocket_tts_model_free.restype = None

        lib.pocket_tts_model_sample_rate.argtypes = [handle]
        lib.pocket_tts_model_sample_rate.restype = ctypes.c_uint32

        lib.pocket_tts_voice_state_default.argtypes = []
        lib.pocket_tts_voice_state_default.restype = handle

        lib.pocket_tts_voice_state_from_path.argtypes = [handle, ctypes.c_char_p]
        lib.pocket_tts_voice_state_from_path.restype = handle

        lib.pocket_tts_voice_state_from_audio_bytes.argtypes = [handle, _c_ubyte_p, ctypes.c_size_t]
        lib.pocket_tts_voice_state_from_audio_bytes.restype = handle

        lib.pocket_tts_voice_state_from_prompt_bytes.argtypes = [handle, _c_ubyte_p, ctypes.c_size_t]
        lib.pocket_tts_voice_state_from_prompt_bytes.restype = handle

        lib.pocket_tts_voice_state_free.argtypes = [handle]
        lib.pocket_tts_voice_state_free.restype = None

        # int pocket_tts_generate(model, text, voice, float **out_ptr, size_t *out_len);
        for name in ("pocket_tts_generate", "pocket_tts_generate_with_pauses"):
            fn = getattr(lib, name)
            fn.argtypes = [
                handle,  # model
                ctypes.c_char_p,  # text
                handle,  # voice_state (nullable)
                ctypes.POINTER(_c_float_p),  # out_ptr
                ctypes.POINTER(ctypes.c_size_t),  # out_len
            ]
            fn.restype = ctypes.c_int

        lib.pocket_tts_stream_new.argtypes = [handle, ctypes.c_char_p, handle, ctypes.c_int]
        lib.pocket_tts_stream_new.restype = handle

        lib.pocket_tts_stream_next.argtypes = [
            handle,
            ctypes.POINTER(_c_float_p),
            ctypes.POINTER(ctypes.c_size_t),
        ]
        lib.pocket_tts_stream_next.restype = ctypes.c_int

        lib.pocket_tts_stream_free.argtypes = [handle]
        lib.pocket_tts_stream_free.restype = None

        lib.pocket_tts_audio_free.argtypes = [_c_float_p, ctypes.c_size_t]
        lib.pocket_tts_audio_free.restype = None

    # ---- Error slot ----

    def last_error_message(self) -> Optional[str]:
        raw = self._lib.pocket_tts_last_error_message()
        if raw is None:
            return None
        return raw.decode("utf-8", errors="replace")

    def clear_error(self) -> None:
        self._lib.pocket_tts_clear_error()

    # ---- Model ----

    def model_load(self, variant: str) -> Handle:
        return self._lib.pocket_tts_model_load(_encode(variant, "variant"))

    def model_load_from_dir(self, variant: str, model_dir: str) -> Handle:
        return self._lib.pocket_tts_model_load_from_dir(
            _encode(variant, "variant"),
            _encode(os.fspath(model_dir), "model_dir"),
        )

    def model_load_with_params(self, variant, temperature, lsd_decode_steps, eos_threshold) -> Handle:
        return self._lib.pocket_tts_model_load_with_params(
            _encode(variant, "variant"),
            temperature,
            lsd_decode_steps,
            eos_threshold,
        )

    def model_load_with_params_from_dir(
        self, variant, model_dir, temperature, lsd_decode_steps, eos_threshold
    ) -> Handle:
        return self._lib.pocket_tts_model_load_with_params_from_dir(
            _encode(variant, "variant"),
            _encode(os.fspath(model_dir), "model_dir"),
            temperature,
            lsd_decode_steps,
            eos_threshold,
        )

    def model_free(self, model: int) -> None:
        self._lib.pocket_tts_model_free(model)

    def model_sample_rate(self, model: int) -> int:
        return int(self._lib.pocket_tts_model_sample_rate(model))

    # ---- Voice state ----

    def voice_state_default(self) -> Handle:
        return self._lib.pocket_tts_voice_state_default()

    def voice_state_from_path(self, model: int, path: str) -> Handle:
        return self._lib.pocket_tts_voice_state_from_path(model, _encode(os.fspath(path), "path"))

    def voice_state_from_audio_bytes(self, model: int, data: bytes) -> Handle:
        buf = (ctypes.c_uint8 * len(data)).from_buffer_copy(data)
        return self._lib.pocket_tts_voice_state_from_audio_bytes(model, buf, len(data))

    def voice_state_from_prompt_bytes(self, model: int, data: bytes) -> Handle:
        buf = (ctypes.c_uint8 * len(data)).from_buffer_copy(data)
        return self._lib.pocket_tts_voice_state_from_prompt_bytes(model, buf, len(data))

    def voice_state_free(self, state: int) -> None:
        self._lib.pocket_tts_voice_state_free(state)

    # ---- Generation ----

    def _call_with_buffer(self, fn, *args) -> BufferResult:
        out_ptr = _c_float_p()
        out_len = ctypes.c_size_t(0)
        status = fn(*args, ctypes.byref(out_ptr), ctypes.byref(out_len))
        ptr = ctypes.cast(out_ptr, ctypes.c_void_p).value
        return int(status), ptr, int(out_len.value)

    def generate(self, model: int, text: str, voice: Handle) -> BufferResult:
        return self._call_with_buffer(
            self._lib.pocket_tts_generate, model, _encode(text, "text"), voice
        )

    def generate_with_pauses(self, model: int, text: str, voice: Handle) -> BufferResult:
        return self._call_with_buffer(
            self._lib.pocket_tts_generate_with_pauses, model, _encode(text, "text"), voice
        )

    def stream_new(self, model: int, text: str, voice: Handle, long_text: bool) -> Handle:
        return self._lib.pocket_tts_stream_new(
            model, _encode(text, "text"), voice, 1 if long_text else 0
        )

    def stream_next(self, stream: int) -> BufferResult:
        return self._call_with_buffer(self._lib.pocket_tts_stream_next, stream)

    def stream_free(self, stream: int) -> None:
        self._lib.pocket_tts_stream_free(stream)

    # ---- Audio buffers ----

    def copy_audio(self, ptr: int, length: int) -> np.ndarray:
        if length == 0:
            return np.empty(0, dtype=np.float32)
        view = np.ctypeslib.as_array(ctypes.cast(ptr, _c_float_p), shape=(length,))
        return np.array(view, dtype=np.float32, copy=True)

    def audio_free(self, ptr: int, length: int) -> None:
        self._lib.pocket_tts_audio_free(ctypes.cast(ptr, _c_float_p), length)
