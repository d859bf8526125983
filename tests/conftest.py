"""Shared test fixtures for pocket-tts-py."""

import re
import threading

import numpy as np
import pytest

from pockettts.binding.model import Model
from pockettts.engine.base import NativeEngine
from pockettts.engine.factory import set_default_engine


class TrackingLock:
    """Reentrant lock that knows whether the current thread holds it."""

    def __init__(self):
        self._lock = threading.RLock()
        self._owner = None
        self._depth = 0

    def acquire(self, blocking=True, timeout=-1):
        ok = self._lock.acquire(blocking, timeout)
        if ok:
            self._owner = threading.get_ident()
            self._depth += 1
        return ok

    def release(self):
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
        self._lock.release()

    __enter__ = acquire

    def __exit__(self, *exc):
        self.release()

    def held(self) -> bool:
        return self._owner == threading.get_ident()


class FakeEngine(NativeEngine):
    """Deterministic in-process stand-in for libpocket_tts_ffi.

    Synthesis output depends only on (text, voice), so streamed and one-shot
    results can be compared. Every call is recorded; buffers and handles are
    tracked so leaks and double frees fail loudly.
    """

    name = "fake"

    def __init__(self, sample_rate: int = 24000, chunk_size: int = 5):
        super().__init__()
        self.lock = TrackingLock()
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.calls = []
        self.error = None
        self.failures = {}
        self.forbid_calls = False
        self.empty_output = False
        self.stray_buffer_on_failure = False
        self.fail_stream_after = None
        self.models = {}
        self.voices = {}
        self.streams = {}
        self.buffers = {}
        self.free_count = 0
        self.received = {}
        self._next_ptr = 0x1000

    # ---- Test controls ----

    def fail(self, operation: str, message=None):
        """Make ``operation`` fail; ``message`` None leaves the error slot empty."""
        self.failures[operation] = message

    def synthesize(self, text: str, voice=None, pauses: bool = False) -> np.ndarray:
        offset = self.voices.get(voice, 0.0) if voice else 0.0
        if pauses:
            parts = [p for p in re.split(r"(?<=[.!?])\s+", text) if p]
            pieces = []
            for i, part in enumerate(parts):
                if i:
                    pieces.append(np.zeros(3, dtype=np.float32))
                pieces.append(self.synthesize(part, voice))
            return np.concatenate(pieces) if pieces else np.empty(0, dtype=np.float32)
        codes = np.array([ord(c) for c in text], dtype=np.float32)
        return (np.repeat(codes, 2) / 1000.0 + offset).astype(np.float32)

    @property
    def outstanding_buffers(self) -> int:
        return len(self.buffers)

    # ---- Internals ----

    def _enter(self, name: str):
        if self.forbid_calls:
            raise AssertionError(f"unexpected native call: {name}")
        assert self.lock.held(), f"{name} called without holding the engine lock"
        self.calls.append(name)

    def _start(self, name: str) -> bool:
        """Record the call, clear the slot like the real engine, report injected failure."""
        self._enter(name)
        self.error = None
        if name in self.failures:
            self.error = self.failures[name]
            return True
        return False

    def _alloc(self) -> int:
        ptr = self._next_ptr
        self._next_ptr += 0x10
        return ptr

    def _buffer(self, samples: np.ndarray):
        ptr = self._alloc()
        self.buffers[ptr] = np.asarray(samples, dtype=np.float32)
        return ptr, len(samples)

    def _failure_result(self):
        if self.stray_buffer_on_failure:
            ptr, length = self._buffer(np.ones(2, dtype=np.float32))
            return -1, ptr, length
        return -1, None, 0

    # ---- Error slot ----

    def last_error_message(self):
        self._enter("last_error_message")
        return self.error

    def clear_error(self):
        self._enter("clear_error")
        self.error = None

    # ---- Model ----

    def _load(self, name, **kwargs):
        if self._start(name):
            return None
        ptr = self._alloc()
        self.models[ptr] = kwargs
        self.received[name] = kwargs
        return ptr

    def model_load(self, variant):
        return self._load("model_load", variant=variant)

    def model_load_from_dir(self, variant, model_dir):
        return self._load("model_load_from_dir", variant=variant, model_dir=model_dir)

    def model_load_with_params(self, variant, temperature, lsd_decode_steps, eos_threshold):
        return self._load(
            "model_load_with_params",
            variant=variant,
            temperature=temperature,
            lsd_decode_steps=lsd_decode_steps,
            eos_threshold=eos_threshold,
        )

    def model_load_with_params_from_dir(self, variant, model_dir, temperature, lsd_decode_steps, eos_threshold):
        return self._load(
            "model_load_with_params_from_dir",
            variant=variant,
            model_dir=model_dir,
            temperature=temperature,
            lsd_decode_steps=lsd_decode_steps,
            eos_threshold=eos_threshold,
        )

    def model_free(self, model):
        self._enter("model_free")
        assert model in self.models, f"double free of model {model:#x}"
        del self.models[model]

    def model_sample_rate(self, model):
        self._enter("model_sample_rate")
        assert model in self.models
        return self.sample_rate

    # ---- Voice state ----

    def _voice(self, name, model, data, offset):
        if self._start(name):
            return None
        assert model in self.models, f"{name} on freed model"
        self.received[name] = data
        ptr = self._alloc()
        self.voices[ptr] = offset
        return ptr

    def voice_state_default(self):
        if self._start("voice_state_default"):
            return None
        ptr = self._alloc()
        self.voices[ptr] = 0.0
        return ptr

    def voice_state_from_path(self, model, path):
        return self._voice("voice_state_from_path", model, path, 0.25)

    def voice_state_from_audio_bytes(self, model, data):
        return self._voice("voice_state_from_audio_bytes", model, data, 0.5)

    def voice_state_from_prompt_bytes(self, model, data):
        return self._voice("voice_state_from_prompt_bytes", model, data, 0.75)

    def voice_state_free(self, state):
        self._enter("voice_state_free")
        assert state in self.voices, f"double free of voice state {state:#x}"
        del self.voices[state]

    # ---- Generation ----

    def _generate(self, name, model, text, voice, pauses):
        if self._start(name):
            return self._failure_result()
        assert model in self.models
        assert voice is None or voice in self.voices
        self.received[name] = {"text": text, "voice": voice}
        if self.empty_output:
            samples = np.empty(0, dtype=np.float32)
        else:
            samples = self.synthesize(text, voice, pauses=pauses)
        ptr, length = self._buffer(samples)
        return 0, ptr, length

    def generate(self, model, text, voice):
        return self._generate("generate", model, text, voice, False)

    def generate_with_pauses(self, model, text, voice):
        return self._generate("generate_with_pauses", model, text, voice, True)

    def stream_new(self, model, text, voice, long_text):
        if self._start("stream_new"):
            return None
        assert model in self.models
        self.received["stream_new"] = {"text": text, "voice": voice, "long_text": long_text}
        samples = self.synthesize(text, voice)
        chunks = [samples[i:i + self.chunk_size] for i in range(0, len(samples), self.chunk_size)]
        ptr = self._alloc()
        self.streams[ptr] = {"chunks": chunks, "polls": 0}
        return ptr

    def stream_next(self, stream):
        if self._start("stream_next"):
            return self._failure_result()
        assert stream in self.streams, f"poll on freed stream {stream:#x}"
        state = self.streams[stream]
        if self.fail_stream_after is not None and state["polls"] >= self.fail_stream_after:
            self.error = "decoder exploded"
            return self._failure_result()
        state["polls"] += 1
        if not state["chunks"]:
            return 0, None, 0
        ptr, length = self._buffer(state["chunks"].pop(0))
        return 1, ptr, length

    def stream_free(self, stream):
        self._enter("stream_free")
        assert stream in self.streams, f"double free of stream {stream:#x}"
        del self.streams[stream]

    # ---- Audio buffers ----

    def copy_audio(self, ptr, length):
        self._enter("copy_audio")
        assert ptr in self.buffers, f"read of freed buffer {ptr:#x}"
        return self.buffers[ptr][:length].copy()

    def audio_free(self, ptr, length):
        self._enter("audio_free")
        assert ptr in self.buffers, f"double free of buffer {ptr:#x}"
        assert len(self.buffers[ptr]) == length
        del self.buffers[ptr]
        self.free_count += 1


@pytest.fixture(autouse=True)
def _reset_default_engine():
    yield
    set_default_engine(None)


@pytest.fixture
def make_engine():
    """Factory for additional fake engines."""
    return FakeEngine


@pytest.fixture
def engine():
    """Fresh fake engine."""
    return FakeEngine()


@pytest.fixture
def model(engine):
    """Model loaded through the fake engine."""
    m = Model.load("b6369a24", engine=engine)
    yield m
    engine.forbid_calls = False
    m.release()


@pytest.fixture
def voice(model):
    """Voice state derived from a reference path."""
    v = model.voice_from_path("assets/ref.wav")
    yield v
    v.engine.forbid_calls = False
    v.release()


@pytest.fixture
def sample_audio():
    """Half a second of a 440 Hz tone at 24 kHz."""
    t = np.linspace(0, 0.5, 12000, endpoint=False, dtype=np.float32)
    return (0.3 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)
