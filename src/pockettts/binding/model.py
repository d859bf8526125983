"""Loaded synthesis models: the factory for voice states and streams."""

import logging
import os
from dataclasses import dataclass
from typing import Iterator, Optional, Union

import numpy as np

from pockettts.binding.buffers import discard_buffer, take_samples
from pockettts.binding.errors import ErrorChannel
from pockettts.binding.handle import NativeHandle
from pockettts.binding.stream import Stream
from pockettts.binding.voice import VoiceState
from pockettts.core.constants import (
    DEFAULT_EOS_THRESHOLD,
    DEFAULT_LSD_DECODE_STEPS,
    DEFAULT_TEMPERATURE,
    DEFAULT_VARIANT,
    GENERATE_OK,
)
from pockettts.core.exceptions import GenerationError, LoadError, StreamError
from pockettts.engine.base import NativeEngine

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class DecodingParams:
    """Decoding parameters fixed at model load time."""
    temperature: float = DEFAULT_TEMPERATURE
    lsd_decode_steps: int = DEFAULT_LSD_DECODE_STEPS
    eos_threshold: float = DEFAULT_EOS_THRESHOLD

    def __post_init__(self):
        if self.temperature < 0:
            raise ValueError(f"temperature must be >= 0, got {self.temperature}")
        if self.lsd_decode_steps < 1:
            raise ValueError(f"lsd_decode_steps must be >= 1, got {self.lsd_decode_steps}")


class Model(NativeHandle):
    """A loaded pocket-tts model.

    Immutable after loading. All native calls made through a model (and the
    voice states and streams it creates) are serialized on the engine lock,
    since the engine is not known to be reentrant and its error slot is
    shared.
    """

    kind = "model"

    def __init__(
        self,
        engine: NativeEngine,
        ptr: int,
        variant: str,
        model_dir: Optional[str] = None,
        params: Optional[DecodingParams] = None,
    ):
        super().__init__(engine, ptr)
        self.variant = variant
        self.model_dir = model_dir
        self.params = params
        with engine.lock:
            self._sample_rate = engine.model_sample_rate(ptr)

    def _free(self, ptr: int) -> None:
        self._engine.model_free(ptr)

    # ---- Loading ----

    @classmethod
    def load(
        cls,
        variant: str = DEFAULT_VARIANT,
        model_dir: Optional[PathLike] = None,
        params: Optional[DecodingParams] = None,
        engine: Optional[NativeEngine] = None,
    ) -> "Model":
        """Load ``variant``, optionally from a local directory and with decoding parameters."""
        if engine is None:
            from pockettts.engine.factory import get_default_engine

            engine = get_default_engine()
        if model_dir is not None:
            model_dir = os.fspath(model_dir)

        with engine.lock:
            if model_dir is None and params is None:
                operation = "pocket_tts_model_load"
                ptr = engine.model_load(variant)
            elif params is None:
                operation = "pocket_tts_model_load_from_dir"
                ptr = engine.model_load_from_dir(variant, model_dir)
            elif model_dir is None:
                operation = "pocket_tts_model_load_with_params"
                ptr = engine.model_load_with_params(
                    variant, params.temperature, params.lsd_decode_steps, params.eos_threshold
                )
            else:
                operation = "pocket_tts_model_load_with_params_from_dir"
                ptr = engine.model_load_with_params_from_dir(
                    variant,
                    model_dir,
                    params.temperature,
                    params.lsd_decode_steps,
                    params.eos_threshold,
                )
            if not ptr:
                raise ErrorChannel(engine).failure(LoadError, operation)
            try:
                model = cls(engine, ptr, variant, model_dir=model_dir, params=params)
            except BaseException:
                engine.model_free(ptr)
                raise

        source = model_dir or "packaged weights"
        logger.info(
            f"Loaded model variant {variant} from {source} "
            f"({model.sample_rate} Hz)"
        )
        return model

    @classmethod
    def load_from_dir(cls, variant: str, model_dir: PathLike, engine: Optional[NativeEngine] = None) -> "Model":
        return cls.load(variant, model_dir=model_dir, engine=engine)

    @classmethod
    def load_with_params(
        cls,
        variant: str,
        params: DecodingParams,
        engine: Optional[NativeEngine] = None,
    ) -> "Model":
        return cls.load(variant, params=params, engine=engine)

    @classmethod
    def load_with_params_from_dir(
        cls,
        variant: str,
        model_dir: PathLike,
        params: DecodingParams,
        engine: Optional[NativeEngine] = None,
    ) -> "Model":
        return cls.load(variant, model_dir=model_dir, params=params, engine=engine)

    @property
    def sample_rate(self) -> int:
        """Output sample rate in Hz."""
        with self._engine.lock:
            self._require_live()
            return self._sample_rate

    # ---- Voice states ----

    def default_voice(self) -> VoiceState:
        with self._engine.lock:
            self._require_live()
        return VoiceState.default(self._engine)

    def voice_from_path(self, path: PathLike) -> VoiceState:
        return VoiceState.from_path(self, path)

    def voice_from_audio_bytes(self, data: bytes) -> VoiceState:
        return VoiceState.from_audio_bytes(self, data)

    def voice_from_prompt_bytes(self, data: bytes) -> VoiceState:
        return VoiceState.from_prompt_bytes(self, data)

    def voice_from_samples(self, samples: np.ndarray, sample_rate: int) -> VoiceState:
        """Derive a voice from reference samples held in memory."""
        from pockettts.audio.io import to_wav_bytes

        return VoiceState.from_audio_bytes(self, to_wav_bytes(samples, sample_rate))

    def _voice_ptr(self, voice: Optional[VoiceState]) -> Optional[int]:
        if voice is None:
            return None
        return voice._check_compatible(self._engine, self.variant)

    # ---- One-shot generation ----

    def generate(self, text: str, voice: Optional[VoiceState] = None) -> np.ndarray:
        """Synthesize ``text`` into one float32 buffer."""
        return self._generate("generate", text, voice)

    def generate_with_pauses(self, text: str, voice: Optional[VoiceState] = None) -> np.ndarray:
        """Like :meth:`generate`, with engine-inserted pauses between sentences."""
        return self._generate("generate_with_pauses", text, voice)

    def _generate(self, native_name: str, text: str, voice: Optional[VoiceState]) -> np.ndarray:
        operation = f"pocket_tts_{native_name}"
        native = getattr(self._engine, native_name)
        with self._engine.lock:
            ptr = self._require_live()
            voice_ptr = self._voice_ptr(voice)
            status, out_ptr, out_len = native(ptr, text, voice_ptr)
            if status != GENERATE_OK:
                error = self._errors.failure(GenerationError, operation)
                discard_buffer(self._engine, out_ptr, out_len)
                raise error
            samples = take_samples(self._engine, out_ptr, out_len)
        logger.debug(f"{native_name}: {len(samples)} samples for {len(text)} chars")
        return samples

    # ---- Streaming ----

    def stream(self, text: str, voice: Optional[VoiceState] = None, long_text: bool = False) -> Stream:
        """Start an incremental generation session.

        ``long_text`` selects sentence-level segmentation inside the engine.
        """
        with self._engine.lock:
            ptr = self._require_live()
            voice_ptr = self._voice_ptr(voice)
            stream_ptr = self._engine.stream_new(ptr, text, voice_ptr, long_text)
            if not stream_ptr:
                raise self._errors.failure(StreamError, "pocket_tts_stream_new")
        return Stream(self, stream_ptr, text, voice=voice, long_text=long_text)

    def stream_long(self, text: str, voice: Optional[VoiceState] = None) -> Stream:
        return self.stream(text, voice, long_text=True)

    def iter_chunks(
        self,
        text: str,
        voice: Optional[VoiceState] = None,
        long_text: bool = False,
    ) -> Iterator[np.ndarray]:
        """Yield chunks from a private stream, releasing it however iteration ends."""
        stream = self.stream(text, voice, long_text=long_text)
        try:
            for chunk in stream:
                yield chunk
        finally:
            stream.release()

    def __repr__(self) -> str:
        state = "live" if self.is_live else "released"
        return f"<Model {state} variant={self.variant!r} sample_rate={self._sample_rate}>"
