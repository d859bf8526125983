"""Voice conditioning states."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Optional, Union

from pockettts.binding.errors import ErrorChannel
from pockettts.binding.handle import NativeHandle
from pockettts.core.exceptions import VoiceError
from pockettts.engine.base import NativeEngine

if TYPE_CHECKING:
    from pockettts.binding.model import Model

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class VoiceState(NativeHandle):
    """Conditioning state derived from reference audio, a prompt, or the built-in default.

    Immutable once created. It keeps no reference to the model that derived
    it, only the engine and model variant, so that it can refuse to be used
    with a model it was not made for. The default voice has no variant and
    fits any model of its engine.
    """

    kind = "voice state"

    def __init__(
        self,
        engine: NativeEngine,
        ptr: int,
        variant: Optional[str] = None,
        source: str = "default",
    ):
        super().__init__(engine, ptr)
        self.variant = variant
        self.source = source

    def _free(self, ptr: int) -> None:
        self._engine.voice_state_free(ptr)

    @classmethod
    def default(cls, engine: Optional[NativeEngine] = None) -> "VoiceState":
        """Built-in default voice."""
        if engine is None:
            from pockettts.engine.factory import get_default_engine

            engine = get_default_engine()
        with engine.lock:
            ptr = engine.voice_state_default()
            if not ptr:
                raise ErrorChannel(engine).failure(VoiceError, "pocket_tts_voice_state_default")
        return cls(engine, ptr)

    @classmethod
    def from_path(cls, model: "Model", path: PathLike) -> "VoiceState":
        """Derive from a reference audio file (``.safetensors`` files are read as prompts)."""
        path = os.fspath(path)
        if not path:
            raise VoiceError("voice path is empty", operation="pocket_tts_voice_state_from_path")
        return cls._derive(model, "voice_state_from_path", path, source=path)

    @classmethod
    def from_audio_bytes(cls, model: "Model", data: bytes) -> "VoiceState":
        """Derive from an in-memory audio file (e.g. WAV bytes)."""
        if not data:
            raise VoiceError("audio bytes empty", operation="pocket_tts_voice_state_from_audio_bytes")
        return cls._derive(
            model, "voice_state_from_audio_bytes", bytes(data), source="audio bytes"
        )

    @classmethod
    def from_prompt_bytes(cls, model: "Model", data: bytes) -> "VoiceState":
        """Derive from a precomputed prompt blob."""
        if not data:
            raise VoiceError("prompt bytes empty", operation="pocket_tts_voice_state_from_prompt_bytes")
        return cls._derive(
            model, "voice_state_from_prompt_bytes", bytes(data), source="prompt bytes"
        )

    @classmethod
    def _derive(cls, model: "Model", native_name: str, arg, source: str) -> "VoiceState":
        engine = model.engine
        native = getattr(engine, native_name)
        operation = f"pocket_tts_{native_name}"
        with engine.lock:
            model_ptr = model._require_live()
            ptr = native(model_ptr, arg)
            if not ptr:
                raise model._errors.failure(VoiceError, operation)
        logger.debug(f"Derived voice state from {source} for variant {model.variant}")
        return cls(engine, ptr, variant=model.variant, source=source)

    def _check_compatible(self, engine: NativeEngine, variant: str) -> int:
        """Return the pointer if this voice may be used with a model of ``variant``."""
        ptr = self._require_live()
        if self._engine is not engine:
            raise VoiceError(
                "voice state belongs to a different engine instance",
                operation="voice compatibility",
            )
        if self.variant is not None and self.variant != variant:
            raise VoiceError(
                f"voice state was derived from model variant {self.variant!r}, "
                f"not {variant!r}",
                operation="voice compatibility",
            )
        return ptr

    def __repr__(self) -> str:
        state = "live" if self.is_live else "released"
        return f"<VoiceState {state} source={self.source!r} variant={self.variant!r}>"
