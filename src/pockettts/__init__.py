"""pocket-tts-py: managed Python bindings for the pocket-tts native engine."""

__version__ = "0.1.0"

from pockettts.binding.model import DecodingParams, Model
from pockettts.binding.stream import Stream, StreamState
from pockettts.binding.voice import VoiceState
from pockettts.core.exceptions import (
    EngineError,
    GenerationError,
    LoadError,
    PocketTTSError,
    ResourceNotLiveError,
    StreamError,
    UnknownEngineError,
    VoiceError,
)

__all__ = [
    "__version__",
    "DecodingParams",
    "EngineError",
    "GenerationError",
    "LoadError",
    "Model",
    "PocketTTSError",
    "ResourceNotLiveError",
    "Stream",
    "StreamError",
    "StreamState",
    "UnknownEngineError",
    "VoiceError",
    "VoiceState",
]
