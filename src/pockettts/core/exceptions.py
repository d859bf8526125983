"""Exception hierarchy for pocket-tts-py."""

from typing import Optional

from pockettts.core.constants import UNKNOWN_ERROR_MESSAGE


class PocketTTSError(Exception):
    """Base exception for all pocket-tts-py errors."""


class ConfigError(PocketTTSError):
    """Configuration loading or validation error."""


class LibraryNotFoundError(PocketTTSError):
    """The native pocket-tts shared library could not be located or loaded."""


class AudioError(PocketTTSError):
    """Audio encoding, decoding or playback error."""


class EngineError(PocketTTSError):
    """Structured failure surfaced by the binding layer.

    ``message`` is the text recovered from the native error slot (or a
    fallback), ``operation`` names the native call or wrapper operation
    that failed.
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation


class LoadError(EngineError):
    """Model construction failed."""


class VoiceError(EngineError):
    """Voice state derivation failed or the voice state is unusable here."""


class GenerationError(EngineError):
    """One-shot synthesis failed."""


class StreamError(EngineError):
    """Stream creation or a stream poll failed."""


class ResourceNotLiveError(EngineError):
    """Operation attempted on a released or never-constructed resource."""


class UnknownEngineError(EngineError):
    """The native layer signalled failure but left no error message."""

    def __init__(self, message: str = UNKNOWN_ERROR_MESSAGE, operation: Optional[str] = None):
        super().__init__(message, operation)


class UnknownLoadError(LoadError, UnknownEngineError):
    pass


class UnknownVoiceError(VoiceError, UnknownEngineError):
    pass


class UnknownGenerationError(GenerationError, UnknownEngineError):
    pass


class UnknownStreamError(StreamError, UnknownEngineError):
    pass


# Error kind -> class raised when the native error slot is empty
UNKNOWN_ERRORS = {
    LoadError: UnknownLoadError,
    VoiceError: UnknownVoiceError,
    GenerationError: UnknownGenerationError,
    StreamError: UnknownStreamError,
}
