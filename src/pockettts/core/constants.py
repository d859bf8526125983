"""Constants for pocket-tts-py."""

from pathlib import Path

# core/ -> pockettts/ -> src/ -> project root
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

# Default paths
CONFIG_DIR = PROJECT_ROOT / "config"
LOGS_DIR = PROJECT_ROOT / "logs"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "default.yaml"

# Packaged model variant used when none is configured
DEFAULT_VARIANT = "b6369a24"

# Native library
LIBRARY_NAME = "pocket_tts_ffi"
LIBRARY_FILENAMES = {
    "linux": "libpocket_tts_ffi.so",
    "darwin": "libpocket_tts_ffi.dylib",
    "win32": "pocket_tts_ffi.dll",
}

# Environment variables
ENV_VARIANT = "POCKET_TTS_VARIANT"
ENV_MODEL_DIR = "POCKET_TTS_MODEL_DIR"
ENV_VOICE_PATH = "POCKET_TTS_VOICE_PATH"
ENV_LIBRARY = "POCKET_TTS_LIBRARY"
ENV_HF_TOKEN = "HF_TOKEN"

# Status codes returned by the generate calls
GENERATE_OK = 0

# Status codes returned by stream_next
STREAM_CHUNK = 1
STREAM_END = 0

# Message used when a native call fails without setting the error slot
UNKNOWN_ERROR_MESSAGE = "pocket-tts: unknown error"

# Engine defaults for decoding parameters
DEFAULT_TEMPERATURE = 0.7
DEFAULT_LSD_DECODE_STEPS = 1
DEFAULT_EOS_THRESHOLD = -4.0
