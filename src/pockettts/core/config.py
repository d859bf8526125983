"""Configuration with YAML loading and environment overlay."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from pockettts.core.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_EOS_THRESHOLD,
    DEFAULT_LSD_DECODE_STEPS,
    DEFAULT_TEMPERATURE,
    DEFAULT_VARIANT,
    ENV_HF_TOKEN,
    ENV_LIBRARY,
    ENV_MODEL_DIR,
    ENV_VARIANT,
    ENV_VOICE_PATH,
)
from pockettts.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> top-level config key
ENV_OVERRIDES = {
    ENV_VARIANT: "variant",
    ENV_MODEL_DIR: "model_dir",
    ENV_VOICE_PATH: "voice_path",
    ENV_LIBRARY: "library_path",
    ENV_HF_TOKEN: "hf_token",
}


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


@dataclass
class DecodingConfig:
    temperature: float = DEFAULT_TEMPERATURE
    lsd_decode_steps: int = DEFAULT_LSD_DECODE_STEPS
    eos_threshold: float = DEFAULT_EOS_THRESHOLD


@dataclass
class AppConfig:
    variant: str = DEFAULT_VARIANT
    model_dir: Optional[str] = None
    voice_path: Optional[str] = None
    library_path: Optional[str] = None
    hf_token: Optional[str] = None
    # None means the engine's own defaults
    decoding: Optional[DecodingConfig] = None
    logging: dict = field(default_factory=dict)

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "AppConfig":
        """Load the default YAML, merge a user file over it, then apply env overrides."""
        config_data: dict = {}
        if DEFAULT_CONFIG_FILE.exists():
            config_data = _read_yaml(DEFAULT_CONFIG_FILE)

        # Apply user override
        if config_path:
            user_path = Path(config_path)
            if not user_path.exists():
                raise ConfigError(f"User config not found: {user_path}")
            config_data = deep_merge(config_data, _read_yaml(user_path))

        env = os.environ if environ is None else environ
        for var, key in ENV_OVERRIDES.items():
            value = env.get(var)
            if value:
                config_data[key] = value

        return cls._from_dict(config_data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        decoding_data = data.get("decoding")
        decoding = None
        if decoding_data:
            if not isinstance(decoding_data, dict):
                raise ConfigError("'decoding' must be a mapping")
            try:
                decoding = DecodingConfig(**{
                    k: v for k, v in decoding_data.items()
                    if k in DecodingConfig.__dataclass_fields__
                })
            except TypeError as e:
                raise ConfigError(f"Invalid decoding section: {e}") from e

        return cls(
            variant=str(data.get("variant") or DEFAULT_VARIANT),
            model_dir=data.get("model_dir"),
            voice_path=data.get("voice_path"),
            library_path=data.get("library_path"),
            hf_token=data.get("hf_token"),
            decoding=decoding,
            logging=data.get("logging", {}) or {},
        )

    def decoding_params(self):
        """DecodingParams for the model loader, or None for engine defaults."""
        if self.decoding is None:
            return None
        from pockettts.binding.model import DecodingParams

        try:
            return DecodingParams(
                temperature=float(self.decoding.temperature),
                lsd_decode_steps=int(self.decoding.lsd_decode_steps),
                eos_threshold=float(self.decoding.eos_threshold),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid decoding parameters: {e}") from e

    def apply_environment(self) -> None:
        """Export the configured Hugging Face token for the native downloader."""
        if self.hf_token and not os.environ.get(ENV_HF_TOKEN):
            os.environ[ENV_HF_TOKEN] = self.hf_token
            logger.debug(f"Exported {ENV_HF_TOKEN} from config")

    def load_model(self, engine=None):
        """Load the configured model variant."""
        from pockettts.binding.model import Model

        return Model.load(
            self.variant,
            model_dir=self.model_dir,
            params=self.decoding_params(),
            engine=engine,
        )
