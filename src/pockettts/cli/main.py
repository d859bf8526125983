"""CLI entry point for pocket-tts-py."""

import logging
import os
import sys
from contextlib import closing

import click

from pockettts import __version__
from pockettts.core.constants import ENV_HF_TOKEN

logger = logging.getLogger(__name__)


def _setup(config_path, log_level):
    """Load config and configure logging; exits on a bad config."""
    from pockettts.core.config import AppConfig
    from pockettts.core.exceptions import ConfigError
    from pockettts.core.logging import setup_logging

    try:
        app_config = AppConfig.load(config_path=config_path)
    except ConfigError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    log_cfg = app_config.logging
    setup_logging(
        level=log_level or log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
    )
    app_config.apply_environment()
    return app_config


def _load_model(app_config):
    from pockettts.engine.factory import create_engine, get_default_engine

    if not app_config.model_dir and not os.environ.get(ENV_HF_TOKEN):
        logger.warning("HF_TOKEN is not set; model download may fail for gated weights")

    engine = create_engine(app_config.library_path) if app_config.library_path else get_default_engine()
    return engine, app_config.load_model(engine)


def _player():
    from pockettts.audio.player import AudioPlayer

    return AudioPlayer()


def _collect(chunks, sink):
    """Pass chunks through while keeping them for the output file."""
    for chunk in chunks:
        sink.append(chunk)
        yield chunk


@click.group()
@click.version_option(version=__version__)
def main():
    """pocket-tts-py: text-to-speech through the pocket-tts native engine."""
    pass


@main.command()
@click.argument("text")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False),
              help="Write the audio to this WAV file")
@click.option("--voice", "-v", default=None,
              help="Reference voice audio (or .safetensors prompt)")
@click.option("--variant", default=None, help="Model variant")
@click.option("--model-dir", default=None, type=click.Path(file_okay=False),
              help="Load model weights from this directory")
@click.option("--config", "-c", default=None, help="Path to custom config YAML")
@click.option("--pauses", is_flag=True, help="Insert pauses between sentences")
@click.option("--stream", "use_stream", is_flag=True, help="Generate incrementally")
@click.option("--long", "long_text", is_flag=True, help="Sentence-level streaming for long input")
@click.option("--play", is_flag=True, help="Play the audio through the speakers")
@click.option("--log-level", default=None,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def synth(text, output, voice, variant, model_dir, config, pauses, use_stream,
          long_text, play, log_level):
    """Synthesize TEXT and report how many samples were generated."""
    from pockettts.audio.io import concat_chunks, write_wav
    from pockettts.core.exceptions import PocketTTSError

    app_config = _setup(config, log_level)
    if variant:
        app_config.variant = variant
    if model_dir:
        app_config.model_dir = model_dir
    voice_path = voice or app_config.voice_path

    if voice_path and not os.path.exists(voice_path):
        click.echo(f"voice path not found: {voice_path}", err=True)
        sys.exit(1)
    if pauses and (use_stream or long_text):
        click.echo("--pauses cannot be combined with --stream/--long", err=True)
        sys.exit(2)

    model = voice_state = None
    try:
        _, model = _load_model(app_config)
        if voice_path:
            voice_state = model.voice_from_path(voice_path)

        sample_rate = model.sample_rate
        if use_stream or long_text:
            with closing(model.iter_chunks(text, voice_state, long_text=long_text)) as chunks:
                if play:
                    collected = []
                    _player().play_chunks(_collect(chunks, collected), sample_rate)
                    samples = concat_chunks(collected)
                else:
                    samples = concat_chunks(chunks)
        else:
            if pauses:
                samples = model.generate_with_pauses(text, voice_state)
            else:
                samples = model.generate(text, voice_state)
            if play:
                _player().play(samples, sample_rate)

        if output:
            write_wav(output, samples, sample_rate)
    except (PocketTTSError, ValueError) as e:
        logger.error(f"Synthesis failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        if voice_state is not None:
            voice_state.release()
        if model is not None:
            model.release()

    click.echo(f"generated {len(samples)} samples at {sample_rate} Hz")


@main.command()
@click.option("--variant", default=None, help="Model variant")
@click.option("--model-dir", default=None, type=click.Path(file_okay=False),
              help="Load model weights from this directory")
@click.option("--config", "-c", default=None, help="Path to custom config YAML")
def info(variant, model_dir, config):
    """Load the model and print engine details."""
    from pockettts.core.exceptions import PocketTTSError

    app_config = _setup(config, None)
    if variant:
        app_config.variant = variant
    if model_dir:
        app_config.model_dir = model_dir

    try:
        engine, model = _load_model(app_config)
    except (PocketTTSError, ValueError) as e:
        logger.error(f"Model load failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with model:
        click.echo(f"pocket-tts-py v{__version__}")
        click.echo(f"Library: {getattr(engine, 'library_path', engine.name)}")
        click.echo(f"Variant: {model.variant}")
        click.echo(f"Model dir: {model.model_dir or '(packaged)'}")
        if model.params is not None:
            click.echo(
                f"Decoding: temperature={model.params.temperature} "
                f"lsd_decode_steps={model.params.lsd_decode_steps} "
                f"eos_threshold={model.params.eos_threshold}"
            )
        click.echo(f"Sample rate: {model.sample_rate} Hz")


if __name__ == "__main__":
    main()
