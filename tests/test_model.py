"""Tests for model loading and lifecycle."""

import copy
import pickle

import pytest

from pockettts.binding.handle import NativeHandle
from pockettts.binding.model import DecodingParams, Model
from pockettts.core.constants import UNKNOWN_ERROR_MESSAGE
from pockettts.core.exceptions import LoadError, ResourceNotLiveError, UnknownEngineError
from pockettts.engine.factory import set_default_engine


class TestLoad:
    def test_load_variant(self, engine):
        model = Model.load("b6369a24", engine=engine)
        assert model.is_live
        assert model.variant == "b6369a24"
        assert model.sample_rate == 24000
        assert "model_load" in engine.calls
        model.release()

    def test_load_from_dir(self, engine, tmp_path):
        model = Model.load_from_dir("b6369a24", tmp_path, engine=engine)
        assert engine.received["model_load_from_dir"] == {
            "variant": "b6369a24",
            "model_dir": str(tmp_path),
        }
        assert model.model_dir == str(tmp_path)
        model.release()

    def test_load_with_params(self, engine):
        params = DecodingParams(temperature=0.5, lsd_decode_steps=4, eos_threshold=-3.0)
        model = Model.load_with_params("b6369a24", params, engine=engine)
        assert engine.received["model_load_with_params"] == {
            "variant": "b6369a24",
            "temperature": 0.5,
            "lsd_decode_steps": 4,
            "eos_threshold": -3.0,
        }
        assert model.params == params
        model.release()

    def test_load_with_params_from_dir(self, engine, tmp_path):
        params = DecodingParams()
        model = Model.load_with_params_from_dir("b6369a24", tmp_path, params, engine=engine)
        received = engine.received["model_load_with_params_from_dir"]
        assert received["model_dir"] == str(tmp_path)
        assert received["lsd_decode_steps"] == params.lsd_decode_steps
        model.release()

    def test_load_failure_message(self, engine):
        engine.fail("model_load", "bad variant")
        with pytest.raises(LoadError) as exc_info:
            Model.load("not-a-real-variant", engine=engine)
        assert str(exc_info.value) == "bad variant"
        assert exc_info.value.operation == "pocket_tts_model_load"
        assert engine.error is None

    def test_load_failure_without_message(self, engine):
        engine.fail("model_load_from_dir")
        with pytest.raises(LoadError) as exc_info:
            Model.load("b6369a24", model_dir="/nowhere", engine=engine)
        assert isinstance(exc_info.value, UnknownEngineError)
        assert str(exc_info.value) == UNKNOWN_ERROR_MESSAGE

    def test_uses_default_engine(self, engine):
        set_default_engine(engine)
        model = Model.load()
        assert model.engine is engine
        model.release()


class TestDecodingParams:
    def test_defaults(self):
        params = DecodingParams()
        assert params.temperature == 0.7
        assert params.lsd_decode_steps == 1
        assert params.eos_threshold == -4.0

    def test_rejects_zero_decode_steps(self):
        with pytest.raises(ValueError):
            DecodingParams(lsd_decode_steps=0)

    def test_rejects_negative_temperature(self):
        with pytest.raises(ValueError):
            DecodingParams(temperature=-0.1)


class TestRelease:
    def test_release_is_idempotent(self, engine):
        model = Model.load(engine=engine)
        model.release()
        model.release()
        assert not model.is_live
        assert engine.calls.count("model_free") == 1
        assert engine.models == {}

    def test_context_manager_releases(self, engine):
        with Model.load(engine=engine) as model:
            assert model.is_live
        assert not model.is_live
        assert engine.models == {}

    @pytest.mark.parametrize("operation", [
        lambda m: m.sample_rate,
        lambda m: m.generate("hi"),
        lambda m: m.generate_with_pauses("hi"),
        lambda m: m.stream("hi"),
        lambda m: m.default_voice(),
        lambda m: m.voice_from_path("ref.wav"),
        lambda m: m.voice_from_audio_bytes(b"RIFF"),
        lambda m: m.voice_from_prompt_bytes(b"prompt"),
    ])
    def test_operations_after_release_fail_fast(self, engine, operation):
        model = Model.load(engine=engine)
        model.release()
        engine.forbid_calls = True
        with pytest.raises(ResourceNotLiveError):
            operation(model)

    def test_copy_is_refused(self, model):
        with pytest.raises(TypeError):
            copy.copy(model)
        with pytest.raises(TypeError):
            copy.deepcopy(model)
        with pytest.raises(TypeError):
            pickle.dumps(model)

    def test_repr_shows_state(self, engine):
        model = Model.load(engine=engine)
        assert "live" in repr(model)
        model.release()
        assert "released" in repr(model)

    def test_handle_base_requires_free(self, engine):
        class NoFree(NativeHandle):
            pass

        with pytest.raises(TypeError):
            NativeHandle(engine, 1)
        with pytest.raises(TypeError):
            NoFree(engine, 1)
