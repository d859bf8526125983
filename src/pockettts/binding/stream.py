"""Incremental generation sessions."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Optional

import numpy as np

from pockettts.binding.buffers import discard_buffer, take_samples
from pockettts.binding.handle import NativeHandle
from pockettts.core.constants import STREAM_CHUNK, STREAM_END
from pockettts.core.exceptions import StreamError

if TYPE_CHECKING:
    from pockettts.binding.model import Model
    from pockettts.binding.voice import VoiceState

logger = logging.getLogger(__name__)


class StreamState(enum.Enum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    RELEASED = "released"


class Stream(NativeHandle):
    """Forward-only sequence of audio chunks for one (model, voice, text).

    Poll with :meth:`poll` or iterate. Each chunk is a fresh float32 array
    at the model's sample rate, in synthesis order. Once end-of-stream has
    been seen, further polls return ``None`` without calling the engine.
    After a failed poll the stream stays failed and further polls raise
    the same StreamError. Releasing mid-generation abandons the rest.

    The stream must be released before the model and voice state it was
    created from; polling after either of them was released raises
    ResourceNotLiveError.
    """

    kind = "stream"

    def __init__(
        self,
        model: "Model",
        ptr: int,
        text: str,
        voice: Optional["VoiceState"] = None,
        long_text: bool = False,
    ):
        super().__init__(model.engine, ptr)
        self._model = model
        self._voice = voice
        self.text = text
        self.long_text = long_text
        self._state = StreamState.ACTIVE
        self._failure: Optional[StreamError] = None
        self._chunks = 0
        self._samples = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def exhausted(self) -> bool:
        return self._state is StreamState.EXHAUSTED

    @property
    def chunks_produced(self) -> int:
        return self._chunks

    @property
    def samples_produced(self) -> int:
        return self._samples

    @property
    def sample_rate(self) -> int:
        return self._model.sample_rate

    def _free(self, ptr: int) -> None:
        self._engine.stream_free(ptr)

    def _on_released(self) -> None:
        self._state = StreamState.RELEASED

    def poll(self) -> Optional[np.ndarray]:
        """Return the next chunk, or ``None`` at end of stream."""
        with self._engine.lock:
            ptr = self._require_live()
            if self._state is StreamState.EXHAUSTED:
                return None
            if self._state is StreamState.FAILED:
                raise type(self._failure)(self._failure.message, operation="pocket_tts_stream_next")
            self._model._require_live()
            if self._voice is not None:
                self._voice._require_live()

            status, out_ptr, out_len = self._engine.stream_next(ptr)
            if status >= STREAM_CHUNK:
                chunk = take_samples(self._engine, out_ptr, out_len)
                self._chunks += 1
                self._samples += len(chunk)
                return chunk
            if status == STREAM_END:
                discard_buffer(self._engine, out_ptr, out_len)
                self._state = StreamState.EXHAUSTED
                logger.debug(
                    f"Stream exhausted after {self._chunks} chunks "
                    f"({self._samples} samples)"
                )
                return None

            error = self._errors.failure(StreamError, "pocket_tts_stream_next")
            discard_buffer(self._engine, out_ptr, out_len)
            self._state = StreamState.FAILED
            self._failure = error
        raise error

    def __iter__(self):
        return self

    def __next__(self) -> np.ndarray:
        chunk = self.poll()
        if chunk is None:
            raise StopIteration
        return chunk

    def __repr__(self) -> str:
        return (
            f"<Stream {self._state.value} chunks={self._chunks} "
            f"long_text={self.long_text}>"
        )
