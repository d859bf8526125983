"""Background polling of a stream on a dedicated thread.

The stream is polled on a worker thread and chunks reach the consumer
through a bounded queue, so a caller can overlap playback or network
writes with synthesis. The worker owns the stream: it is the only thread
that polls it, and it releases the stream when polling ends for any reason.
"""

import logging
import queue
import threading
from typing import Optional

import numpy as np

from pockettts.binding.stream import Stream

logger = logging.getLogger(__name__)

# Queue item kinds
_CHUNK = "chunk"
_END = "end"
_ERROR = "error"

# Seconds between checks of the cancel flag while the queue is full
_PUT_POLL_INTERVAL = 0.05


class StreamWorker:
    """Polls a Stream on a background thread and hands chunks over a queue.

    Iterate the worker to receive chunks in order. A poll failure is
    re-raised in the consuming thread. ``cancel()`` stops polling after the
    poll in flight (native calls cannot be interrupted) and releases the
    stream; chunks not yet consumed are dropped.
    """

    def __init__(self, stream: Stream, max_pending: int = 4):
        if max_pending < 1:
            raise ValueError(f"max_pending must be >= 1, got {max_pending}")
        self._stream = stream
        self._queue: queue.Queue = queue.Queue(maxsize=max_pending)
        self._cancelled = threading.Event()
        self._finished = False
        self._thread: Optional[threading.Thread] = None

    @property
    def stream(self) -> Stream:
        return self._stream

    def start(self) -> "StreamWorker":
        if self._thread is not None:
            raise RuntimeError("StreamWorker already started")
        self._thread = threading.Thread(
            target=self._run, name="pockettts-stream", daemon=True
        )
        self._thread.start()
        return self

    def _put(self, item) -> bool:
        """Block until the item is queued; False if cancelled meanwhile."""
        while not self._cancelled.is_set():
            try:
                self._queue.put(item, timeout=_PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _run(self):
        try:
            while not self._cancelled.is_set():
                try:
                    chunk = self._stream.poll()
                except Exception as e:
                    self._put((_ERROR, e))
                    return
                if chunk is None:
                    self._put((_END, None))
                    return
                if not self._put((_CHUNK, chunk)):
                    return
        finally:
            self._stream.release()
            logger.debug("Stream worker finished")

    def get(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Next chunk, or ``None`` once the stream is exhausted or cancelled."""
        if self._finished:
            return None
        if self._thread is None:
            self.start()
        wait = timeout if timeout is not None else _PUT_POLL_INTERVAL
        while True:
            try:
                kind, payload = self._queue.get(timeout=wait)
            except queue.Empty:
                if timeout is not None:
                    raise TimeoutError(f"No chunk within {timeout}s")
                # Worker gone without queuing a final item: it was cancelled
                if self._cancelled.is_set() or (
                    not self._thread.is_alive() and self._queue.empty()
                ):
                    self._finished = True
                    return None
                continue
            if kind == _CHUNK:
                return payload
            self._finished = True
            if kind == _ERROR:
                raise payload
            return None

    def __iter__(self):
        while True:
            chunk = self.get()
            if chunk is None:
                return
            yield chunk

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Stop polling and release the stream once the poll in flight returns."""
        self._cancelled.set()
        if self._thread is not None:
            self._thread.join(timeout)
        else:
            self._stream.release()
        self._finished = True

    def __enter__(self) -> "StreamWorker":
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.cancel()
