# spectrum-engine/spectrum_engine/playback.py
# Streaming PCM playback: producer thread -> ring buffer -> device callback

import threading
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from config import (
    PLAYBACK_CHUNK_BYTES,
    PLAYBACK_BUFFER_SECONDS,
    PLAYBACK_BACKPRESSURE_POLL_S,
    PLAYBACK_DRAIN_POLL_S,
    PLAYBACK_DEVICE_BLOCKSIZE,
)
from .errors import DeviceError, InvalidArgument
from .ring_buffer import RingBuffer

logger = logging.getLogger(__name__)

BYTES_PER_SAMPLE = 4  # float32

# device_factory(sample_rate, channels, callback, blocksize) -> started output stream
DeviceFactory = Callable[[int, int, Callable, int], object]


def open_output_device(sample_rate, channels, callback, blocksize=PLAYBACK_DEVICE_BLOCKSIZE):
    """Open and start a sounddevice output stream driven by ``callback``."""
    try:
        import sounddevice as sd
    except OSError as e:  # PortAudio shared library missing
        raise DeviceError(f"audio output unavailable: {e}", "open_output_device",
                          sample_rate=sample_rate, channels=channels) from e

    try:
        stream = sd.OutputStream(
            samplerate=sample_rate, channels=channels, dtype='float32',
            callback=callback, blocksize=blocksize,
            device=None  # Use default device
        )
        stream.start()
    except (sd.PortAudioError, ValueError) as e:
        raise DeviceError(f"could not open output device: {e}", "open_output_device",
                          sample_rate=sample_rate, channels=channels) from e
    return stream


class PlaybackPosition:
    """Frames played so far. Written by the device callback, read by anyone."""

    def __init__(self, sample_rate):
        self.sample_rate = sample_rate
        self._frames = 0
        self._lock = threading.Lock()

    def advance(self, frames):
        with self._lock:
            self._frames += frames

    def frames(self) -> int:
        with self._lock:
            return self._frames

    def seconds(self) -> float:
        with self._lock:
            return self._frames / self.sample_rate


@dataclass(frozen=True)
class PlaybackReport:
    frames_submitted: int
    frames_total: int
    cancelled: bool


class PlaybackSession:
    """
    An in-flight playback. Wraps the completion future of the background task.

    The PCM buffer is a read-only view; the session never writes to it.
    """

    def __init__(self, pcm, channel_count, sample_rate, cancel_event):
        self.pcm = pcm
        self.channel_count = channel_count
        self.sample_rate = sample_rate
        self.cancel_event = cancel_event
        self.position = PlaybackPosition(sample_rate)
        self.future: Optional[Future] = None
        self._device_failure: Optional[BaseException] = None
        self._producing = False
        self._underrun_logged = False
        self._ring = None

    @property
    def frames_total(self) -> int:
        return self.pcm.shape[0] // self.channel_count

    def cancel(self):
        """Request cooperative cancellation. Returns immediately."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def done(self) -> bool:
        return self.future is not None and self.future.done()

    def result(self, timeout=None) -> PlaybackReport:
        """Wait for completion; raises DeviceError if the device failed."""
        return self.future.result(timeout=timeout)

    def exception(self, timeout=None):
        return self.future.exception(timeout=timeout)

    def add_done_callback(self, fn):
        self.future.add_done_callback(lambda _f: fn(self))

    def position_seconds(self) -> float:
        return self.position.seconds()

    def buffered_frames(self) -> int:
        """Frames written to the ring buffer but not yet played"""
        return self._ring.available_read() if self._ring is not None else 0


class PlaybackStream:
    """
    Streams PCM to an output device under a bounded buffer.

    Each ``play`` call runs as an independent background task: a producer loop
    copies fixed-size chunks into a ring buffer holding a few seconds of audio,
    backing off while the buffer is more than half full, then waits for the
    device to drain. Cancellation is checked between chunks and between waits.
    """

    def __init__(self, device_factory: Optional[DeviceFactory] = None,
                 chunk_bytes=PLAYBACK_CHUNK_BYTES,
                 buffer_seconds=PLAYBACK_BUFFER_SECONDS,
                 backpressure_poll=PLAYBACK_BACKPRESSURE_POLL_S,
                 drain_poll=PLAYBACK_DRAIN_POLL_S,
                 blocksize=PLAYBACK_DEVICE_BLOCKSIZE,
                 max_sessions=1):
        self.device_factory = device_factory or open_output_device
        self.chunk_bytes = chunk_bytes
        self.buffer_seconds = buffer_seconds
        self.backpressure_poll = backpressure_poll
        self.drain_poll = drain_poll
        self.blocksize = blocksize
        self._executor = ThreadPoolExecutor(max_workers=max_sessions, thread_name_prefix="Playback")

    def play(self, pcm, channel_count, sample_rate, cancel_event: Optional[threading.Event] = None) -> PlaybackSession:
        """Start streaming ``pcm`` (interleaved float samples) in the background.

        Args:
            pcm: Interleaved samples, length divisible by ``channel_count``.
            channel_count: Channels per frame (>= 1).
            sample_rate: Frames per second (> 0).
            cancel_event: Cancellation signal; a fresh Event is created if omitted.

        Returns:
            PlaybackSession whose future resolves to a PlaybackReport, or fails
            with DeviceError.

        Raises:
            InvalidArgument: synchronously, for malformed arguments.
        """
        data = np.asarray(pcm, dtype=np.float32)
        if channel_count < 1:
            raise InvalidArgument("channel count must be >= 1", "play",
                                  channel_count=channel_count, sample_rate=sample_rate)
        if sample_rate <= 0:
            raise InvalidArgument("sample rate must be positive", "play",
                                  channel_count=channel_count, sample_rate=sample_rate)
        if data.ndim != 1 or data.shape[0] % channel_count:
            raise InvalidArgument("pcm must be 1-D interleaved with a whole number of frames", "play",
                                  samples=data.shape, channel_count=channel_count, sample_rate=sample_rate)

        view = data.view()
        view.flags.writeable = False
        session = PlaybackSession(view, int(channel_count), int(sample_rate),
                                  cancel_event if cancel_event is not None else threading.Event())
        session.future = self._executor.submit(self._run, session)
        return session

    def shutdown(self, wait=True):
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown(wait=True)

    # ---- internals ----
    def _run(self, session: PlaybackSession) -> PlaybackReport:
        channels = session.channel_count
        capacity = max(1, int(self.buffer_seconds * session.sample_rate))
        ring = RingBuffer(capacity, channels=channels)
        session._ring = ring
        callback = self._make_callback(session, ring)

        try:
            stream = self.device_factory(session.sample_rate, channels, callback, self.blocksize)
        except DeviceError:
            logger.error(f"Playback - output device open failed ({session.sample_rate}Hz, {channels}ch)")
            raise
        except Exception as e:
            logger.error(f"Playback - output device open failed: {e}")
            raise DeviceError(f"could not open output device: {e}", "play",
                              sample_rate=session.sample_rate, channels=channels) from e
        logger.info(f"🎵 Playback - device open: {session.sample_rate}Hz, {channels}ch, "
                    f"{session.frames_total} frames, buffer {capacity} frames")

        submitted = 0
        try:
            session._producing = True
            submitted = self._produce(session, ring, stream)
            session._producing = False
            self._drain(session, ring, stream)
        finally:
            session._producing = False
            cancelled = session.cancel_event.is_set()
            try:
                if cancelled:
                    stream.abort(ignore_errors=True)
                else:
                    stream.stop(ignore_errors=True)
            finally:
                stream.close(ignore_errors=True)
                logger.debug(f"Playback - ring buffer at close: {ring.get_stats()}")

        if cancelled:
            logger.info(f"Playback - cancelled after {submitted}/{session.frames_total} frames submitted")
        else:
            logger.info(f"Playback - finished, {submitted} frames played")
        return PlaybackReport(frames_submitted=submitted, frames_total=session.frames_total,
                              cancelled=cancelled)

    def _produce(self, session, ring, stream):
        frames = session.pcm.reshape(-1, session.channel_count)
        total = frames.shape[0]
        chunk_frames = max(1, self.chunk_bytes // (BYTES_PER_SAMPLE * session.channel_count))
        cancel = session.cancel_event
        submitted = 0

        while submitted < total and not cancel.is_set():
            # Backpressure: wait while the buffer is more than half full
            while ring.more_than_half_full():
                self._check_device(session, stream)
                if cancel.wait(self.backpressure_poll):
                    return submitted
            n = min(chunk_frames, total - submitted)
            submitted += ring.write(frames[submitted:submitted + n])
            self._check_device(session, stream)

        logger.debug(f"Playback - producer done: {submitted}/{total} frames, cancelled={cancel.is_set()}")
        return submitted

    def _drain(self, session, ring, stream):
        cancel = session.cancel_event
        while not cancel.is_set() and stream.active and ring.available_read() > 0:
            self._check_device(session, stream)
            cancel.wait(self.drain_poll)
        self._check_device(session, stream)

        remaining = ring.available_read()
        if remaining and not cancel.is_set():
            logger.error(f"🔊 Playback - output device stopped with {remaining} frames still buffered")
            raise DeviceError("output device stopped before draining", "play",
                              sample_rate=session.sample_rate, channels=session.channel_count,
                              buffered_frames=remaining)

    def _check_device(self, session, stream):
        failure = session._device_failure
        if failure is not None:
            raise DeviceError(f"output device failed mid-stream: {failure}", "play",
                              sample_rate=session.sample_rate, channels=session.channel_count) from failure
        if not stream.active and session._producing and not session.cancel_event.is_set():
            logger.error(f"🔊 Playback - output device stopped while streaming "
                         f"({session.position.frames()}/{session.frames_total} frames played)")
            raise DeviceError("output device stopped while streaming", "play",
                              sample_rate=session.sample_rate, channels=session.channel_count)

    def _make_callback(self, session, ring):
        def _callback(outdata, frames, time_info, status):
            try:
                if status and getattr(status, 'output_underflow', False):
                    logger.debug("Playback - device reported output underflow")
                out, n = ring.read(frames)
                if n < frames and session._producing and ring.total_written and not session._underrun_logged:
                    session._underrun_logged = True
                    logger.warning(f"🔊 Playback - buffer underrun: requested {frames} frames, got {n}")
                outdata[:] = out
                session.position.advance(n)
            except Exception as e:
                # Output silence and let the producer report the failure
                logger.error(f"🔊 Playback - CRITICAL: audio callback error: {e}")
                outdata.fill(0)
                session._device_failure = e
        return _callback


def play_pcm(pcm, channel_count, sample_rate, cancel_event=None, **stream_options) -> PlaybackSession:
    """One-shot helper: play on a private PlaybackStream that winds down when done."""
    stream = PlaybackStream(max_sessions=1, **stream_options)
    session = stream.play(pcm, channel_count, sample_rate, cancel_event)
    stream.shutdown(wait=False)
    return session
