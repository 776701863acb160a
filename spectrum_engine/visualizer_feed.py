# spectrum-engine/spectrum_engine/visualizer_feed.py
"""
Live spectrum feed: polls the playback position, slices a short window out of
the decoded signal, runs transform -> magnitude -> bands on it and hands the
result to a rendering sink.

Rendering (pixels, colours, labels) is the sink's business.
"""

import threading
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from config import (
    ANALYSIS_WINDOW_DIVISOR,
    DEFAULT_BAND_COUNT,
    ONSET_LEVEL_JUMP,
    INTENSITY_GAIN,
    FEED_POLL_INTERVAL_S,
)
from .bands import BandProfile, band_profile
from .errors import InvalidArgument, SpectrumEngineError
from .spectrum import magnitude
from .transform import Precision, transform

logger = logging.getLogger(__name__)


def default_window_size(sample_rate: int) -> int:
    return max(1, sample_rate // ANALYSIS_WINDOW_DIVISOR)


def analysis_window(samples, sample_rate, position_seconds, window_size=None) -> np.ndarray:
    """
    Window of ``window_size`` samples starting at the playback position.

    Positions whose window would run past the end are clamped back to the last
    full window; a signal shorter than one window is returned whole.
    """
    x = np.asarray(samples)
    if sample_rate <= 0:
        raise InvalidArgument("sample rate must be positive", "analysis_window",
                              sample_rate=sample_rate, position_seconds=position_seconds)
    size = window_size if window_size is not None else default_window_size(sample_rate)
    if size < 1:
        raise InvalidArgument("window size must be >= 1", "analysis_window", window_size=size)

    total = x.shape[0]
    start = max(0, int(position_seconds * sample_rate))
    if start + size > total:
        start = max(0, total - size)
    return x[start:start + size]


def signal_level(window) -> float:
    """Mean absolute sample value"""
    x = np.asarray(window)
    if x.shape[0] == 0:
        return 0.0
    return float(np.mean(np.abs(x)))


def analyze_window(window, sample_rate, band_count=DEFAULT_BAND_COUNT,
                   precision=Precision.SINGLE) -> BandProfile:
    """Transform -> magnitude -> log bands for one window"""
    frame = transform(window, precision)
    return band_profile(sample_rate, magnitude(frame), band_count)


class OnsetDetector:
    """Flags a sudden rise of the signal level between consecutive polls"""

    def __init__(self, threshold=ONSET_LEVEL_JUMP):
        self.threshold = threshold
        self._previous = 0.0

    def update(self, level: float) -> bool:
        onset = level - self._previous > self.threshold
        self._previous = level
        return onset

    def reset(self):
        self._previous = 0.0


@dataclass(frozen=True)
class VisualFrame:
    profile: BandProfile
    level: float
    intensity: float
    onset: bool
    position_seconds: float


class VisualizerFeed:
    """
    Background polling loop feeding a renderer.

    Args:
        signal: Mono Signal (or anything with ``samples`` and ``sample_rate``).
        position_source: Callable returning the live playback position in
            seconds, e.g. ``PlaybackSession.position_seconds``.
        sink: Callable receiving each VisualFrame.
    """

    def __init__(self, signal, position_source: Callable[[], float], sink: Callable[[VisualFrame], None],
                 band_count=DEFAULT_BAND_COUNT, window_size=None, poll_interval=FEED_POLL_INTERVAL_S,
                 precision=Precision.SINGLE, onset_threshold=ONSET_LEVEL_JUMP, intensity_gain=INTENSITY_GAIN):
        if getattr(signal, 'channel_count', 1) != 1:
            raise InvalidArgument("visualizer feed needs a mono signal", "VisualizerFeed",
                                  channel_count=signal.channel_count)
        if signal.samples.shape[0] < 2:
            # one sample transforms to a single bin, which cannot be split into bands
            raise InvalidArgument("signal needs at least 2 samples", "VisualizerFeed",
                                  samples=signal.samples.shape[0], sample_rate=signal.sample_rate)
        self.signal = signal
        self.position_source = position_source
        self.sink = sink
        self.band_count = band_count
        self.window_size = window_size or default_window_size(signal.sample_rate)
        if self.window_size < 2:
            raise InvalidArgument("window size must be >= 2", "VisualizerFeed",
                                  window_size=self.window_size, sample_rate=signal.sample_rate)
        self.poll_interval = poll_interval
        self.precision = precision
        self.intensity_gain = intensity_gain
        self.onsets = OnsetDetector(onset_threshold)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def step(self) -> VisualFrame:
        """One poll: read position, analyse the window, deliver the frame."""
        position = self.position_source()
        window = analysis_window(self.signal.samples, self.signal.sample_rate, position, self.window_size)
        profile = analyze_window(window, self.signal.sample_rate, self.band_count, self.precision)
        level = signal_level(window)
        frame = VisualFrame(
            profile=profile,
            level=level,
            intensity=min(1.0, level * self.intensity_gain),
            onset=self.onsets.update(level),
            position_seconds=position,
        )
        self.sink(frame)
        return frame

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="VisualizerFeed")
        self._thread.start()
        logger.debug(f"VisualizerFeed - started ({self.band_count} bands, window {self.window_size} samples)")

    def stop(self, timeout=1.0):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("VisualizerFeed - thread did not join cleanly")
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self):
        while not self._stop_event.is_set():
            try:
                self.step()
            except SpectrumEngineError as e:
                logger.error(f"VisualizerFeed - analysis failed, stopping feed: {e}")
                break
            self._stop_event.wait(self.poll_interval)
        logger.debug("VisualizerFeed - loop finished")
