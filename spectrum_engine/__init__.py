# spectrum-engine/spectrum_engine/__init__.py

from .errors import SpectrumEngineError, InvalidArgument, NotFound, FormatError, DeviceError
from .transform import Precision, SpectrumFrame, transform, inverse_transform
from .spectrum import magnitude, phase, single_sided_magnitude, frequency_axis
from .bands import BandProfile, band_boundaries, split_freq_map, band_profile
from .audio_ingest import Signal, read_signal, read_raw, downmix, normalize, side_channel
from .playback import PlaybackStream, PlaybackSession, PlaybackReport, play_pcm
from .visualizer_feed import VisualizerFeed, VisualFrame, analysis_window, analyze_window

__all__ = [
    'SpectrumEngineError', 'InvalidArgument', 'NotFound', 'FormatError', 'DeviceError',
    'Precision', 'SpectrumFrame', 'transform', 'inverse_transform',
    'magnitude', 'phase', 'single_sided_magnitude', 'frequency_axis',
    'BandProfile', 'band_boundaries', 'split_freq_map', 'band_profile',
    'Signal', 'read_signal', 'read_raw', 'downmix', 'normalize', 'side_channel',
    'PlaybackStream', 'PlaybackSession', 'PlaybackReport', 'play_pcm',
    'VisualizerFeed', 'VisualFrame', 'analysis_window', 'analyze_window',
]
