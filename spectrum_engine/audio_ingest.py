# spectrum-engine/spectrum_engine/audio_ingest.py
"""
Audio file ingest: decode -> (downmix) -> peak normalization.

Decoding is delegated to librosa. The rest of the engine only sees the PCM
contract: interleaved float32 samples in [-1, 1], a sample rate and a channel
count.
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
import librosa

from .errors import FormatError, InvalidArgument, NotFound

logger = logging.getLogger(__name__)

# decoder(path) -> (interleaved float32 samples, sample_rate, channel_count)
Decoder = Callable[[str], Tuple[np.ndarray, int, int]]


@dataclass(frozen=True, eq=False)
class Signal:
    """Decoded, normalized PCM. ``samples`` is read-only."""
    samples: np.ndarray
    sample_rate: int
    channel_count: int
    normalized: bool = False
    normalization_factor: float = 1.0

    @property
    def frame_count(self) -> int:
        return self.samples.shape[0] // self.channel_count

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate if self.sample_rate > 0 else 0.0


def librosa_decode(path: str) -> Tuple[np.ndarray, int, int]:
    """Decode with librosa at the file's native rate, keeping all channels."""
    audio, sample_rate = librosa.load(path, sr=None, mono=False, dtype=np.float32)
    if audio.ndim == 1:
        return audio, int(sample_rate), 1
    # librosa returns (channels, frames); the engine works on interleaved frames
    channels = audio.shape[0]
    return np.ascontiguousarray(audio.T).reshape(-1), int(sample_rate), int(channels)


def downmix(samples, channel_count: int) -> np.ndarray:
    """Interleaved multi-channel PCM -> mono, unweighted mean per frame."""
    x = np.asarray(samples)
    if channel_count < 1:
        raise InvalidArgument("channel count must be >= 1", "downmix", channel_count=channel_count)
    if x.ndim != 1 or x.shape[0] % channel_count != 0:
        raise InvalidArgument("sample count must be a multiple of the channel count", "downmix",
                              samples=x.shape, channel_count=channel_count)
    if channel_count == 1:
        return x
    mono = x.reshape(-1, channel_count).mean(axis=1, dtype=x.dtype if x.dtype.kind == 'f' else None)
    logger.debug(f"Downmix: {channel_count} channels -> mono, samples: {x.shape[0]} -> {mono.shape[0]}")
    return mono


def side_channel(samples, channel_count: int = 2) -> np.ndarray:
    """
    Right minus left for interleaved stereo PCM.

    Not a downmix: it cancels whatever is common to both channels (usually the
    centre-panned vocal) and keeps the difference signal.
    """
    x = np.asarray(samples)
    if channel_count != 2:
        raise InvalidArgument("side channel needs exactly 2 channels", "side_channel",
                              channel_count=channel_count)
    if x.ndim != 1 or x.shape[0] % 2 != 0:
        raise InvalidArgument("sample count must be a multiple of the channel count", "side_channel",
                              samples=x.shape, channel_count=channel_count)
    frames = x.reshape(-1, 2)
    return frames[:, 1] - frames[:, 0]


def normalize(samples) -> Tuple[np.ndarray, float]:
    """
    Rescale by 1/peak only when the absolute peak exceeds 1.0.

    Returns:
        (samples, factor). When the peak is <= 1.0 the input array is returned
        unchanged with factor 1.0.
    """
    x = np.asarray(samples)
    if x.shape[0] == 0:
        return x, 1.0
    peak = np.max(np.abs(x))
    if peak > 1.0:
        scale = x.dtype.type(1.0) / peak if x.dtype.kind == 'f' else 1.0 / peak
        return x * scale, float(scale)
    return x, 1.0


def read_signal(path: str, decoder: Optional[Decoder] = None) -> Signal:
    """Decode ``path``, downmix to mono and normalize."""
    samples, sample_rate, channels = _decode(path, decoder, "read_signal")
    mono = downmix(samples, channels)
    return _build_signal(mono, sample_rate, 1, channels)


def read_raw(path: str, decoder: Optional[Decoder] = None) -> Signal:
    """Decode ``path`` and normalize, keeping channels interleaved."""
    samples, sample_rate, channels = _decode(path, decoder, "read_raw")
    return _build_signal(samples, sample_rate, channels, channels)


def _decode(path, decoder, operation):
    if not path:
        raise InvalidArgument("file path must not be empty", operation, path=path)
    path = os.fspath(path)
    if not os.path.isfile(path):
        raise NotFound("audio file does not exist", operation, path=path)

    decoder = decoder or librosa_decode
    try:
        samples, sample_rate, channels = decoder(path)
    except Exception as e:
        raise FormatError(f"decoder rejected the file: {e}", operation, path=path) from e

    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    if sample_rate <= 0 or channels < 1:
        raise FormatError("decoder reported an invalid stream format", operation,
                          path=path, sample_rate=sample_rate, channels=channels)
    if samples.shape[0] % channels:
        # drop a trailing partial frame
        samples = samples[:samples.shape[0] - samples.shape[0] % channels]
    if samples.shape[0] == 0:
        logger.error(f"No audio data decoded from {path}")
        raise FormatError("decoded audio is empty", operation,
                          path=path, sample_rate=sample_rate, channels=channels)

    duration = samples.shape[0] / channels / sample_rate
    logger.info(f"Audio info: {sample_rate}Hz, {channels} channel(s), {duration:.2f}s "
                f"({os.path.basename(path)})")
    return samples, int(sample_rate), int(channels)


def _build_signal(samples, sample_rate, channel_count, source_channels):
    normalized, factor = normalize(samples)
    if factor != 1.0:
        logger.info(f"Normalized, scale factor: {factor}")
    else:
        logger.info("Samples already within [-1, 1], no normalization needed")
    normalized = np.array(normalized, dtype=np.float32, copy=True)
    normalized.flags.writeable = False
    logger.debug(f"Signal ready: {normalized.shape[0]} samples, {channel_count} channel(s) "
                 f"(decoded {source_channels})")
    return Signal(samples=normalized, sample_rate=sample_rate, channel_count=channel_count,
                  normalized=factor != 1.0, normalization_factor=factor)
