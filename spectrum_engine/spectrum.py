# spectrum-engine/spectrum_engine/spectrum.py
# Magnitude / phase / frequency-axis derivation from a transform result.

import numpy as np

from .errors import InvalidArgument
from .transform import Precision, SpectrumFrame


def _bins(frame, operation):
    bins = np.asarray(frame.bins if isinstance(frame, SpectrumFrame) else frame)
    if bins.ndim != 1 or bins.shape[0] == 0:
        raise InvalidArgument("spectrum must be a non-empty 1-D sequence", operation, shape=bins.shape)
    if not np.iscomplexobj(bins):
        bins = bins.astype(np.complex128)
    return bins


def magnitude(frame) -> np.ndarray:
    """sqrt(re^2 + im^2) per bin"""
    return np.abs(_bins(frame, "magnitude"))


def phase(frame) -> np.ndarray:
    """atan2(im, re) per bin, in (-pi, pi]"""
    bins = _bins(frame, "phase")
    angles = np.angle(bins)
    # atan2 yields -pi for a negative real part with -0.0 imaginary part
    pi = angles.dtype.type(np.pi)
    angles[angles <= -pi] = pi
    return angles


def single_sided_magnitude(frame) -> np.ndarray:
    """
    Positive-frequency magnitude spectrum of a real signal, length N/2 + 1.

    Bin 0 (DC) and, for even N, the Nyquist bin are scaled by 1/N; every other
    bin by 2/N to fold in the energy of the mirrored negative frequencies.
    """
    mags = magnitude(frame)
    n = mags.shape[0]
    length = n // 2 + 1
    scale = np.full(length, 2.0 / n)
    scale[0] = 1.0 / n
    if n % 2 == 0:
        scale[-1] = 1.0 / n
    return (mags[:length] * scale).astype(mags.dtype, copy=False)


def frequency_axis(fft_size: int, sampling_rate: float, precision: Precision = Precision.DOUBLE) -> np.ndarray:
    """Frequency in Hz of each single-sided bin: i * sampling_rate / fft_size"""
    if fft_size < 1:
        raise InvalidArgument("fft size must be >= 1", "frequency_axis",
                              fft_size=fft_size, sampling_rate=sampling_rate)
    if sampling_rate <= 0:
        raise InvalidArgument("sampling rate must be positive", "frequency_axis",
                              fft_size=fft_size, sampling_rate=sampling_rate)
    resolution = sampling_rate / fft_size
    return (np.arange(fft_size // 2 + 1) * resolution).astype(precision.real_dtype)
