# spectrum-engine/spectrum_engine/bands.py
"""
Log-spaced band aggregation for coarse spectrum visualization.

A full (double-sided) magnitude spectrum of N bins is folded into a handful of
bands whose edges are spaced logarithmically between 20 Hz and Nyquist. Only
bins 1..N/2 take part: the DC bin is left out.

Bands narrower than one bin (low end, short windows) end up with
start_bin > end_bin and are left at zero. They are not interpolated from their
neighbours.
"""

from dataclasses import dataclass

import numpy as np

from config import MIN_BAND_FREQUENCY_HZ
from .errors import InvalidArgument


@dataclass(frozen=True, eq=False)
class BandProfile:
    """Band magnitudes plus the sample rate and edge table that produced them"""
    values: np.ndarray
    sample_rate: int
    boundaries: np.ndarray

    @property
    def band_count(self) -> int:
        return int(self.values.shape[0])


def band_boundaries(sample_rate, band_count, min_frequency=MIN_BAND_FREQUENCY_HZ) -> np.ndarray:
    """
    band_count + 1 edge frequencies, log-uniform between ``min_frequency`` and
    Nyquist, with the first edge forced to 0 and the last to Nyquist.
    """
    if sample_rate <= 0:
        raise InvalidArgument("sample rate must be positive", "band_boundaries",
                              sample_rate=sample_rate, band_count=band_count)
    if band_count < 1:
        raise InvalidArgument("band count must be >= 1", "band_boundaries",
                              sample_rate=sample_rate, band_count=band_count)

    nyquist = sample_rate / 2.0
    min_log = np.log10(min_frequency)
    max_log = np.log10(nyquist)
    step = (max_log - min_log) / band_count

    bounds = 10.0 ** (min_log + np.arange(band_count + 1) * step)
    # a 20 Hz floor above Nyquist would make the edges run downwards
    bounds = np.minimum(bounds, nyquist)
    bounds[0] = 0.0
    bounds[band_count] = nyquist
    return bounds


def split_freq_map(sample_rate, magnitudes, band_count, min_frequency=MIN_BAND_FREQUENCY_HZ) -> np.ndarray:
    """Average a full magnitude spectrum into ``band_count`` log-spaced bands.

    Args:
        sample_rate: Sample rate of the analysed signal in Hz.
        magnitudes: Double-sided magnitude spectrum (length N >= 2).
        band_count: Number of output bands.

    Returns:
        Array of ``band_count`` band means, same float dtype as ``magnitudes``.
    """
    return _aggregate(sample_rate, magnitudes, band_count, min_frequency, "split_freq_map")[0]


def band_profile(sample_rate, magnitudes, band_count, min_frequency=MIN_BAND_FREQUENCY_HZ) -> BandProfile:
    """Same as split_freq_map, packaged with its edge table for a renderer"""
    values, bounds = _aggregate(sample_rate, magnitudes, band_count, min_frequency, "band_profile")
    return BandProfile(values=values, sample_rate=sample_rate, boundaries=bounds)


def _aggregate(sample_rate, magnitudes, band_count, min_frequency, operation):
    mags = np.asarray(magnitudes)
    if mags.ndim != 1 or mags.shape[0] < 2:
        raise InvalidArgument("magnitude spectrum needs at least 2 bins", operation,
                              shape=mags.shape, sample_rate=sample_rate, band_count=band_count)
    if not np.issubdtype(mags.dtype, np.floating):
        mags = mags.astype(np.float64)

    retained_count = mags.shape[0] // 2
    retained = mags[1:retained_count + 1]
    bounds = band_boundaries(sample_rate, band_count, min_frequency)
    resolution = (sample_rate / 2.0) / retained_count

    values = np.zeros(band_count, dtype=mags.dtype)
    for band in range(band_count):
        start_bin = int(bounds[band] / resolution)
        end_bin = min(int(bounds[band + 1] / resolution), retained_count - 1)
        if start_bin <= end_bin:
            values[band] = retained[start_bin:end_bin + 1].mean()
    return values, bounds
