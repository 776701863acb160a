# spectrum-engine/spectrum_engine/transform.py
"""
Radix-2 Fast Fourier Transform

Decimation-in-time Cooley-Tukey transform over power-of-two lengths. Inputs of
any other length are zero-padded (append only) up to the next power of two.
One recursive routine serves both numeric precisions; the precision decides
the dtype of every intermediate value, twiddle factors included.

All functions are pure: no module state, safe to call from several threads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from .errors import InvalidArgument


class Precision(Enum):
    """Numeric representation used for a transform"""
    DOUBLE = "double"
    SINGLE = "single"

    @property
    def real_dtype(self):
        return np.float64 if self is Precision.DOUBLE else np.float32

    @property
    def complex_dtype(self):
        return np.complex128 if self is Precision.DOUBLE else np.complex64

    @classmethod
    def of(cls, array: np.ndarray) -> "Precision":
        """Precision matching an array's dtype (single for 32/64-bit, double otherwise)"""
        if array.dtype in (np.float32, np.complex64):
            return cls.SINGLE
        return cls.DOUBLE


@dataclass(frozen=True, eq=False)
class SpectrumFrame:
    """Complex transform output.

    ``bins`` always has a power-of-two length. ``source_length`` is the input
    length before zero-padding.
    """
    bins: np.ndarray
    source_length: int

    @property
    def bin_count(self) -> int:
        return int(self.bins.shape[0])

    @property
    def precision(self) -> Precision:
        return Precision.of(self.bins)

    def __len__(self):
        return self.bin_count


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)"""
    power = 1
    while power < n:
        power <<= 1
    return power


def pad_to_power_of_two(values, dtype=None) -> np.ndarray:
    """Copy ``values`` into a zero-filled array of the next power-of-two length."""
    x = np.asarray(values, dtype=dtype)
    if x.ndim != 1:
        raise InvalidArgument("input must be one-dimensional", "pad_to_power_of_two", shape=x.shape)
    n = next_power_of_two(x.shape[0])
    padded = np.zeros(n, dtype=x.dtype)
    padded[:x.shape[0]] = x
    return padded


def _fft_recursive(x: np.ndarray, sign: float, precision: Precision) -> np.ndarray:
    n = x.shape[0]
    if n == 1:
        return x.copy()

    # split: even / odd indexed halves
    even = _fft_recursive(x[0::2], sign, precision)
    odd = _fft_recursive(x[1::2], sign, precision)

    half = n // 2
    angle = (sign * 2.0 * np.pi / n) * np.arange(half, dtype=precision.real_dtype)
    angle = angle.astype(precision.real_dtype, copy=False)
    twiddle = np.empty(half, dtype=precision.complex_dtype)
    twiddle.real = np.cos(angle)
    twiddle.imag = np.sin(angle)

    t = twiddle * odd
    out = np.empty(n, dtype=precision.complex_dtype)
    out[:half] = even + t
    out[half:] = even - t
    return out


def transform(values, precision: Precision = Precision.DOUBLE) -> SpectrumFrame:
    """Forward FFT of a real (or complex) sequence.

    Args:
        values: 1-D sequence, any length >= 1.
        precision: DOUBLE (complex128) or SINGLE (complex64).

    Returns:
        SpectrumFrame whose length is the next power of two >= len(values).

    Raises:
        InvalidArgument: empty or multi-dimensional input.
    """
    x = np.asarray(values)
    if x.ndim != 1:
        raise InvalidArgument("input must be one-dimensional", "transform", shape=x.shape)
    source_length = int(x.shape[0])
    if source_length == 0:
        raise InvalidArgument("input must not be empty", "transform", length=0)

    x = pad_to_power_of_two(x.astype(precision.complex_dtype, copy=False))
    bins = _fft_recursive(x, -1.0, precision)
    return SpectrumFrame(bins=bins, source_length=source_length)


def inverse_transform(frame, precision: Optional[Precision] = None) -> np.ndarray:
    """Inverse FFT, real part only.

    The imaginary remainder is discarded; the caller is responsible for passing
    a spectrum of a real-valued signal.

    Args:
        frame: SpectrumFrame or 1-D complex array of power-of-two length.
        precision: overrides the precision inferred from the frame.

    Returns:
        Real array of length N, in the precision's real dtype.
    """
    bins = np.asarray(frame.bins if isinstance(frame, SpectrumFrame) else frame)
    if bins.ndim != 1 or bins.shape[0] == 0:
        raise InvalidArgument("spectrum must be a non-empty 1-D sequence",
                              "inverse_transform", shape=bins.shape)
    n = int(bins.shape[0])
    if not is_power_of_two(n):
        raise InvalidArgument("spectrum length must be a power of two", "inverse_transform", length=n)

    if precision is None:
        precision = Precision.of(bins)
    bins = bins.astype(precision.complex_dtype, copy=False)
    time_domain = _fft_recursive(bins, 1.0, precision)
    return (time_domain.real / precision.real_dtype(n)).astype(precision.real_dtype, copy=False)
