import numpy as np
import pytest

from spectrum_engine.errors import InvalidArgument
from spectrum_engine.spectrum import frequency_axis, magnitude, phase, single_sided_magnitude
from spectrum_engine.transform import Precision, transform


@pytest.mark.parametrize("precision", [Precision.DOUBLE, Precision.SINGLE])
def test_impulse_has_flat_magnitude_and_zero_phase(precision):
    frame = transform([1, 0, 0, 0, 0, 0, 0, 0], precision)
    np.testing.assert_array_equal(magnitude(frame), np.ones(8))
    np.testing.assert_array_equal(phase(frame), np.zeros(8))
    assert frequency_axis(frame.bin_count, 8).tolist() == [0.0, 1.0, 2.0, 3.0, 4.0]


def test_magnitude_and_phase_of_known_bins():
    bins = np.array([3 + 4j, -1 + 0j, 0 - 2j, 1 + 1j])
    np.testing.assert_allclose(magnitude(bins), [5.0, 1.0, 2.0, np.sqrt(2)])
    np.testing.assert_allclose(phase(bins), [np.arctan2(4, 3), np.pi, -np.pi / 2, np.pi / 4])


def test_phase_never_returns_minus_pi():
    bins = np.array([complex(-1.0, -0.0), complex(-1.0, 0.0)])
    out = phase(bins)
    assert np.all(out > -np.pi)
    np.testing.assert_allclose(out, [np.pi, np.pi])


def test_single_sided_length_and_scaling():
    bins = np.full(8, 8 + 0j)
    out = single_sided_magnitude(bins)
    assert out.shape == (5,)
    np.testing.assert_allclose(out, [1.0, 2.0, 2.0, 2.0, 1.0])


def test_single_sided_recovers_sine_amplitude(sine):
    n, rate = 1024, 1024
    x = sine(64, rate, n, amplitude=0.5) + 0.25
    out = single_sided_magnitude(transform(x))
    assert out[0] == pytest.approx(0.25, abs=1e-9)
    assert out[64] == pytest.approx(0.5, abs=1e-9)
    assert out.argmax() == 64


def test_single_sided_odd_length_scales_last_bin_by_two():
    bins = np.full(3, 3 + 0j)
    np.testing.assert_allclose(single_sided_magnitude(bins), [1.0, 2.0])


def test_single_sided_keeps_single_precision():
    frame = transform(np.ones(16, dtype=np.float32), Precision.SINGLE)
    assert single_sided_magnitude(frame).dtype == np.float32


def test_frequency_axis_resolution():
    axis = frequency_axis(4096, 44100)
    assert axis.shape == (2049,)
    assert axis[0] == 0.0
    assert axis[1] == pytest.approx(44100 / 4096)
    assert axis[-1] == pytest.approx(22050.0)


def test_frequency_axis_rejects_bad_arguments():
    with pytest.raises(InvalidArgument):
        frequency_axis(0, 44100)
    with pytest.raises(InvalidArgument):
        frequency_axis(1024, 0)


def test_empty_spectrum_is_rejected():
    with pytest.raises(InvalidArgument):
        magnitude(np.array([], dtype=complex))
