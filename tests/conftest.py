"""
Pytest fixtures for spectrum_engine tests.
"""
import pytest
import sys
from pathlib import Path

import numpy as np
from scipy.io import wavfile

# Ensure repository root is on path (config.py lives there)
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def sample_rate():
    """Standard sample rate for tests."""
    return 44100


@pytest.fixture
def write_wav(tmp_path):
    """Write float32 PCM to a WAV file; frames shaped (n,) or (n, channels)."""
    def _write(name, data, rate=44100):
        path = tmp_path / name
        wavfile.write(str(path), rate, np.asarray(data, dtype=np.float32))
        return str(path)
    return _write


@pytest.fixture
def sine():
    """Sine wave generator: sine(freq, rate, n, amplitude)"""
    def _sine(freq, rate, n, amplitude=1.0):
        t = np.arange(n) / rate
        return amplitude * np.sin(2 * np.pi * freq * t)
    return _sine
