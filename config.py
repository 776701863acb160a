# spectrum-engine/config.py

import os
import logging
logger = logging.getLogger(__name__)

# --- Project Root Directory ---
# This assumes config.py is in the project's root directory (e.g., spectrum-engine/)
PROJECT_ROOT_DIR = os.path.dirname(os.path.abspath(__file__))

# --- Playback streaming ---
# Chunk size handed to the ring buffer per producer iteration, in bytes of
# float32 PCM (4096 bytes = 1024 mono frames = 512 stereo frames).
PLAYBACK_CHUNK_BYTES = 4096

# Ring buffer length in seconds of audio at the stream's sample rate.
PLAYBACK_BUFFER_SECONDS = 5.0

# Producer backoff while the ring buffer is more than half full.
PLAYBACK_BACKPRESSURE_POLL_S = 0.010

# Poll interval while waiting for the device to play out what is buffered.
PLAYBACK_DRAIN_POLL_S = 0.100

# Frames requested per device callback.
PLAYBACK_DEVICE_BLOCKSIZE = 2048

# --- Spectrum analysis ---
# Analysis window = sample_rate // ANALYSIS_WINDOW_DIVISOR samples (50 ms).
ANALYSIS_WINDOW_DIVISOR = 20

# Number of log-spaced visualization bands and the lowest band edge.
DEFAULT_BAND_COUNT = 32
MIN_BAND_FREQUENCY_HZ = 20.0

# --- Visualizer feed ---
# A rise of the mean absolute level larger than this between two polls
# counts as an onset ("beat" flash).
ONSET_LEVEL_JUMP = 0.05

# Visual intensity = min(1.0, level * INTENSITY_GAIN)
INTENSITY_GAIN = 2.0

FEED_POLL_INTERVAL_S = 0.010

if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    logger.info(f"Project Root Directory: {PROJECT_ROOT_DIR}")
    logger.info(f"Playback: chunk={PLAYBACK_CHUNK_BYTES}B, buffer={PLAYBACK_BUFFER_SECONDS}s, "
                f"backoff={PLAYBACK_BACKPRESSURE_POLL_S * 1000:.0f}ms")
    logger.info(f"Analysis: window=1/{ANALYSIS_WINDOW_DIVISOR}s, bands={DEFAULT_BAND_COUNT}, "
                f"min freq={MIN_BAND_FREQUENCY_HZ}Hz")
