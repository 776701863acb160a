# spectrum-engine/main.py

import argparse
import time
import sys
import os
import logging

PROJECT_ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT_DIR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_DIR)

def setup_logging(log_level_str='INFO'):
    """Set up logging with specified level"""
    log_level = getattr(logging, log_level_str.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Suppress verbose logging from third-party libraries
    if log_level_str.upper() == 'DEBUG':
        # Keep numba at INFO level to avoid bytecode dumps
        logging.getLogger('numba').setLevel(logging.INFO)
        logging.getLogger('librosa').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


def render_bars(frame):
    """Text bars for the log: one character column per band"""
    values = frame.profile.values
    peak = float(values.max()) if values.size else 0.0
    if peak <= 0:
        peak = 1.0
    levels = " ▁▂▃▄▅▆▇█"
    scaled = [levels[min(len(levels) - 1, int(v / peak * frame.intensity * (len(levels) - 1)))] for v in values]
    return "".join(scaled)


def run_visualizer():
    parser = argparse.ArgumentParser(description="Spectrum Engine - play a file with a live band spectrum")
    parser.add_argument("audio_file", type=str, help="Path to the audio file to play.")
    parser.add_argument("--bands", type=int, default=None, help="Number of visualization bands (default from config.py)")
    parser.add_argument("--side", action='store_true',
                        help='Play the right-minus-left side channel of a stereo file instead of the mono downmix')
    parser.add_argument("--log-level",
                       choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                       default='INFO',
                       help='Set logging level (default: INFO)')
    args = parser.parse_args()

    logger = setup_logging(args.log_level)

    import config as app_config
    from spectrum_engine import (
        SpectrumEngineError, PlaybackStream, VisualizerFeed, read_raw, read_signal, side_channel,
    )

    band_count = args.bands or app_config.DEFAULT_BAND_COUNT
    try:
        signal = read_signal(args.audio_file)
        if args.side:
            raw = read_raw(args.audio_file)
            playback_pcm = side_channel(raw.samples, raw.channel_count)
        else:
            playback_pcm = signal.samples
    except SpectrumEngineError as e:
        logger.error(f"Could not load audio: {e}")
        return 1

    logger.info(f"🎵 Playing {os.path.basename(args.audio_file)} ({signal.duration_seconds:.1f}s, {band_count} bands)")
    logger.info("Press Ctrl+C to stop.")

    def log_frame(frame):
        if frame.onset:
            logger.info(f"[{frame.position_seconds:6.2f}s] {render_bars(frame)}  <- onset")
        else:
            logger.debug(f"[{frame.position_seconds:6.2f}s] {render_bars(frame)}")

    with PlaybackStream() as player:
        session = player.play(playback_pcm, 1, signal.sample_rate)
        try:
            feed = VisualizerFeed(signal, session.position_seconds, log_frame, band_count=band_count)
        except SpectrumEngineError as e:
            logger.error(f"Could not start visualizer: {e}")
            session.cancel()
            return 1
        feed.start()
        try:
            while not session.done():
                time.sleep(0.1)
        except KeyboardInterrupt:
            logger.info("Ctrl+C received, stopping playback...")
            session.cancel()
        finally:
            feed.stop()

        try:
            report = session.result()
        except SpectrumEngineError as e:
            logger.error(f"Playback failed: {e}")
            return 1

    logger.info(f"Done: {report.frames_submitted}/{report.frames_total} frames submitted"
                f"{' (cancelled)' if report.cancelled else ''}")
    return 0


if __name__ == '__main__':
    sys.exit(run_visualizer())
