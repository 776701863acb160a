import threading
import time

import numpy as np
import pytest

from spectrum_engine.errors import DeviceError, InvalidArgument
from spectrum_engine.playback import PlaybackPosition, PlaybackSession, PlaybackStream, play_pcm
from spectrum_engine.ring_buffer import RingBuffer


class FakeOutputStream:
    """Stands in for a sounddevice stream: pulls blocks through the callback from its own thread"""

    def __init__(self, sample_rate, channels, callback, blocksize, delay=0.0005, out_frames=None, max_blocks=None):
        self.sample_rate = sample_rate
        self.channels = channels
        self.callback = callback
        self.blocksize = blocksize
        self.delay = delay
        self.out_frames = out_frames or blocksize
        self.max_blocks = max_blocks
        self.received = []
        self.active = True
        self.closed = False
        self.aborted = False
        self._thread = threading.Thread(target=self._pump, daemon=True)
        self._thread.start()

    def _pump(self):
        while self.active:
            if self.max_blocks is not None and len(self.received) >= self.max_blocks:
                # device dies: stops pulling blocks and reports itself inactive
                self.active = False
                break
            outdata = np.full((self.out_frames, self.channels), np.nan, dtype=np.float32)
            self.callback(outdata, self.blocksize, None, None)
            self.received.append(outdata.copy())
            time.sleep(self.delay)

    def stop(self, ignore_errors=True):
        self.active = False
        self._thread.join(timeout=2)

    def abort(self, ignore_errors=True):
        self.aborted = True
        self.stop()

    def close(self, ignore_errors=True):
        self.closed = True

    def played(self):
        if not self.received:
            return np.zeros((0, self.channels), dtype=np.float32)
        return np.concatenate(self.received)


class FakeDevice:
    """device_factory that remembers the stream it opened"""

    def __init__(self, **options):
        self.options = options
        self.stream = None

    def __call__(self, sample_rate, channels, callback, blocksize):
        self.stream = FakeOutputStream(sample_rate, channels, callback, blocksize, **self.options)
        return self.stream


def make_player(device, **overrides):
    options = dict(device_factory=device, drain_poll=0.005, backpressure_poll=0.002, blocksize=256)
    options.update(overrides)
    return PlaybackStream(**options)


@pytest.mark.parametrize("channels", [1, 2])
def test_plays_every_frame_in_order(channels):
    rate = 8000
    pcm = np.linspace(0.1, 0.9, rate * channels).astype(np.float32)
    device = FakeDevice()
    with make_player(device) as player:
        session = player.play(pcm, channels, rate)
        report = session.result(timeout=10)

    assert not report.cancelled
    assert report.frames_submitted == report.frames_total == rate
    assert session.position.frames() == rate
    assert session.position_seconds() == pytest.approx(1.0)
    played = device.stream.played().reshape(-1)
    np.testing.assert_array_equal(played[played != 0], pcm)
    assert device.stream.closed
    assert not device.stream.aborted


def test_cancelled_before_start_writes_nothing():
    device = FakeDevice()
    cancel = threading.Event()
    cancel.set()
    pcm = np.ones(8000 * 10, dtype=np.float32)
    with make_player(device) as player:
        started = time.monotonic()
        session = player.play(pcm, 1, 8000, cancel)
        report = session.result(timeout=2)
        elapsed = time.monotonic() - started

    assert report.cancelled
    assert report.frames_submitted == 0
    assert session.position.frames() == 0
    assert not np.any(device.stream.played())
    assert device.stream.aborted and device.stream.closed
    assert elapsed < 1.0


def test_cancel_mid_stream_stops_promptly():
    device = FakeDevice(delay=0.005)
    rate = 8000
    pcm = np.full(rate * 60, 0.5, dtype=np.float32)
    with make_player(device, buffer_seconds=0.2) as player:
        session = player.play(pcm, 1, rate)
        time.sleep(0.05)
        session.cancel()
        report = session.result(timeout=1)

    assert report.cancelled
    assert 0 < report.frames_submitted < report.frames_total
    assert session.cancelled
    assert device.stream.aborted


def test_backpressure_keeps_buffer_near_half_capacity():
    device = FakeDevice(delay=0.002)
    rate = 8000
    buffer_seconds = 0.5
    capacity = int(buffer_seconds * rate)
    chunk_frames = 4096 // 4
    pcm = np.full(rate * 2, 0.25, dtype=np.float32)
    peak = 0
    with make_player(device, buffer_seconds=buffer_seconds) as player:
        session = player.play(pcm, 1, rate)
        while not session.done():
            peak = max(peak, session.buffered_frames())
            time.sleep(0.001)
        report = session.result(timeout=1)

    assert report.frames_submitted == rate * 2
    assert peak <= capacity // 2 + chunk_frames


def test_pcm_is_never_written():
    pcm = np.linspace(-0.5, 0.5, 4000).astype(np.float32)
    before = pcm.copy()
    with make_player(FakeDevice()) as player:
        session = player.play(pcm, 1, 8000)
        session.result(timeout=10)
    assert not session.pcm.flags.writeable
    assert pcm.flags.writeable
    np.testing.assert_array_equal(pcm, before)


def test_device_open_failure_is_reported_through_the_future():
    calls = []

    def broken_device(sample_rate, channels, callback, blocksize):
        calls.append(sample_rate)
        raise RuntimeError("no such device")

    with make_player(broken_device) as player:
        session = player.play(np.zeros(100, dtype=np.float32), 1, 8000)
        with pytest.raises(DeviceError) as err:
            session.result(timeout=2)

    assert calls == [8000]  # not retried
    assert isinstance(err.value.__cause__, RuntimeError)
    assert "sample_rate=8000" in str(err.value)


def test_device_error_from_factory_is_passed_through():
    def unavailable(sample_rate, channels, callback, blocksize):
        raise DeviceError("audio output unavailable", "open_output_device", sample_rate=sample_rate)

    with make_player(unavailable) as player:
        session = player.play(np.zeros(100, dtype=np.float32), 1, 8000)
        assert isinstance(session.exception(timeout=2), DeviceError)


def test_callback_failure_surfaces_as_device_error():
    # device hands the callback a buffer of the wrong shape
    device = FakeDevice(out_frames=16)
    with make_player(device) as player:
        session = player.play(np.full(8000 * 5, 0.5, dtype=np.float32), 1, 8000)
        with pytest.raises(DeviceError, match="mid-stream"):
            session.result(timeout=5)
    assert device.stream.closed


def test_device_dying_with_audio_still_buffered_is_an_error(caplog):
    # one 256-frame block is pulled, then the device goes silent and inactive
    device = FakeDevice(max_blocks=1)
    with make_player(device) as player:
        session = player.play(np.full(1000, 0.5, dtype=np.float32), 1, 8000)
        with pytest.raises(DeviceError, match="output device stopped"):
            session.result(timeout=5)

    assert session.position.frames() < 1000
    assert device.stream.closed
    assert any(r.levelname == "ERROR" for r in caplog.records)


class DeadStream:
    active = False


def test_drain_raises_when_device_stops_with_frames_left():
    player = make_player(FakeDevice())
    session = PlaybackSession(np.zeros(600, dtype=np.float32), 1, 8000, threading.Event())
    ring = RingBuffer(1000)
    ring.write(np.ones(600, dtype=np.float32))
    ring.read(256)
    try:
        with pytest.raises(DeviceError, match="before draining") as err:
            player._drain(session, ring, DeadStream())
    finally:
        player.shutdown()
    assert err.value.params["buffered_frames"] == 344


def test_drain_after_cancel_is_not_an_error():
    player = make_player(FakeDevice())
    cancel = threading.Event()
    cancel.set()
    session = PlaybackSession(np.zeros(600, dtype=np.float32), 1, 8000, cancel)
    ring = RingBuffer(1000)
    ring.write(np.ones(600, dtype=np.float32))
    try:
        player._drain(session, ring, DeadStream())
    finally:
        player.shutdown()
    assert ring.available_read() == 600


def test_invalid_arguments_fail_synchronously():
    with make_player(FakeDevice()) as player:
        with pytest.raises(InvalidArgument):
            player.play(np.zeros(10, dtype=np.float32), 0, 8000)
        with pytest.raises(InvalidArgument):
            player.play(np.zeros(10, dtype=np.float32), 1, 0)
        with pytest.raises(InvalidArgument):
            player.play(np.zeros(9, dtype=np.float32), 2, 8000)
        with pytest.raises(InvalidArgument):
            player.play(np.zeros((4, 2), dtype=np.float32), 2, 8000)


def test_play_pcm_helper():
    device = FakeDevice()
    session = play_pcm(np.full(800, 0.5, dtype=np.float32), 1, 8000,
                       device_factory=device, drain_poll=0.005)
    report = session.result(timeout=5)
    assert report.frames_submitted == 800
    done = []
    session.add_done_callback(done.append)
    assert done == [session]


def test_position_is_consistent_under_concurrent_updates():
    position = PlaybackPosition(1000)

    def bump():
        for _ in range(10000):
            position.advance(1)

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert position.frames() == 40000
    assert position.seconds() == pytest.approx(40.0)
