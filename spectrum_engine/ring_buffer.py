#!/usr/bin/env python3
"""
Frame ring buffer for the playback path.

Thread-safe circular buffer between the playback producer thread and the
output device callback. Holds float32 frames of a fixed channel count and
accepts partial writes: a write returns how many frames actually fit.
"""

import numpy as np
import threading
import logging

logger = logging.getLogger(__name__)


class RingBuffer:
    """Thread-safe ring buffer for interleaved audio frames"""

    def __init__(self, capacity_frames, channels=1):
        """
        Args:
            capacity_frames: Number of frames the buffer can hold
            channels: Number of audio channels per frame
        """
        if int(capacity_frames) < 1 or int(channels) < 1:
            raise ValueError(f"Invalid ring buffer shape: {capacity_frames} frames x {channels} channels")
        self.channels = int(channels)
        self.cap = int(capacity_frames)
        self.buf = np.zeros((self.cap, self.channels), dtype=np.float32)
        self.w = 0  # write index
        self.r = 0  # read index
        self.size = 0
        self.total_written = 0
        self.total_read = 0
        self.lock = threading.Lock()

    def write(self, x):
        """
        Write frames to the ring buffer.

        Args:
            x: numpy array shaped (frames, channels), or 1-D for mono

        Returns:
            int: Number of frames actually written
        """
        if x.ndim == 1:
            x = x.reshape(-1, 1)
        if x.shape[1] != self.channels:
            raise ValueError(f"Expected {self.channels} channels, got {x.shape[1]}")

        n = x.shape[0]
        with self.lock:
            to_write = min(n, self.cap - self.size)
            if to_write <= 0:
                return 0
            first = min(to_write, self.cap - self.w)
            self.buf[self.w:self.w+first] = x[:first]
            second = to_write - first
            if second:
                self.buf[0:second] = x[first:first+second]
            self.w = (self.w + to_write) % self.cap
            self.size += to_write
            self.total_written += to_write
            return to_write

    def read(self, n):
        """
        Read up to n frames. Returns (data, frames_read); data is always n
        frames long, zero-filled past frames_read.
        """
        out = np.zeros((n, self.channels), dtype=np.float32)
        with self.lock:
            to_read = min(n, self.size)
            if to_read <= 0:
                return out, 0
            first = min(to_read, self.cap - self.r)
            out[:first] = self.buf[self.r:self.r+first]
            second = to_read - first
            if second:
                out[first:first+second] = self.buf[:second]
            self.r = (self.r + to_read) % self.cap
            self.size -= to_read
            self.total_read += to_read
            return out, to_read

    def available_read(self):
        """Return number of frames available to read"""
        with self.lock:
            return self.size

    def more_than_half_full(self):
        with self.lock:
            return self.size > self.cap // 2

    def get_stats(self):
        """Return buffer statistics for debugging"""
        with self.lock:
            return {
                'capacity': self.cap,
                'size': self.size,
                'available_write': self.cap - self.size,
                'available_read': self.size,
                'total_written': self.total_written,
                'total_read': self.total_read,
                'channels': self.channels
            }
