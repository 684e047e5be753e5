"""Splits a raw BGR24 video byte stream into RGB frames."""

from __future__ import annotations

import threading

DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 480
MAX_FRAMES = 30
_BYTES_PER_PIXEL = 3


def _bgr_to_rgb(frame: bytes) -> bytes:
    out = bytearray(frame)
    out[0::3] = frame[2::3]
    out[2::3] = frame[0::3]
    return bytes(out)


class FrameAssembler:
    """Buffers raw BGR24 bytes and yields complete frames as RGB.

    Only the newest ``max_frames`` frames' worth of bytes are kept, so a
    slow consumer drops old video rather than falling behind.
    """

    def __init__(
        self,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        max_frames: int = MAX_FRAMES,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("frame size must be positive")
        if max_frames <= 0:
            raise ValueError("max_frames must be positive")
        self.width = width
        self.height = height
        self.max_frames = max_frames
        self._buffer = bytearray()
        self._lock = threading.Lock()

    @property
    def frame_bytes(self) -> int:
        return self.width * self.height * _BYTES_PER_PIXEL

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a whole frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[bytes]:
        """Add stream bytes and return every complete frame, converted to RGB."""
        with self._lock:
            self._buffer.extend(data)
            size = self.frame_bytes
            limit = self.max_frames * size
            if len(self._buffer) > limit:
                del self._buffer[:-limit]
            frames = []
            while len(self._buffer) >= size:
                frame = bytes(self._buffer[:size])
                del self._buffer[:size]
                frames.append(_bgr_to_rgb(frame))
            return frames