from __future__ import annotations

from typing import BinaryIO, Callable, Optional

from .mp3 import HEADER_SIZE, ID3_HEADER_SIZE, FrameHeader, id3v2_tag_length, parse_frame_header

DEFAULT_CHUNK_SIZE = 64 * 1024

FrameParser = Callable[[bytes, int], Optional[FrameHeader]]


class DurationAccumulator:
    """
    Sums the duration of the MPEG audio frames in a byte stream that arrives in
    chunks of any size.

    A leading ID3v2 tag is skipped, even when it spans several chunks. Bytes
    that might still start a frame are carried over to the next `feed`, so the
    result does not depend on how the stream was split.
    """

    def __init__(self, parse_header: FrameParser = parse_frame_header):
        self.parse_header = parse_header
        self.total = 0.0
        self.frames = 0
        self._pending = bytearray()
        self._inspected = False
        self._skip = 0

    def feed(self, chunk: bytes) -> None:
        self._pending += chunk

        if not self._inspected:
            if len(self._pending) < ID3_HEADER_SIZE:
                return
            self._inspect()

        self._scan()

    def finish(self) -> float:
        """Account for whatever is still buffered and return the total in seconds."""
        if not self._inspected:
            self._inspect()
            self._scan()
        self._pending.clear()
        return self.total

    def _inspect(self) -> None:
        self._inspected = True
        self._skip = id3v2_tag_length(self._pending) or 0

    def _scan(self) -> None:
        buf = self._pending

        if self._skip:
            n = min(self._skip, len(buf))
            del buf[:n]
            self._skip -= n
            if self._skip:
                return

        pos = 0
        end = len(buf)
        while end - pos >= HEADER_SIZE:
            frame = self.parse_header(buf, pos)
            if frame is None:
                pos += 1
                continue
            if pos + frame.frame_length > end:
                break
            self.total += frame.duration
            self.frames += 1
            pos += frame.frame_length

        del buf[:pos]


def measure_duration(
    stream: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    parse_header: FrameParser = parse_frame_header,
) -> float:
    """Total playback time in seconds of the MPEG audio in `stream`."""
    acc = DurationAccumulator(parse_header)
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        acc.feed(chunk)
    return acc.finish()
