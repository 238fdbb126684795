"""
MPEG audio (MP1/MP2/MP3) frame header decoding and ID3v2 header detection.

Only the four header bytes of a frame are examined. Free-format streams
(bitrate index 0) are not supported and read as invalid headers.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

HEADER_SIZE = 4
ID3_HEADER_SIZE = 10

MPEG1 = 3
MPEG2 = 2
MPEG25 = 0

# kbps, indexed [bitrate_index]; index 0 is free format, 15 is invalid
_BITRATES = {
    (MPEG1, 1): (0, 32, 64, 96, 128, 160, 192, 224, 256, 288, 320, 352, 384, 416, 448),
    (MPEG1, 2): (0, 32, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320, 384),
    (MPEG1, 3): (0, 32, 40, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320),
    (MPEG2, 1): (0, 32, 48, 56, 64, 80, 96, 112, 128, 144, 160, 176, 192, 224, 256),
    (MPEG2, 2): (0, 8, 16, 24, 32, 40, 48, 56, 64, 80, 96, 112, 128, 144, 160),
    (MPEG2, 3): (0, 8, 16, 24, 32, 40, 48, 56, 64, 80, 96, 112, 128, 144, 160),
}

_SAMPLE_RATES = {
    MPEG1: (44100, 48000, 32000),
    MPEG2: (22050, 24000, 16000),
    MPEG25: (11025, 12000, 8000),
}


class FrameHeader(NamedTuple):
    version: int
    layer: int
    bitrate: int
    sample_rate: int
    padding: bool
    channel_mode: int
    samples: int
    frame_length: int

    @property
    def duration(self) -> float:
        return self.samples / self.sample_rate


def _samples_per_frame(version: int, layer: int) -> int:
    if layer == 1:
        return 384
    if layer == 3 and version != MPEG1:
        return 576
    return 1152


def parse_frame_header(buf: bytes, offset: int = 0) -> Optional[FrameHeader]:
    """
    Decode the frame header at `buf[offset:offset + 4]`.

    Returns None when fewer than four bytes are available or the bytes are not
    a valid header; the caller resynchronizes by moving on one byte.
    """
    if len(buf) - offset < HEADER_SIZE:
        return None

    b0, b1, b2, b3 = buf[offset], buf[offset + 1], buf[offset + 2], buf[offset + 3]

    if b0 != 0xFF or (b1 & 0xE0) != 0xE0:
        return None

    version = (b1 >> 3) & 0x03
    if version == 1:
        return None

    layer = 4 - ((b1 >> 1) & 0x03)
    if layer == 4:
        return None

    bitrate_index = (b2 >> 4) & 0x0F
    if bitrate_index in (0, 15):
        return None

    rate_index = (b2 >> 2) & 0x03
    if rate_index == 3:
        return None

    if (b3 & 0x03) == 2:
        # reserved emphasis
        return None

    table_version = MPEG1 if version == MPEG1 else MPEG2
    bitrate = _BITRATES[(table_version, layer)][bitrate_index] * 1000
    sample_rate = _SAMPLE_RATES[version][rate_index]
    padding = bool((b2 >> 1) & 0x01)
    samples = _samples_per_frame(version, layer)

    if layer == 1:
        frame_length = (12 * bitrate // sample_rate + padding) * 4
    else:
        frame_length = (samples // 8) * bitrate // sample_rate + padding

    if frame_length < HEADER_SIZE:
        return None

    return FrameHeader(
        version=version,
        layer=layer,
        bitrate=bitrate,
        sample_rate=sample_rate,
        padding=padding,
        channel_mode=(b3 >> 6) & 0x03,
        samples=samples,
        frame_length=frame_length,
    )


def synchsafe_int(data: bytes) -> Optional[int]:
    """Decode a big-endian integer with 7 bits per byte; None if a top bit is set."""
    value = 0
    for b in data:
        if b & 0x80:
            return None
        value = (value << 7) | b
    return value


def id3v2_tag_length(buf: bytes) -> Optional[int]:
    """
    Total length (header, body and optional footer) of an ID3v2 tag at the
    start of `buf`, or None if `buf` does not start with one.
    """
    if len(buf) < ID3_HEADER_SIZE:
        return None
    if buf[0:3] != b"ID3":
        return None
    if buf[3] == 0xFF or buf[4] == 0xFF:
        return None

    size = synchsafe_int(bytes(buf[6:10]))
    if size is None:
        return None

    footer = ID3_HEADER_SIZE if buf[5] & 0x10 else 0
    return ID3_HEADER_SIZE + size + footer
