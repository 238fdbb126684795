from fixvox.mp3 import (
    MPEG1,
    MPEG2,
    id3v2_tag_length,
    parse_frame_header,
    synchsafe_int,
)

from mp3data import FRAME_LENGTH, HEADER, HEADER_PADDED, id3_block, synchsafe


def test_parse_mpeg1_layer3():
    h = parse_frame_header(HEADER)
    assert h is not None
    assert h.version == MPEG1
    assert h.layer == 3
    assert h.bitrate == 128000
    assert h.sample_rate == 44100
    assert h.samples == 1152
    assert h.frame_length == FRAME_LENGTH
    assert not h.padding


def test_padding_adds_a_byte():
    h = parse_frame_header(HEADER_PADDED)
    assert h is not None
    assert h.padding
    assert h.frame_length == FRAME_LENGTH + 1


def test_parse_at_offset():
    buf = b"\x00\x00" + HEADER
    assert parse_frame_header(buf, 0) is None
    assert parse_frame_header(buf, 2) is not None


def test_mpeg2_layer3_uses_576_samples():
    # MPEG-2, Layer III, 64 kbps, 22.05 kHz
    h = parse_frame_header(bytes([0xFF, 0xF3, 0x80, 0x00]))
    assert h is not None
    assert h.version == MPEG2
    assert h.samples == 576
    assert h.frame_length == 72 * 64000 // 22050
    assert h.duration == 576 / 22050


def test_layer1_frame_length():
    # MPEG-1, Layer I, 32 kbps, 44.1 kHz
    h = parse_frame_header(bytes([0xFF, 0xFF, 0x10, 0x00]))
    assert h is not None
    assert h.layer == 1
    assert h.frame_length == (12 * 32000 // 44100) * 4


def test_rejects_invalid_headers():
    assert parse_frame_header(b"\xff\xfb\x90") is None  # short
    assert parse_frame_header(b"\xff\x0b\x90\x00") is None  # no sync
    assert parse_frame_header(b"\xff\xeb\x90\x00") is None  # reserved version
    assert parse_frame_header(b"\xff\xf9\x90\x00") is None  # reserved layer
    assert parse_frame_header(b"\xff\xfb\x00\x00") is None  # free format
    assert parse_frame_header(b"\xff\xfb\xf0\x00") is None  # bad bitrate
    assert parse_frame_header(b"\xff\xfb\x9c\x00") is None  # reserved sample rate
    assert parse_frame_header(b"\xff\xfb\x90\x02") is None  # reserved emphasis


def test_synchsafe():
    assert synchsafe_int(synchsafe(0)) == 0
    assert synchsafe_int(synchsafe(257)) == 257
    assert synchsafe_int(bytes([0x7F, 0x7F, 0x7F, 0x7F])) == (1 << 28) - 1
    assert synchsafe_int(bytes([0x00, 0x00, 0x01, 0x80])) is None


def test_id3_tag_length():
    assert id3v2_tag_length(id3_block(0)) == 10
    assert id3v2_tag_length(id3_block(300)) == 310
    assert id3v2_tag_length(HEADER + bytes(10)) is None
    assert id3v2_tag_length(b"ID3\x04") is None


def test_id3_footer_is_included():
    block = bytearray(id3_block(20))
    block[5] = 0x10
    assert id3v2_tag_length(bytes(block)) == 40
