"""Unit tests for OpenPGP packet framing."""

import io

import pytest

from secretpack.core.exceptions import MalformedMessageError
from secretpack.security.openpgp.packets import (
    TAG_LITERAL,
    TAG_MARKER,
    TAG_SEIPD,
    encode_length,
    iter_packets,
    read_packet,
    write_packet,
)


# ==============================================================================
# Tests: Writing
# ==============================================================================

@pytest.mark.parametrize(
    "n, encoded",
    [
        (0, b"\x00"),
        (191, b"\xbf"),
        (192, b"\xc0\x00"),
        (8383, b"\xdf\xff"),
        (8384, b"\xff\x00\x00\x20\xc0"),
    ],
)
def test_encode_length_boundaries(n, encoded):
    assert encode_length(n) == encoded


def test_write_packet_uses_new_format_header():
    assert write_packet(TAG_MARKER, b"PGP") == b"\xca\x03PGP"


@pytest.mark.parametrize("size", [0, 191, 192, 8384])
def test_read_back_written_packet(size):
    body = bytes(range(256)) * (size // 256) + bytes(range(size % 256))
    packet = read_packet(io.BytesIO(write_packet(TAG_SEIPD, body)))
    assert packet.tag == TAG_SEIPD
    assert packet.body == body


# ==============================================================================
# Tests: Reading other encodings
# ==============================================================================

def test_read_partial_body_lengths():
    """Partial chunks of 2 and 1 bytes followed by a definite final chunk."""
    raw = bytes([0xC0 | TAG_LITERAL, 0xE1]) + b"ab" + b"\xe0" + b"c" + b"\x02" + b"de"
    packet = read_packet(io.BytesIO(raw))
    assert packet.tag == TAG_LITERAL
    assert packet.body == b"abcde"


def test_read_old_format_one_byte_length():
    raw = bytes([0x80 | (TAG_LITERAL << 2) | 0, 3]) + b"xyz"
    packet = read_packet(io.BytesIO(raw))
    assert (packet.tag, packet.body) == (TAG_LITERAL, b"xyz")


def test_read_old_format_two_byte_length():
    raw = bytes([0x80 | (TAG_LITERAL << 2) | 1, 0, 3]) + b"xyz"
    packet = read_packet(io.BytesIO(raw))
    assert (packet.tag, packet.body) == (TAG_LITERAL, b"xyz")


def test_read_old_format_indeterminate_length():
    raw = bytes([0x80 | (TAG_LITERAL << 2) | 3]) + b"until the end"
    packet = read_packet(io.BytesIO(raw))
    assert packet.body == b"until the end"


def test_read_packet_at_eof_returns_none():
    assert read_packet(io.BytesIO(b"")) is None


def test_iter_packets_yields_in_order():
    raw = write_packet(TAG_MARKER, b"PGP") + write_packet(TAG_LITERAL, b"x")
    assert [p.tag for p in iter_packets(io.BytesIO(raw))] == [TAG_MARKER, TAG_LITERAL]


# ==============================================================================
# Tests: Malformed input
# ==============================================================================

def test_invalid_header_octet():
    with pytest.raises(MalformedMessageError, match="header"):
        read_packet(io.BytesIO(b"\x00\x01a"))


def test_truncated_body():
    raw = write_packet(TAG_LITERAL, b"0123456789")[:-3]
    with pytest.raises(MalformedMessageError, match="truncated"):
        read_packet(io.BytesIO(raw))


def test_truncated_length():
    with pytest.raises(MalformedMessageError):
        read_packet(io.BytesIO(b"\xcb\xff\x00"))
