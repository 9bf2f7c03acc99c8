"""OpenPGP packet framing, RFC 4880 section 4.

Packets are written with new-format headers and definite lengths. Reading
accepts old-format headers (including indeterminate length) and new-format
partial body lengths, since other implementations emit both.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

from secretpack.core.exceptions import MalformedMessageError


TAG_PKESK = 1
TAG_SIGNATURE = 2
TAG_SKESK = 3
TAG_ONE_PASS_SIGNATURE = 4
TAG_COMPRESSED = 8
TAG_SYMMETRICALLY_ENCRYPTED = 9
TAG_MARKER = 10
TAG_LITERAL = 11
TAG_SEIPD = 18


@dataclass
class Packet:
    tag: int
    body: bytes


def read_exact(f: BinaryIO, n: int, what: str = "packet") -> bytes:
    data = f.read(n)
    if data is None or len(data) != n:
        raise MalformedMessageError(f"truncated {what}: wanted {n} bytes")
    return data


def encode_length(n: int) -> bytes:
    if n < 192:
        return bytes([n])
    if n < 8384:
        n -= 192
        return bytes([(n >> 8) + 192, n & 0xFF])
    return b"\xff" + struct.pack(">I", n)


def write_packet(tag: int, body: bytes) -> bytes:
    """Serialize a packet with a new-format header."""
    return bytes([0xC0 | tag]) + encode_length(len(body)) + body


def _new_format_length(f: BinaryIO) -> tuple[int, bool]:
    # returns (length, is_partial)
    o = read_exact(f, 1, "packet length")[0]
    if o < 192:
        return o, False
    if o < 224:
        o2 = read_exact(f, 1, "packet length")[0]
        return ((o - 192) << 8) + o2 + 192, False
    if o == 255:
        return struct.unpack(">I", read_exact(f, 4, "packet length"))[0], False
    return 1 << (o & 0x1F), True


def read_packet(f: BinaryIO) -> Optional[Packet]:
    """Read the next packet from ``f``; return None at a clean end of input."""
    first = f.read(1)
    if not first:
        return None
    h = first[0]
    if not h & 0x80:
        raise MalformedMessageError(f"invalid packet header octet 0x{h:02x}")

    if h & 0x40:
        tag = h & 0x3F
        length, partial = _new_format_length(f)
        chunks = [read_exact(f, length)]
        while partial:
            length, partial = _new_format_length(f)
            chunks.append(read_exact(f, length))
        return Packet(tag, b"".join(chunks))

    tag = (h >> 2) & 0x0F
    length_type = h & 0x03
    if length_type == 3:
        return Packet(tag, f.read())
    size = (1, 2, 4)[length_type]
    length = int.from_bytes(read_exact(f, size, "packet length"), "big")
    return Packet(tag, read_exact(f, length))


def iter_packets(f: BinaryIO) -> Iterator[Packet]:
    while True:
        packet = read_packet(f)
        if packet is None:
            return
        yield packet
