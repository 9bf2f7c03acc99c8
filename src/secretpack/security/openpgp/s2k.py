"""OpenPGP string-to-key (S2K) specifiers, RFC 4880 section 3.7.

Turns a passphrase into symmetric key material. Three specifier types are
understood: simple (0), salted (1) and iterated+salted (3). New messages are
always written with iterated+salted.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO

from secretpack.core.exceptions import MalformedMessageError, UnsupportedMessageError


S2K_SIMPLE = 0
S2K_SALTED = 1
S2K_ITERATED_SALTED = 3

SALT_LEN = 8
MIN_COUNT = 1024
MAX_COUNT = 65011712


class HashAlgorithm(IntEnum):
    SHA1 = 2
    SHA256 = 8
    SHA384 = 9
    SHA512 = 10
    SHA224 = 11

    @property
    def hashlib_name(self) -> str:
        return self.name.lower()

    def new(self):
        return hashlib.new(self.hashlib_name)


def decode_count(c: int) -> int:
    """Expand the one-octet coded iteration count."""
    return (16 + (c & 15)) << ((c >> 4) + 6)


def encode_count(count: int) -> int:
    """Return the smallest coded octet whose count is at least ``count``."""
    if not MIN_COUNT <= count <= MAX_COUNT:
        raise ValueError(f"S2K count must be between {MIN_COUNT} and {MAX_COUNT}, got {count}")
    for c in range(256):
        if decode_count(c) >= count:
            return c
    return 255


@dataclass(frozen=True)
class S2K:
    mode: int
    hash_algo: HashAlgorithm
    salt: bytes = b""
    coded_count: int = 0

    @classmethod
    def iterated(cls, hash_algo: HashAlgorithm, salt: bytes, count: int) -> "S2K":
        if len(salt) != SALT_LEN:
            raise ValueError(f"S2K salt must be {SALT_LEN} bytes, got {len(salt)}")
        return cls(S2K_ITERATED_SALTED, hash_algo, salt, encode_count(count))

    @classmethod
    def parse(cls, f: BinaryIO) -> "S2K":
        head = f.read(2)
        if len(head) < 2:
            raise MalformedMessageError("truncated S2K specifier")
        mode, hash_id = head[0], head[1]
        try:
            hash_algo = HashAlgorithm(hash_id)
        except ValueError:
            raise UnsupportedMessageError(f"unsupported S2K hash algorithm {hash_id}") from None

        if mode == S2K_SIMPLE:
            return cls(mode, hash_algo)
        if mode == S2K_SALTED:
            salt = f.read(SALT_LEN)
            if len(salt) < SALT_LEN:
                raise MalformedMessageError("truncated S2K salt")
            return cls(mode, hash_algo, salt)
        if mode == S2K_ITERATED_SALTED:
            rest = f.read(SALT_LEN + 1)
            if len(rest) < SALT_LEN + 1:
                raise MalformedMessageError("truncated S2K salt or count")
            return cls(mode, hash_algo, rest[:SALT_LEN], rest[SALT_LEN])
        raise UnsupportedMessageError(f"unsupported S2K type {mode}")

    def serialize(self) -> bytes:
        out = bytes([self.mode, self.hash_algo])
        if self.mode in (S2K_SALTED, S2K_ITERATED_SALTED):
            out += self.salt
        if self.mode == S2K_ITERATED_SALTED:
            out += bytes([self.coded_count])
        return out

    def derive(self, passphrase: bytes, key_len: int) -> bytes:
        """
        Derive ``key_len`` bytes of key material from ``passphrase``.

        When one digest is not long enough, additional hash contexts are
        run, the i-th one preloaded with i zero octets, and their outputs
        concatenated.
        """
        data = self.salt + passphrase
        if self.mode == S2K_ITERATED_SALTED:
            total = max(decode_count(self.coded_count), len(data))
        else:
            total = len(data)

        stream = b""
        if data:
            full, rem = divmod(total, len(data))
            stream = data * full + data[:rem]

        out = b""
        preload = 0
        while len(out) < key_len:
            h = self.hash_algo.new()
            h.update(b"\x00" * preload)
            h.update(stream)
            out += h.digest()
            preload += 1
        return out[:key_len]
