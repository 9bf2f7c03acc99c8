"""Passphrase-protected OpenPGP messages (RFC 4880).

Writing produces:

- a Symmetric-Key Encrypted Session Key packet (tag 3, version 4) holding
  the iterated+salted S2K parameters; the S2K output is the session key
- a Symmetrically Encrypted Integrity Protected Data packet (tag 18,
  version 1) wrapping a literal data packet and the modification detection
  code (MDC)

Reading understands the same structure as emitted by other OpenPGP
implementations: marker packets, several SKESK packets, SKESKs with an
encrypted session key, TripleDES and CAST5 encrypted data, compressed
payloads (inflated up to a size bound) and unverified signature packets.
"""
from __future__ import annotations

import bz2
import hashlib
import hmac
import io
import logging
import os
import struct
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Callable, List

from cryptography.exceptions import UnsupportedAlgorithm

from secretpack.core.exceptions import (
    EncryptionError,
    IntegrityError,
    MalformedMessageError,
    UnsupportedMessageError,
)

from .cipher import CipherAlgorithm, cfb_decrypt, cfb_encrypt
from .packets import (
    TAG_COMPRESSED,
    TAG_LITERAL,
    TAG_MARKER,
    TAG_ONE_PASS_SIGNATURE,
    TAG_PKESK,
    TAG_SEIPD,
    TAG_SIGNATURE,
    TAG_SKESK,
    TAG_SYMMETRICALLY_ENCRYPTED,
    iter_packets,
    read_exact,
    write_packet,
)
from .s2k import SALT_LEN, S2K, HashAlgorithm


logger = logging.getLogger(__name__)

SKESK_VERSION = 4
SEIPD_VERSION = 1
MDC_HEADER = b"\xd3\x14"
MDC_LEN = len(MDC_HEADER) + 20
MAX_COMPRESSION_DEPTH = 8
MAX_PLAINTEXT_SIZE = 64 * 1024 * 1024

COMPRESSION_NONE = 0
COMPRESSION_ZIP = 1
COMPRESSION_ZLIB = 2
COMPRESSION_BZIP2 = 3


class _KeyIncorrect(Exception):
    # internal signal: this key does not open this message
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


class SymmetricWriter:
    """Collects plaintext and emits the integrity protected packet on close."""

    def __init__(self, out: BinaryIO, cipher: CipherAlgorithm, key: bytes,
                 rand: Callable[[int], bytes], timestamp: int):
        self._out = out
        self._cipher = cipher
        self._key = key
        self._rand = rand
        self._timestamp = timestamp
        self._plaintext = io.BytesIO()
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise EncryptionError("write to a closed encryption writer")
        return self._plaintext.write(data)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True

        # literal data: binary format, no file name, 4-byte date
        literal = write_packet(
            TAG_LITERAL,
            b"b\x00" + struct.pack(">I", self._timestamp) + self._plaintext.getvalue(),
        )
        bs = self._cipher.block_size
        prefix = _random(self._rand, bs)
        prefix += prefix[-2:]

        protected = prefix + literal + MDC_HEADER
        protected += hashlib.sha1(protected).digest()
        try:
            ciphertext = cfb_encrypt(self._cipher, self._key, protected)
        except ValueError as e:
            raise EncryptionError(f"failed to encrypt data packet: {e}") from e
        self._out.write(write_packet(TAG_SEIPD, bytes([SEIPD_VERSION]) + ciphertext))
        logger.debug("wrote SEIPD packet (%d plaintext bytes)", len(literal))

    def __enter__(self) -> "SymmetricWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()


def _random(rand: Callable[[int], bytes], n: int) -> bytes:
    try:
        data = bytes(rand(n))
    except (OSError, ValueError, TypeError) as e:
        raise EncryptionError(f"randomness source failed: {e}") from e
    if len(data) != n:
        raise EncryptionError(f"randomness source returned {len(data)} bytes, wanted {n}")
    return data


def symmetrically_encrypt(
    out: BinaryIO,
    passphrase: bytes,
    cipher: CipherAlgorithm = CipherAlgorithm.AES128,
    s2k_hash: HashAlgorithm = HashAlgorithm.SHA256,
    s2k_count: int = 65536,
    rand: Callable[[int], bytes] = os.urandom,
    clock: Callable[[], datetime] = _utcnow,
) -> SymmetricWriter:
    """
    Start a passphrase-encrypted message on ``out``.

    The SKESK packet is written immediately; the returned writer must be
    closed to emit the encrypted data. ``rand`` and ``clock`` exist so tests
    can pin the output; leave them at their defaults otherwise.
    """
    salt = _random(rand, SALT_LEN)
    try:
        s2k = S2K.iterated(s2k_hash, salt, s2k_count)
        key = s2k.derive(passphrase, cipher.key_size)
        timestamp = int(clock().timestamp()) & 0xFFFFFFFF
    except (ValueError, TypeError, OverflowError) as e:
        raise EncryptionError(f"invalid encryption parameters: {e}") from e

    out.write(write_packet(TAG_SKESK, bytes([SKESK_VERSION, cipher]) + s2k.serialize()))
    logger.debug("wrote SKESK packet (cipher=%s, s2k hash=%s)", cipher.name, s2k_hash.name)
    return SymmetricWriter(out, cipher, key, rand, timestamp)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


@dataclass
class SymmetricKeyEncrypted:
    cipher: CipherAlgorithm
    s2k: S2K
    encrypted_key: bytes = b""

    @classmethod
    def parse(cls, body: bytes) -> "SymmetricKeyEncrypted":
        f = io.BytesIO(body)
        version, cipher_id = read_exact(f, 2, "SKESK packet")
        if version != SKESK_VERSION:
            raise UnsupportedMessageError(f"unsupported SKESK version {version}")
        try:
            cipher = CipherAlgorithm(cipher_id)
        except ValueError:
            raise UnsupportedMessageError(f"unsupported cipher algorithm {cipher_id}") from None
        s2k = S2K.parse(f)
        return cls(cipher, s2k, f.read())

    def decrypt(self, passphrase: bytes) -> tuple[CipherAlgorithm, bytes]:
        """Return the (cipher, session key) this passphrase unlocks."""
        key = self.s2k.derive(passphrase, self.cipher.key_size)
        if not self.encrypted_key:
            return self.cipher, key
        plain = cfb_decrypt(self.cipher, key, self.encrypted_key)
        try:
            algo = CipherAlgorithm(plain[0])
        except ValueError:
            raise _KeyIncorrect() from None
        session_key = plain[1:]
        if len(session_key) != algo.key_size:
            raise _KeyIncorrect()
        return algo, session_key


@dataclass
class MessageDetails:
    cipher: CipherAlgorithm
    is_binary: bool
    file_name: str
    timestamp: int
    body: bytes


PromptFunction = Callable[[List[SymmetricKeyEncrypted]], bytes]


def _decrypt_seipd(ciphertext: bytes, cipher: CipherAlgorithm, key: bytes) -> bytes:
    bs = cipher.block_size
    if len(ciphertext) < bs + 2 + MDC_LEN:
        raise MalformedMessageError("encrypted data packet too short")
    plain = cfb_decrypt(cipher, key, ciphertext)
    # quick check: the last two prefix octets are repeated
    if plain[bs - 2:bs] != plain[bs:bs + 2]:
        raise _KeyIncorrect()
    if plain[-MDC_LEN:-20] != MDC_HEADER:
        raise IntegrityError("modification detection code packet missing")
    expected = hashlib.sha1(plain[:-20]).digest()
    if not hmac.compare_digest(expected, plain[-20:]):
        raise IntegrityError("modification detection code mismatch")
    return plain[bs + 2:-MDC_LEN]


def _decompress(body: bytes, max_size: int) -> bytes:
    if not body:
        raise MalformedMessageError("empty compressed data packet")
    algo, data = body[0], body[1:]
    if algo == COMPRESSION_NONE:
        return data
    if algo == COMPRESSION_ZIP:
        d = zlib.decompressobj(-15)
    elif algo == COMPRESSION_ZLIB:
        d = zlib.decompressobj()
    elif algo == COMPRESSION_BZIP2:
        d = bz2.BZ2Decompressor()
    else:
        raise UnsupportedMessageError(f"unsupported compression algorithm {algo}")

    try:
        out = d.decompress(data, max_size + 1)
    except (zlib.error, OSError, ValueError) as e:
        raise MalformedMessageError(f"corrupt compressed data: {e}") from e
    if len(out) > max_size:
        raise MalformedMessageError(f"compressed data expands beyond {max_size} bytes")
    if not d.eof:
        raise MalformedMessageError("corrupt compressed data: truncated stream")
    return out


def _read_literal(data: bytes, cipher: CipherAlgorithm, max_size: int, depth: int = 0) -> MessageDetails:
    for packet in iter_packets(io.BytesIO(data)):
        if packet.tag == TAG_LITERAL:
            body = packet.body
            if len(body) < 2 or len(body) < 6 + body[1]:
                raise MalformedMessageError("truncated literal data packet")
            name_len = body[1]
            name = body[2:2 + name_len].decode("utf-8", errors="replace")
            (timestamp,) = struct.unpack(">I", body[2 + name_len:6 + name_len])
            return MessageDetails(
                cipher=cipher,
                is_binary=body[0:1] == b"b",
                file_name=name,
                timestamp=timestamp,
                body=body[6 + name_len:],
            )
        if packet.tag == TAG_COMPRESSED:
            if depth >= MAX_COMPRESSION_DEPTH:
                raise MalformedMessageError("compressed packets nested too deeply")
            return _read_literal(_decompress(packet.body, max_size), cipher, max_size, depth + 1)
        if packet.tag in (TAG_ONE_PASS_SIGNATURE, TAG_SIGNATURE, TAG_MARKER):
            continue
        raise MalformedMessageError(f"unexpected packet tag {packet.tag} in encrypted data")
    raise MalformedMessageError("no literal data packet in message")


def read_message(f: BinaryIO, prompt: PromptFunction, max_size: int = MAX_PLAINTEXT_SIZE) -> MessageDetails:
    """
    Parse and decrypt a passphrase-protected message from ``f``.

    ``prompt`` is called with the SKESK packets and returns a passphrase to
    try. When no SKESK opens the data it is called again, so the prompt
    decides how many attempts are allowed by raising when it gives up.

    Compressed payloads may inflate to at most ``max_size`` bytes.
    """
    skesks: List[SymmetricKeyEncrypted] = []
    encrypted = None
    for packet in iter_packets(f):
        if packet.tag == TAG_SKESK:
            skesks.append(SymmetricKeyEncrypted.parse(packet.body))
        elif packet.tag in (TAG_PKESK, TAG_MARKER):
            logger.debug("skipping packet tag %d", packet.tag)
        elif packet.tag == TAG_SEIPD:
            encrypted = packet.body
            break
        elif packet.tag == TAG_SYMMETRICALLY_ENCRYPTED:
            raise UnsupportedMessageError("encrypted data without integrity protection is not supported")
        else:
            raise MalformedMessageError(f"unexpected packet tag {packet.tag}")

    if encrypted is None:
        raise MalformedMessageError("no encrypted data packet in message")
    if not skesks:
        raise UnsupportedMessageError("message is not passphrase protected")
    if not encrypted or encrypted[0] != SEIPD_VERSION:
        raise UnsupportedMessageError("unsupported encrypted data packet version")

    while True:
        passphrase = prompt(skesks)
        if isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        for skesk in skesks:
            try:
                cipher, key = skesk.decrypt(passphrase)
                plaintext = _decrypt_seipd(encrypted[1:], cipher, key)
            except _KeyIncorrect:
                continue
            except UnsupportedAlgorithm as e:
                raise UnsupportedMessageError(f"cipher not available in this build: {e}") from e
            logger.debug("decrypted message (cipher=%s)", cipher.name)
            return _read_literal(plaintext, cipher, max_size)
