"""Encrypt and decrypt structured values under a passphrase.

Values are serialized as JSON and wrapped in a passphrase-protected OpenPGP
message, so the ciphertext can also be opened by any RFC 4880 tool.

One-shot use::

    data = encrypt(cfg, "passphrase")
    decrypt(data, restored, "passphrase")

Streaming use::

    Encrypter(out).encrypt(cfg, "passphrase")
    Decrypter(src).decrypt(restored, "passphrase")
"""

from __future__ import annotations

import io
import logging
from typing import Any, BinaryIO, Optional

from secretpack.security.openpgp.message import read_message, symmetrically_encrypt

from .config import DEFAULT_CONFIG, Config
from .exceptions import (
    EncryptionError,
    IncorrectPassphraseError,
    InvalidArgumentError,
    MalformedMessageError,
    StreamIOError,
)
from .pool import Pool
from .serialization import check_destination, dumps, load_into


logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB


def _passphrase_bytes(passphrase: bytes | str) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    if isinstance(passphrase, (bytes, bytearray)):
        return bytes(passphrase)
    raise InvalidArgumentError(f"passphrase must be str or bytes, got {type(passphrase).__name__}")


def onetime_prompt(passphrase: bytes | str):
    """
    Return a prompt that hands out ``passphrase`` once.

    Any second call raises IncorrectPassphraseError, so a decrypt makes
    exactly one attempt even though the message reader would keep asking.
    """
    secret = _passphrase_bytes(passphrase)
    already_called = False

    def prompt(keys) -> bytes:
        nonlocal already_called
        if already_called:
            raise IncorrectPassphraseError("the passphrase is incorrect")
        already_called = True
        return secret

    return prompt


class EncryptState(io.BytesIO):
    # scratch buffer the ciphertext is assembled in

    def reset(self) -> None:
        self.seek(0)
        self.truncate(0)

    def encrypt(self, value: Any, passphrase: bytes | str, config: Config) -> None:
        plaintext = dumps(value)
        secret = _passphrase_bytes(passphrase)
        sources = config.sources
        try:
            w = symmetrically_encrypt(
                self,
                secret,
                cipher=config.cipher,
                s2k_hash=config.s2k_hash,
                s2k_count=config.s2k_count,
                rand=sources.rand,
                clock=sources.clock,
            )
            w.write(plaintext)
            w.close()
        except (OSError, ValueError) as e:
            raise EncryptionError(f"failed to write encrypted message: {e}") from e
        logger.debug("encrypted %d plaintext bytes into %d bytes", len(plaintext), self.tell())


class DecryptState:
    # holds the readable cursor over one ciphertext

    def __init__(self):
        self.data: Optional[BinaryIO] = None

    def reset(self) -> None:
        self.data = None

    def init(self, data: bytes) -> None:
        self.data = io.BytesIO(data)

    def init_with_reader(self, stream: BinaryIO) -> None:
        buf = io.BytesIO()
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            buf.write(chunk)
        buf.seek(0)
        self.data = buf

    def decrypt(self, dest: Any, passphrase: bytes | str, config: Config) -> Any:
        check_destination(dest)
        prompt = onetime_prompt(passphrase)
        try:
            md = read_message(self.data, prompt, max_size=config.max_plaintext)
        except (ValueError, IndexError) as e:
            raise MalformedMessageError(f"failed to parse message: {e}") from e
        return load_into(md.body, dest)


_encrypt_pool = Pool(EncryptState, EncryptState.reset)
_decrypt_pool = Pool(DecryptState, DecryptState.reset)


def encrypt(value: Any, passphrase: bytes | str, config: Optional[Config] = None) -> bytes:
    """Serialize ``value`` as JSON and return it encrypted with ``passphrase``."""
    with _encrypt_pool.borrow() as e:
        e.encrypt(value, passphrase, config or DEFAULT_CONFIG)
        return e.getvalue()


def decrypt(data: bytes, dest: Any, passphrase: bytes | str, config: Optional[Config] = None) -> Any:
    """
    Decrypt ``data`` with ``passphrase`` and decode the result into ``dest``.

    ``dest`` must be a mutable mapping, a mutable sequence or a dataclass
    instance; it is returned for convenience. The cipher and S2K settings
    come from the message itself; ``config`` only bounds decompression.
    """
    check_destination(dest)
    _passphrase_bytes(passphrase)
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidArgumentError(f"ciphertext must be bytes, got {type(data).__name__}")
    with _decrypt_pool.borrow() as d:
        d.init(bytes(data))
        return d.decrypt(dest, passphrase, config or DEFAULT_CONFIG)


class Encrypter:
    """An Encrypter writes encrypted values to an output stream."""

    def __init__(self, stream: BinaryIO, config: Optional[Config] = None):
        self._stream = stream
        self._config = config or DEFAULT_CONFIG
        self.error: Optional[StreamIOError] = None

    def encrypt(self, value: Any, passphrase: bytes | str) -> None:
        """
        Encrypt ``value`` and write the ciphertext to the stream.

        Once a write fails, every later call raises that same error without
        touching the stream again.
        """
        if self.error is not None:
            raise self.error
        with _encrypt_pool.borrow() as e:
            e.encrypt(value, passphrase, self._config)
            data = e.getvalue()

        try:
            n = self._stream.write(data)
        except (OSError, ValueError) as err:
            self.error = StreamIOError(f"failed to write ciphertext: {err}")
            raise self.error from err
        if n is not None and n < len(data):
            self.error = StreamIOError(f"short write: {n} of {len(data)} bytes")
            raise self.error


class Decrypter:
    """A Decrypter reads an encrypted value from an input stream."""

    def __init__(self, stream: BinaryIO, config: Optional[Config] = None):
        self._stream = stream
        self._config = config or DEFAULT_CONFIG
        self.error: Optional[StreamIOError] = None

    def decrypt(self, dest: Any, passphrase: bytes | str) -> Any:
        """
        Drain the stream, decrypt it and decode the value into ``dest``.

        ``dest`` and ``passphrase`` are validated before the stream is read.
        A failed read is latched like in :class:`Encrypter`.
        """
        if self.error is not None:
            raise self.error
        check_destination(dest)
        _passphrase_bytes(passphrase)
        with _decrypt_pool.borrow() as d:
            try:
                d.init_with_reader(self._stream)
            except (OSError, ValueError) as err:
                self.error = StreamIOError(f"failed to read ciphertext: {err}")
                raise self.error from err
            return d.decrypt(dest, passphrase, self._config)
