"""Encryption settings threaded explicitly through every operation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from secretpack.security.openpgp.cipher import CipherAlgorithm
from secretpack.security.openpgp.message import MAX_PLAINTEXT_SIZE
from secretpack.security.openpgp.s2k import MAX_COUNT, MIN_COUNT, HashAlgorithm


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EntropySources:
    """
    Randomness and clock used when writing a message.

    Production code should always use :data:`SECURE_SOURCES`. Anything else
    is only meant for tests that need byte-identical ciphertext.
    """

    rand: Callable[[int], bytes] = os.urandom
    clock: Callable[[], datetime] = _utcnow


SECURE_SOURCES = EntropySources()


def fixed_sources(fill: int, when: datetime) -> EntropySources:
    """Deterministic sources: every random byte is ``fill``, time is ``when``."""
    return EntropySources(rand=lambda n: bytes([fill]) * n, clock=lambda: when)


_CIPHERS = {
    "aes128": CipherAlgorithm.AES128,
    "aes192": CipherAlgorithm.AES192,
    "aes256": CipherAlgorithm.AES256,
}

_HASHES = {
    "sha1": HashAlgorithm.SHA1,
    "sha224": HashAlgorithm.SHA224,
    "sha256": HashAlgorithm.SHA256,
    "sha384": HashAlgorithm.SHA384,
    "sha512": HashAlgorithm.SHA512,
}


@dataclass(frozen=True)
class Config:
    """
    Container for the parameters of the OpenPGP writer and reader.

    Only AES ciphers are written. ``max_plaintext`` bounds how far a
    compressed payload may expand while reading.
    """

    cipher: CipherAlgorithm = CipherAlgorithm.AES128
    s2k_hash: HashAlgorithm = HashAlgorithm.SHA256
    s2k_count: int = 65536
    max_plaintext: int = MAX_PLAINTEXT_SIZE
    sources: EntropySources = field(default=SECURE_SOURCES, repr=False)

    def __post_init__(self):
        if not MIN_COUNT <= self.s2k_count <= MAX_COUNT:
            raise ValueError(f"s2k_count must be between {MIN_COUNT} and {MAX_COUNT}")
        if not CipherAlgorithm(self.cipher).is_aes:
            raise ValueError(f"cannot write {CipherAlgorithm(self.cipher).name} messages, use an AES cipher")
        if self.max_plaintext <= 0:
            raise ValueError("max_plaintext must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Build a config from ``SECRETPACK_*`` environment variables.

        - ``SECRETPACK_CIPHER``: aes128, aes192 or aes256
        - ``SECRETPACK_S2K_HASH``: sha1, sha224, sha256, sha384 or sha512
        - ``SECRETPACK_S2K_COUNT``: S2K iteration byte count
        - ``SECRETPACK_MAX_PLAINTEXT``: largest decompressed payload, in bytes

        Entropy sources cannot be set from the environment.
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        cipher = env.get("SECRETPACK_CIPHER")
        if cipher:
            if cipher.lower() not in _CIPHERS:
                raise ValueError(f"unknown SECRETPACK_CIPHER {cipher!r}")
            kwargs["cipher"] = _CIPHERS[cipher.lower()]

        s2k_hash = env.get("SECRETPACK_S2K_HASH")
        if s2k_hash:
            if s2k_hash.lower() not in _HASHES:
                raise ValueError(f"unknown SECRETPACK_S2K_HASH {s2k_hash!r}")
            kwargs["s2k_hash"] = _HASHES[s2k_hash.lower()]

        count = env.get("SECRETPACK_S2K_COUNT")
        if count:
            kwargs["s2k_count"] = int(count)

        max_plaintext = env.get("SECRETPACK_MAX_PLAINTEXT")
        if max_plaintext:
            kwargs["max_plaintext"] = int(max_plaintext)

        return cls(**kwargs)


DEFAULT_CONFIG = Config()
