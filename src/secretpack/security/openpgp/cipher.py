"""Symmetric ciphers and the OpenPGP CFB mode.

OpenPGP integrity-protected data uses plain CFB with a zero IV and full-block
feedback. The mode is built here from the raw block cipher of the
`cryptography` package so that only the long-lived ECB primitive is needed.

TripleDES and CAST5 are only read, for messages written by older tools.
"""
from __future__ import annotations

from enum import IntEnum

from cryptography.hazmat.decrepit.ciphers import algorithms as decrepit
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


class CipherAlgorithm(IntEnum):
    TRIPLEDES = 2
    CAST5 = 3
    AES128 = 7
    AES192 = 8
    AES256 = 9

    @property
    def key_size(self) -> int:
        return _KEY_SIZES[self]

    @property
    def block_size(self) -> int:
        return 8 if self in (CipherAlgorithm.TRIPLEDES, CipherAlgorithm.CAST5) else 16

    @property
    def is_aes(self) -> bool:
        return self >= CipherAlgorithm.AES128

    def primitive(self, key: bytes):
        if self is CipherAlgorithm.TRIPLEDES:
            return decrepit.TripleDES(key)
        if self is CipherAlgorithm.CAST5:
            return decrepit.CAST5(key)
        return algorithms.AES(key)


_KEY_SIZES = {
    CipherAlgorithm.TRIPLEDES: 24,
    CipherAlgorithm.CAST5: 16,
    CipherAlgorithm.AES128: 16,
    CipherAlgorithm.AES192: 24,
    CipherAlgorithm.AES256: 32,
}


def _xor(a: bytes, b: bytes) -> bytes:
    return (int.from_bytes(a, "big") ^ int.from_bytes(b, "big")).to_bytes(len(a), "big")


def _cfb(algo: CipherAlgorithm, key: bytes, data: bytes, iv: bytes | None, decrypt: bool) -> bytes:
    if len(key) != algo.key_size:
        raise ValueError(f"{algo.name} needs a {algo.key_size}-byte key, got {len(key)}")
    bs = algo.block_size
    block = Cipher(algo.primitive(key), modes.ECB()).encryptor()
    feedback = iv if iv is not None else bytes(bs)

    out = bytearray()
    for i in range(0, len(data), bs):
        chunk = data[i:i + bs]
        keystream = block.update(feedback)[:len(chunk)]
        x = _xor(chunk, keystream)
        out += x
        # ciphertext is always what feeds the next block
        feedback = chunk if decrypt else x
    return bytes(out)


def cfb_encrypt(algo: CipherAlgorithm, key: bytes, data: bytes, iv: bytes | None = None) -> bytes:
    return _cfb(algo, key, data, iv, decrypt=False)


def cfb_decrypt(algo: CipherAlgorithm, key: bytes, data: bytes, iv: bytes | None = None) -> bytes:
    return _cfb(algo, key, data, iv, decrypt=True)
