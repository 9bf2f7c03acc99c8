"""Unit tests for the OpenPGP CFB helpers."""

import os

import pytest
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.ciphers import Cipher, modes

from secretpack.security.openpgp.cipher import CipherAlgorithm, cfb_decrypt, cfb_encrypt


def _available(algo: CipherAlgorithm) -> bool:
    # CAST5 needs the OpenSSL legacy provider, which some builds leave out
    try:
        Cipher(algo.primitive(bytes(algo.key_size)), modes.ECB()).encryptor()
    except UnsupportedAlgorithm:
        return False
    return True


needs_cast5 = pytest.mark.skipif(
    not _available(CipherAlgorithm.CAST5), reason="CAST5 not available in this OpenSSL build"
)


# NIST SP 800-38A, F.3.13 CFB128-AES128
KEY = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
IV = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
PLAINTEXT = bytes.fromhex(
    "6bc1bee22e409f96e93d7e117393172a"
    "ae2d8a571e03ac9c9eb76fac45af8e51"
)
CIPHERTEXT = bytes.fromhex(
    "3b3fd92eb72dad20333449f8e83cfb4a"
    "c8a64537a0b3a93fcde3cdad9f1ce58b"
)

# 64-bit CFB with a zero IV, as produced by `openssl enc -des-ede3-cfb` / `-cast5-cfb`
SHORT_BLOCK_PLAINTEXT = b"OpenPGP CFB over an 8-byte block cipher"
TRIPLEDES_KEY = bytes.fromhex("0123456789abcdef23456789abcdef01456789abcdef0123")
TRIPLEDES_CIPHERTEXT = bytes.fromhex(
    "01ca16f2c9cc9b40405bd88b03b59f74361729bc8147f6ea6893af1d9963288018931b2d189c9c"
)
CAST5_KEY = bytes.fromhex("00112233445566778899aabbccddeeff")
CAST5_CIPHERTEXT = bytes.fromhex(
    "b93be75a47ece3f8ff9647d287ce82728d29ebc19fb6e5f4fa40ad6afeefb550cc42c7ad563142"
)


def test_key_and_block_sizes():
    assert CipherAlgorithm.AES128.key_size == 16
    assert CipherAlgorithm.AES192.key_size == 24
    assert CipherAlgorithm.AES256.key_size == 32
    assert CipherAlgorithm.TRIPLEDES.key_size == 24
    assert CipherAlgorithm.CAST5.key_size == 16
    assert CipherAlgorithm.AES256.block_size == 16
    assert CipherAlgorithm.TRIPLEDES.block_size == 8
    assert CipherAlgorithm.CAST5.block_size == 8


def test_only_aes_is_flagged_aes():
    assert [a for a in CipherAlgorithm if a.is_aes] == [
        CipherAlgorithm.AES128,
        CipherAlgorithm.AES192,
        CipherAlgorithm.AES256,
    ]


def test_cfb_encrypt_matches_nist_vector():
    assert cfb_encrypt(CipherAlgorithm.AES128, KEY, PLAINTEXT, IV) == CIPHERTEXT


def test_cfb_decrypt_matches_nist_vector():
    assert cfb_decrypt(CipherAlgorithm.AES128, KEY, CIPHERTEXT, IV) == PLAINTEXT


def test_tripledes_cfb_matches_openssl():
    assert cfb_decrypt(CipherAlgorithm.TRIPLEDES, TRIPLEDES_KEY, TRIPLEDES_CIPHERTEXT) == SHORT_BLOCK_PLAINTEXT
    assert cfb_encrypt(CipherAlgorithm.TRIPLEDES, TRIPLEDES_KEY, SHORT_BLOCK_PLAINTEXT) == TRIPLEDES_CIPHERTEXT


@needs_cast5
def test_cast5_cfb_matches_openssl():
    assert cfb_decrypt(CipherAlgorithm.CAST5, CAST5_KEY, CAST5_CIPHERTEXT) == SHORT_BLOCK_PLAINTEXT


def test_partial_final_block_is_a_prefix():
    """CFB is a stream mode: a short tail encrypts to the prefix of a full block."""
    assert cfb_encrypt(CipherAlgorithm.AES128, KEY, PLAINTEXT[:20], IV) == CIPHERTEXT[:20]


@pytest.mark.parametrize(
    "algo",
    [a for a in CipherAlgorithm if a is not CipherAlgorithm.CAST5]
    + [pytest.param(CipherAlgorithm.CAST5, marks=needs_cast5)],
)
def test_zero_iv_default(algo):
    key = os.urandom(algo.key_size)
    data = os.urandom(53)
    ct = cfb_encrypt(algo, key, data)
    assert ct != data
    assert len(ct) == len(data)
    assert cfb_encrypt(algo, key, data, bytes(algo.block_size)) == ct
    assert cfb_decrypt(algo, key, ct) == data


def test_empty_input():
    assert cfb_encrypt(CipherAlgorithm.AES128, KEY, b"") == b""


def test_wrong_key_length():
    with pytest.raises(ValueError, match="16-byte key"):
        cfb_encrypt(CipherAlgorithm.AES128, b"short", b"data")
