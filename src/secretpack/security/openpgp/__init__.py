"""Passphrase-protected OpenPGP messages.

- string-to-key derivation (:mod:`.s2k`)
- OpenPGP CFB mode over AES (:mod:`.cipher`)
- packet framing (:mod:`.packets`)
- message writer and reader (:mod:`.message`)
"""

from .cipher import CipherAlgorithm
from .s2k import HashAlgorithm, S2K
from .message import MessageDetails, SymmetricWriter, read_message, symmetrically_encrypt

__all__ = [
    "CipherAlgorithm",
    "HashAlgorithm",
    "S2K",
    "MessageDetails",
    "SymmetricWriter",
    "read_message",
    "symmetrically_encrypt",
]
