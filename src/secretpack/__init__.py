"""secretpack: passphrase encryption of structured values.

Values are serialized as JSON and sealed in a passphrase-protected OpenPGP
message (RFC 4880).
"""

from .core.config import Config, EntropySources, SECURE_SOURCES, fixed_sources
from .core.exceptions import (
    SecretPackError,
    SerializationError,
    EncryptionError,
    InvalidArgumentError,
    IncorrectPassphraseError,
    DecryptionError,
    MalformedMessageError,
    UnsupportedMessageError,
    IntegrityError,
    DeserializationError,
    StreamIOError,
)
from .core.secret import encrypt, decrypt, Encrypter, Decrypter

__all__ = [
    "encrypt",
    "decrypt",
    "Encrypter",
    "Decrypter",
    "Config",
    "EntropySources",
    "SECURE_SOURCES",
    "fixed_sources",
    "SecretPackError",
    "SerializationError",
    "EncryptionError",
    "InvalidArgumentError",
    "IncorrectPassphraseError",
    "DecryptionError",
    "MalformedMessageError",
    "UnsupportedMessageError",
    "IntegrityError",
    "DeserializationError",
    "StreamIOError",
]
