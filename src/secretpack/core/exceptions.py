"""
Exceptions for secretpack
Every error raised by the library derives from SecretPackError so callers
have a single general error catcher.
"""


class SecretPackError(Exception):
    # general container for errors
    pass


class SerializationError(SecretPackError):
    # raised when a value cannot be converted to JSON
    pass


class EncryptionError(SecretPackError):
    # raised when the OpenPGP writer cannot be set up or finalized
    pass


class InvalidArgumentError(SecretPackError):
    # raised when a decrypt destination cannot be written into
    pass


class IncorrectPassphraseError(SecretPackError):
    # raised when the passphrase is rejected on the single permitted attempt
    pass


class DecryptionError(SecretPackError):
    # raised when ciphertext cannot be parsed or decrypted
    pass


class MalformedMessageError(DecryptionError):
    # raised on truncated or structurally invalid OpenPGP data
    pass


class UnsupportedMessageError(DecryptionError):
    # raised on valid OpenPGP data using a feature we do not implement
    pass


class IntegrityError(DecryptionError):
    # raised on a modification detection code mismatch
    pass


class DeserializationError(SecretPackError):
    # raised when the decrypted body does not fit the destination
    pass


class StreamIOError(SecretPackError):
    # raised when the underlying byte stream fails to read or write
    pass
