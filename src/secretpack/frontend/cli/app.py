"""
Command line frontend for secretpack.

Encrypts a JSON document into a passphrase-protected OpenPGP message and
decrypts it back:

    secretpack encrypt config.json -o config.json.gpg
    secretpack decrypt config.json.gpg -o config.json

The passphrase is read from ``SECRETPACK_PASSPHRASE`` when set, otherwise it
is prompted for. Use ``-`` as input to read from stdin.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from contextlib import nullcontext
from typing import List, Optional

from secretpack.core.config import Config
from secretpack.core.exceptions import SecretPackError
from secretpack.core.secret import Decrypter, Encrypter

from .logging_config import configure_logging


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1


def _read_passphrase(confirm: bool) -> str:
    env = os.environ.get("SECRETPACK_PASSPHRASE")
    if env:
        return env
    passphrase = getpass.getpass("Passphrase: ")
    if confirm and getpass.getpass("Repeat passphrase: ") != passphrase:
        raise ValueError("passphrases do not match")
    return passphrase


def _open_input(path: str):
    if path == "-":
        return nullcontext(sys.stdin.buffer)
    return open(path, "rb")


def _open_output(path: Optional[str]):
    if path is None or path == "-":
        return nullcontext(sys.stdout.buffer)
    return open(path, "wb")


def cmd_encrypt(args: argparse.Namespace) -> int:
    config = Config.from_env()
    with _open_input(args.input) as f:
        value = json.load(f)
    if not isinstance(value, dict):
        # decrypt always restores into an object
        raise ValueError(f"{args.input}: the document must be a JSON object, not {type(value).__name__}")
    passphrase = _read_passphrase(confirm=True)

    with _open_output(args.output) as out:
        Encrypter(out, config).encrypt(value, passphrase)
    logger.info("encrypted %s", args.input)
    return EXIT_OK


def cmd_decrypt(args: argparse.Namespace) -> int:
    passphrase = _read_passphrase(confirm=False)
    result: dict = {}
    with _open_input(args.input) as f:
        Decrypter(f).decrypt(result, passphrase)

    text = json.dumps(result, indent=2, ensure_ascii=False) + "\n"
    with _open_output(args.output) as out:
        out.write(text.encode("utf-8"))
    logger.info("decrypted %s", args.input)
    return EXIT_OK


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secretpack",
        description="Encrypt JSON documents with a passphrase (OpenPGP format).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encrypt", help="Encrypt a JSON document")
    enc.add_argument("input", help="JSON file to encrypt, or - for stdin")
    enc.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")
    enc.set_defaults(func=cmd_encrypt)

    dec = sub.add_parser("decrypt", help="Decrypt a message into a JSON document")
    dec.add_argument("input", help="Encrypted file, or - for stdin")
    dec.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")
    dec.set_defaults(func=cmd_decrypt)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        return args.func(args)
    except (SecretPackError, ValueError, OSError) as e:
        print(f"secretpack: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
