#!/usr/bin/env python3
"""
sfe: simple file encryption.

Encrypts a file in place into a self-describing envelope:

    magic      : 5 bytes   -> FA 15 EC 0D E5
    "MetaLength:" N "|"    -> ASCII decimal length of the metadata segment
    metadata   : N bytes   -> UTF-8 JSON, or salt||iv||ciphertext when encrypted
    payload    : salt(32) || iv(32) || Rijndael-256-CBC(ciphertext, PKCS#7)

Keys come from PBKDF2-HMAC-SHA1(password, salt, 1000 iterations) -> 32 bytes,
with a fresh salt and IV for every cipher segment.

Commands:
  encrypt <path>   Encrypt in place (--meta KEY=VALUE, --provenance, --encrypt-metadata)
  decrypt <path>   Decrypt in place and print the stored metadata
  meta <path>      Print the metadata (password needed only if it is encrypted)
  check <path>     Tell whether a file is encrypted

Note: there is no MAC. A wrong password is detected only through the padding
check, so corruption can go unnoticed and the format is a padding oracle.
"""
from __future__ import annotations

import getpass
import logging
import os
import sys

from sfe.ui.cli import build_parser


def setup_logging(level: str = "WARNING") -> logging.Logger:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    return logging.getLogger("sfe")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not args.passphrase:
        args.passphrase = os.environ.get("SFE_PASSPHRASE") or None
    if args.needs_passphrase and not args.passphrase:
        args.passphrase = getpass.getpass("Passphrase: ")

    args.func(args)


if __name__ == "__main__":
    main()
