import argparse
import os

from sfe.utils.core import cmd_check, cmd_decrypt, cmd_encrypt, cmd_meta

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Password-encrypt files in place, with optional metadata")
    p.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=os.environ.get("SFE_LOG_LEVEL", "WARNING").upper(),
        help="Logging level (default: $SFE_LOG_LEVEL or WARNING)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_enc = sub.add_parser("encrypt", help="Encrypt a file in place")
    p_enc.add_argument("path", help="File to encrypt")
    p_enc.add_argument("--passphrase", help="Password (default: $SFE_PASSPHRASE or prompt)")
    p_enc.add_argument("--meta", action="append", metavar="KEY=VALUE", help="Metadata entry (repeatable)")
    p_enc.add_argument("--provenance", action="store_true", help="Record time, host, user and IP address")
    p_enc.add_argument("--encrypt-metadata", action="store_true", help="Encrypt the metadata as well")
    p_enc.set_defaults(func=cmd_encrypt, needs_passphrase=True)

    p_dec = sub.add_parser("decrypt", help="Decrypt a file in place")
    p_dec.add_argument("path", help="File to decrypt")
    p_dec.add_argument("--passphrase", help="Password (default: $SFE_PASSPHRASE or prompt)")
    p_dec.set_defaults(func=cmd_decrypt, needs_passphrase=True)

    p_meta = sub.add_parser("meta", help="Show the metadata of an encrypted file")
    p_meta.add_argument("path", help="Encrypted file")
    p_meta.add_argument("--passphrase", help="Needed only when the metadata is encrypted")
    p_meta.set_defaults(func=cmd_meta, needs_passphrase=False)

    p_chk = sub.add_parser("check", help="Tell whether a file is encrypted")
    p_chk.add_argument("path", help="File to inspect")
    p_chk.set_defaults(func=cmd_check, needs_passphrase=False, passphrase=None)

    return p
