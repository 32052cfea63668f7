#!/usr/bin/env python3
"""
Inspect a stored value: does it look encrypted, and what does it decrypt to?

Operator tool for support requests. Reads the value from the command line
or stdin and uses ENCRYPTION_KEY / ENCRYPTION_SALT from the environment.

Usage:
    python -m database.inspect_payload "<iv>:16:<tag>:<ciphertext>"
    echo "<payload>" | python -m database.inspect_payload
"""
import argparse
import sys
from typing import List, Optional, TextIO

from loguru import logger

from common.security import DECRYPTION_FAILED, DEPTH_LIMIT_REACHED, EncryptionService


def inspect(value: str, encryption: EncryptionService) -> List[str]:
    """Describe a stored value; never prints more than a prefix of the payload"""
    value = value.strip()
    if not encryption.is_encrypted(value):
        return ["This content does not appear to be encrypted."]

    if not encryption.initialized:
        return ["Encryption service is not initialized; set ENCRYPTION_KEY to decrypt."]

    decrypted = encryption.decrypt(value)
    if decrypted in (DECRYPTION_FAILED, DEPTH_LIMIT_REACHED):
        return [f"Failed to decrypt: {decrypted}"]

    return [
        "Decryption successful!",
        f"Original encrypted string: {value[:30]}...",
        "Decrypted content:",
        decrypted,
    ]


def main(
    argv: Optional[List[str]] = None,
    stdin: TextIO = sys.stdin,
    stdout: TextIO = sys.stdout,
    encryption: Optional[EncryptionService] = None,
) -> int:
    parser = argparse.ArgumentParser(description="Check and decrypt a stored value")
    parser.add_argument("value", nargs="?", help="Stored value (read from stdin if omitted)")
    args = parser.parse_args(argv)

    value = args.value if args.value is not None else stdin.read()
    encryption = encryption or EncryptionService.from_settings()

    for line in inspect(value, encryption):
        print(line, file=stdout)
    return 0


def run() -> int:
    """Console script entry point"""
    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    return main()


if __name__ == "__main__":
    sys.exit(run())
