"""Password obfuscation for stored configuration files.

XOR with a repeating key, carried as base64 text. This keeps passwords
out of plain sight in INI files; it is not encryption in any strong sense.
"""

from __future__ import annotations

import base64
import binascii

from sqlogger.errors import ConfigError

ERR_MSG_PASSKEY_EMPTY = "Pass key is empty"


def _xor(data: bytes, key: bytes) -> bytes:
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


def encrypt(data: str, key: str) -> str:
    """Obfuscate ``data`` with ``key``.

    Raises:
        ConfigError: If ``key`` is empty.
    """
    if not key:
        raise ConfigError(ERR_MSG_PASSKEY_EMPTY, operation="encrypt")
    return base64.b64encode(_xor(data.encode("utf-8"), key.encode("utf-8"))).decode("ascii")


def decrypt(data: str, key: str) -> str:
    """Reverse ``encrypt``.

    Raises:
        ConfigError: If ``key`` is empty or ``data`` is not valid base64.
    """
    if not key:
        raise ConfigError(ERR_MSG_PASSKEY_EMPTY, operation="decrypt")
    try:
        raw = base64.b64decode(data.encode("ascii"), validate=True)
        return _xor(raw, key.encode("utf-8")).decode("utf-8")
    except (binascii.Error, UnicodeError) as e:
        raise ConfigError(f"Cannot decrypt password: {e}", operation="decrypt") from e
