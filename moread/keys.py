#!/usr/bin/env python3
"""
Lookup key encodings.

Keys are matched byte for byte against the originals table, so these
encodings must be exact:

    plain key:    message
    plural key:   singular + b"\\x00" + plural
    context key:  context + b"\\x04" + message
"""

from typing import Optional

CONTEXT_SEPARATOR = b"\x04"
PLURAL_SEPARATOR = b"\x00"


class ContextCodec:
    """Build and split context-scoped keys."""

    @staticmethod
    def encode(context: bytes, message: bytes) -> bytes:
        """Join context and message with the context separator."""
        return context + CONTEXT_SEPARATOR + message

    @staticmethod
    def decode(key: bytes) -> tuple[Optional[bytes], bytes]:
        """Split a key into (context, message). Context is None for plain keys."""
        if CONTEXT_SEPARATOR not in key:
            return None, key
        context, message = key.split(CONTEXT_SEPARATOR, 1)
        return context, message

    @staticmethod
    def is_unresolved(value: bytes) -> bool:
        """
        True if a lookup result still carries the context separator.

        A miss echoes the context key back, so the separator means "not
        translated". A real translation containing 0x04 is indistinguishable
        and is reported as unresolved too.
        """
        return CONTEXT_SEPARATOR in value


def plural_key(singular: bytes, plural: bytes) -> bytes:
    """Key under which a plural entry is stored."""
    return singular + PLURAL_SEPARATOR + plural


def split_plural_forms(value: bytes) -> list[bytes]:
    """Split a stored plural translation into its ordered forms."""
    return value.split(PLURAL_SEPARATOR)
