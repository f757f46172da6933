#!/usr/bin/env python3
"""
Catalog header parsing.

Header layout (all integers unsigned 32-bit, in the byte order given by
the magic):

    offset 0:  magic
    offset 4:  revision
    offset 8:  number of entries N
    offset 12: offset of the originals table
    offset 16: offset of the translations table
"""

import logging
import struct
from dataclasses import dataclass

from .byte_source import ByteSource
from .errors import FormatError

logger = logging.getLogger(__name__)

MAGIC_BIG_ENDIAN = b"\x95\x04\x12\xde"
MAGIC_LITTLE_ENDIAN = b"\xde\x12\x04\x95"

HEADER_SIZE = 20

# Major revisions produced by known compilers
KNOWN_MAJOR_REVISIONS = (0, 1)


@dataclass(frozen=True)
class CatalogHeader:
    """Fixed-size header at the start of every catalog."""
    byteorder: str  # "big" or "little"
    revision: int
    total: int
    originals_offset: int
    translations_offset: int

    @property
    def struct_prefix(self) -> str:
        """struct format prefix for this byte order."""
        return ">" if self.byteorder == "big" else "<"

    @property
    def major_revision(self) -> int:
        return self.revision >> 16

    @property
    def minor_revision(self) -> int:
        return self.revision & 0xFFFF

    def to_dict(self) -> dict:
        return {
            "byteorder": self.byteorder,
            "revision": self.revision,
            "major_revision": self.major_revision,
            "minor_revision": self.minor_revision,
            "total": self.total,
            "originals_offset": self.originals_offset,
            "translations_offset": self.translations_offset,
        }


def detect_byteorder(magic: bytes) -> str:
    """
    Map the 4 magic bytes to a byte order.

    Raises:
        FormatError: If magic matches neither byte order
    """
    if magic == MAGIC_BIG_ENDIAN:
        return "big"
    if magic == MAGIC_LITTLE_ENDIAN:
        return "little"
    raise FormatError(f"Not a message catalog: bad magic {magic!r}")


def parse_header(source: ByteSource) -> CatalogHeader:
    """
    Read and validate the catalog header from the start of source.

    Reads exactly HEADER_SIZE bytes. The revision is captured but not
    validated, so newer minor formats still load.

    Raises:
        FormatError: On bad magic or a source shorter than the header
    """
    source.seek(0)
    byteorder = detect_byteorder(source.read(4))
    prefix = ">" if byteorder == "big" else "<"
    revision, total, originals, translations = struct.unpack(
        prefix + "4I", source.read(16)
    )

    header = CatalogHeader(
        byteorder=byteorder,
        revision=revision,
        total=total,
        originals_offset=originals,
        translations_offset=translations,
    )
    if header.major_revision not in KNOWN_MAJOR_REVISIONS:
        logger.warning(
            "Unknown catalog revision %d.%d, reading anyway",
            header.major_revision, header.minor_revision,
        )
    logger.debug(
        "Catalog header: %s endian, revision %d, %d entries",
        byteorder, revision, total,
    )
    return header
