#!/usr/bin/env python3
"""
Offset tables and the decoded catalog.

A catalog holds two parallel offset tables. Entry i of the originals table
and entry i of the translations table describe the same message. Each table
entry is a (length, offset) pair pointing at raw string bytes in the source.
The originals are sorted by their raw bytes, which is what makes binary
search over the table possible.
"""

import logging
import struct
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .byte_source import ByteSource
from .header import CatalogHeader

logger = logging.getLogger(__name__)


class TableState(Enum):
    """Load state of a catalog's tables. UNLOADED -> LOADED only."""
    UNLOADED = "unloaded"
    LOADED = "loaded"


@dataclass(frozen=True)
class OffsetTable:
    """N (length, offset) pairs, stored as two plain integer tuples."""
    lengths: tuple = ()
    offsets: tuple = ()

    def __len__(self) -> int:
        return len(self.lengths)

    def entry(self, index: int) -> tuple[int, int]:
        """(length, offset) of entry index."""
        return self.lengths[index], self.offsets[index]

    @classmethod
    def read(cls, source: ByteSource, header: CatalogHeader, offset: int) -> "OffsetTable":
        """Read header.total interleaved (length, offset) pairs at offset."""
        count = header.total * 2
        source.seek(offset)
        values = struct.unpack(f"{header.struct_prefix}{count}I", source.read(4 * count))
        return cls(lengths=values[0::2], offsets=values[1::2])


def read_string(source: ByteSource, table: OffsetTable, index: int) -> bytes:
    """
    Read the string for entry index of table.

    Zero-length entries return b"" without touching the source, since their
    offset is not meaningful.
    """
    length, offset = table.entry(index)
    if not length:
        return b""
    source.seek(offset)
    return source.read(length)


@dataclass
class Catalog:
    """
    Decoded catalog: header, offset tables and the optional string cache.

    Tables are read lazily by load(). The transition to LOADED happens once;
    afterwards the catalog is only read.
    """
    header: CatalogHeader
    enable_cache: bool = True
    originals: Optional[OffsetTable] = None
    translations: Optional[OffsetTable] = None
    cache: Optional[dict] = None
    state: TableState = TableState.UNLOADED
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def total(self) -> int:
        return self.header.total

    @property
    def loaded(self) -> bool:
        return self.state is TableState.LOADED

    def load(self, source: ByteSource) -> None:
        """
        Load both offset tables and, with caching enabled, every string.

        Idempotent and safe to call from several threads: only the first
        caller reads, the others wait for it and return.

        Raises:
            FormatError: If the source ends inside a table or a string
        """
        if self.loaded:
            return
        with self._lock:
            if self.loaded:
                return

            if self.originals is None:
                self.originals = OffsetTable.read(source, self.header, self.header.originals_offset)
            if self.translations is None:
                self.translations = OffsetTable.read(source, self.header, self.header.translations_offset)

            if self.enable_cache:
                cache = {}
                for i in range(self.total):
                    original = read_string(source, self.originals, i)
                    cache[original] = read_string(source, self.translations, i)
                self.cache = cache

            self.state = TableState.LOADED
            logger.debug(
                "Loaded %d catalog entries (cache %s)",
                self.total, "enabled" if self.enable_cache else "disabled",
            )
