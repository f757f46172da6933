#!/usr/bin/env python3
"""
Random-access byte sources for catalog decoding.

ByteSource is the abstract base class the reader consumes. Two concrete
sources are provided:

- FileSource: a file on disk or an already opened binary stream
- BufferSource: an in-memory bytes object

A FileSource that cannot be opened does not raise. It carries the failure
on its ``error`` attribute, and the reader treats such a source as missing.
"""

import io
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import FormatError, SourceUnavailable

logger = logging.getLogger(__name__)


class ByteSource(ABC):
    """
    Abstract random-access byte reader.

    ``read(n)`` must return exactly n bytes or raise FormatError, so that a
    truncated catalog is detected at the read that runs past its end.
    """

    error: Optional[SourceUnavailable] = None

    @abstractmethod
    def read(self, n: int) -> bytes:
        """Read exactly n bytes from the current position."""
        pass

    @abstractmethod
    def seek(self, pos: int) -> int:
        """Move to absolute position pos and return it."""
        pass

    @abstractmethod
    def position(self) -> int:
        """Current absolute position."""
        pass

    @abstractmethod
    def length(self) -> int:
        """Total number of bytes available."""
        pass

    def close(self) -> None:
        """Release any underlying resource. Default is a no-op."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class BufferSource(ByteSource):
    """Byte source over an in-memory buffer."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._pos = 0

    def read(self, n: int) -> bytes:
        if n <= 0:
            return b""
        end = self._pos + n
        if end > len(self._data):
            raise FormatError(
                f"Unexpected end of data: wanted {n} bytes at offset {self._pos}, "
                f"buffer holds {len(self._data)}"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def seek(self, pos: int) -> int:
        self._pos = max(0, pos)
        return self._pos

    def position(self) -> int:
        return self._pos

    def length(self) -> int:
        return len(self._data)


class FileSource(ByteSource):
    """
    Byte source over a file path or an open binary stream.

    When given a path, the file is opened here and closed by close().
    A stream passed in by the caller is left open.
    """

    def __init__(self, filename: Union[str, os.PathLike, BinaryIO]):
        self._fd: Optional[BinaryIO] = None
        self._owns_fd = False
        self._length = 0
        self._pos = 0
        self.error = None
        self.name = ""

        if isinstance(filename, (str, os.PathLike)):
            path = Path(filename)
            self.name = str(path)
            if not path.exists():
                self.error = SourceUnavailable(f"File doesn't exist: {path}")
                logger.warning("Catalog file not found: %s", path)
                return
            try:
                self._fd = open(path, "rb")
            except OSError as e:
                # Cannot read file, probably permissions
                self.error = SourceUnavailable(f"Cannot read file {path}: {e}")
                logger.warning("Cannot open catalog file %s: %s", path, e)
                return
            self._owns_fd = True
            self._length = path.stat().st_size
        elif hasattr(filename, "read") and hasattr(filename, "seek"):
            self._fd = filename
            self.name = getattr(filename, "name", "") or ""
            self._length = filename.seek(0, io.SEEK_END)
            filename.seek(0)
        else:
            raise TypeError(
                f"Expected a path or binary stream, got {type(filename).__name__}"
            )

    def _check_open(self) -> None:
        if self._fd is None:
            raise SourceUnavailable(f"File {self.name or '<stream>'} is closed")

    def read(self, n: int) -> bytes:
        if n <= 0:
            return b""
        self._check_open()
        # Corrupt offsets or counts must not turn into huge reads
        if self._pos + n > self._length:
            raise FormatError(
                f"Unexpected end of file {self.name or '<stream>'}: "
                f"wanted {n} bytes at offset {self._pos}, file holds {self._length}"
            )
        self._fd.seek(self._pos)
        chunks = []
        remaining = n
        # A single read() may return fewer bytes than asked for
        while remaining > 0:
            chunk = self._fd.read(remaining)
            if not chunk:
                raise FormatError(
                    f"Unexpected end of file {self.name or '<stream>'}: "
                    f"wanted {n} bytes at offset {self._pos}"
                )
            chunks.append(chunk)
            remaining -= len(chunk)
        self._pos = self._fd.tell()
        return b"".join(chunks)

    def seek(self, pos: int) -> int:
        self._check_open()
        self._fd.seek(pos)
        self._pos = self._fd.tell()
        return self._pos

    def position(self) -> int:
        return self._pos

    def length(self) -> int:
        return self._length

    def close(self) -> None:
        if self._fd is not None and self._owns_fd:
            self._fd.close()
        self._fd = None
