#!/usr/bin/env python3
"""
Catalog reader: translation lookups against a compiled message catalog.

Two lookup strategies are available:

- cache enabled (default): every string is read once into a dict on first
  lookup, and lookups are dict hits
- cache disabled: only the offset tables are kept in memory, and each lookup
  binary-searches the sorted originals, reading strings on demand

Both strategies return identical results for every key.

A reader built from a missing or invalid catalog does not raise. It records
the problem on ``error`` and runs in pass-through mode, returning every
requested string unchanged.

Example:
    with FileSource("locale/tr/LC_MESSAGES/app.mo") as source:
        reader = CatalogReader(source)
        reader.translate("Hello")                        # "Merhaba"
        reader.translate_plural("%d file", "%d files", 3)
        reader.translate_context("menu", "Open")
"""

import codecs
import logging
import threading
from typing import Iterator, Optional, Union

from .byte_source import ByteSource
from .errors import CatalogError, SourceUnavailable
from .header import parse_header
from .keys import ContextCodec, plural_key, split_plural_forms
from .plural import PluralRule, PluralRuleEvaluator, as_quantity
from .tables import Catalog, read_string

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"

Text = Union[str, bytes]


class CatalogReader:
    """
    Decodes a catalog from a ByteSource and serves lookups against it.

    Lookups accept str or bytes. Bytes are matched as-is and bytes are
    returned. Str arguments are encoded with the catalog encoding and the
    result is decoded with it.
    """

    def __init__(
        self,
        source: Optional[ByteSource],
        enable_cache: bool = True,
        encoding: Optional[str] = None,
    ):
        """
        Parse the catalog header. Tables are loaded on first lookup.

        Args:
            source: Byte source holding the catalog (None for pass-through)
            enable_cache: Keep every string in memory instead of searching
            encoding: Encoding for str arguments (default: catalog charset)
        """
        self.source = source
        self.enable_cache = enable_cache
        self.catalog: Optional[Catalog] = None
        self.error: Optional[CatalogError] = None
        self._encoding = encoding
        self._info: Optional[dict] = None
        self._read_lock = threading.Lock()
        self._plural = PluralRuleEvaluator(self._metadata_text)

        if source is None:
            self._fail(SourceUnavailable("No byte source given"))
            return
        if getattr(source, "error", None):
            self._fail(source.error)
            return

        try:
            header = parse_header(source)
        except CatalogError as e:
            self._fail(e)
            return
        self.catalog = Catalog(header=header, enable_cache=enable_cache)

    def _fail(self, error: CatalogError) -> None:
        self.error = error
        self.catalog = None
        logger.warning("Catalog unavailable, passing strings through: %s", error)

    @property
    def passthrough(self) -> bool:
        """True when no catalog could be decoded."""
        return self.catalog is None

    @property
    def revision(self) -> Optional[int]:
        return None if self.passthrough else self.catalog.header.revision

    @property
    def total(self) -> int:
        return 0 if self.passthrough else self.catalog.total

    def load_tables(self) -> bool:
        """
        Load offset tables (and the string cache) if not loaded yet.

        Returns:
            True if tables are available, False in pass-through mode
        """
        if self.passthrough:
            return False
        if self.catalog.loaded:
            return True
        try:
            with self._read_lock:
                self.catalog.load(self.source)
        except CatalogError as e:
            self._fail(e)
            return False
        return True

    def close(self) -> None:
        if self.source is not None:
            self.source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # -- raw table access -------------------------------------------------

    def get_original_string(self, num: int) -> bytes:
        """Original string of entry num, read from the source."""
        return self._read_entry("originals", num)

    def get_translation_string(self, num: int) -> bytes:
        """Translated string of entry num, read from the source."""
        return self._read_entry("translations", num)

    def _read_entry(self, table: str, num: int) -> bytes:
        # seek + read on the shared source must not interleave between threads
        with self._read_lock:
            catalog = self.catalog
            if catalog is None:
                raise SourceUnavailable(f"Catalog unavailable: {self.error}")
            return read_string(self.source, getattr(catalog, table), num)

    def find_string(self, key: bytes, start: int = -1, end: int = -1) -> int:
        """
        Binary search the sorted originals table for key.

        Args:
            key: Raw key bytes
            start: Window start (internal, for recursion)
            end: Window end, exclusive (internal, for recursion)

        Returns:
            Entry index, or -1 if key is not in the catalog
        """
        if start == -1 or end == -1:
            start, end = 0, self.catalog.total
            if end == 0:
                return -1

        if abs(start - end) <= 1:
            # Window has collapsed onto a single candidate
            return start if key == self.get_original_string(start) else -1
        if start > end:
            return self.find_string(key, end, start)

        half = (start + end) // 2
        candidate = self.get_original_string(half)
        if key == candidate:
            return half
        if key < candidate:
            return self.find_string(key, start, half)
        return self.find_string(key, half, end)

    def lookup(self, key: bytes) -> Optional[bytes]:
        """
        Stored translation for raw key, or None on a miss.

        Read failures switch the reader to pass-through and count as a miss.
        """
        if not self.load_tables():
            return None
        if self.catalog.cache is not None:
            return self.catalog.cache.get(key)
        try:
            num = self.find_string(key)
            if num == -1:
                return None
            return self.get_translation_string(num)
        except CatalogError as e:
            self._fail(e)
            return None

    def entries(self) -> Iterator[tuple[bytes, bytes]]:
        """Yield every stored (original, translation) pair in table order."""
        if not self.load_tables():
            return
        if self.catalog.cache is not None:
            yield from self.catalog.cache.items()
            return
        for i in range(self.catalog.total):
            yield self.get_original_string(i), self.get_translation_string(i)

    # -- metadata ---------------------------------------------------------

    def _metadata(self) -> bytes:
        # Entry 0 is the header entry: empty original, metadata translation
        if not self.load_tables():
            return b""
        if self.catalog.cache is not None:
            return self.catalog.cache.get(b"", b"")
        if self.catalog.total == 0:
            return b""
        try:
            return self.get_translation_string(0)
        except CatalogError as e:
            self._fail(e)
            return b""

    def _metadata_text(self) -> str:
        return self._metadata().decode(DEFAULT_ENCODING, errors="replace")

    def info(self) -> dict:
        """
        Metadata header fields, keyed by lower-cased field name.

        Continuation lines without a colon are appended to the previous field.
        """
        if self._info is not None:
            return self._info
        info = {}
        lastk = None
        for item in self._metadata_text().split("\n"):
            item = item.strip()
            if not item:
                continue
            if ":" in item:
                k, v = item.split(":", 1)
                lastk = k.strip().lower()
                info[lastk] = v.strip()
            elif lastk:
                info[lastk] += "\n" + item
        if not self.passthrough:
            self._info = info
        return info

    def charset(self) -> Optional[str]:
        """Charset declared by the Content-Type metadata field, if any."""
        content_type = self.info().get("content-type", "")
        for setting in content_type.split(";"):
            prop, _, value = setting.strip().partition("=")
            if prop.strip().lower() == "charset" and value.strip():
                return value.strip()
        return None

    @property
    def encoding(self) -> str:
        """Encoding used for str arguments and results."""
        if self._encoding:
            return self._encoding
        charset = None if self.passthrough else self.charset()
        if charset:
            try:
                return codecs.lookup(charset).name
            except LookupError:
                logger.debug("Unknown catalog charset %r, using %s", charset, DEFAULT_ENCODING)
        return DEFAULT_ENCODING

    def _to_bytes(self, value: Text) -> bytes:
        """
        Encode a str argument with the catalog encoding.

        Raises:
            UnicodeEncodeError: If value has characters the encoding lacks.
                No stored key can match such a value.
        """
        if isinstance(value, str):
            return value.encode(self.encoding)
        return value

    def _to_text(self, value: bytes, like: Text) -> Text:
        if isinstance(like, str):
            return value.decode(self.encoding, errors="replace")
        return value

    # -- plural rule ------------------------------------------------------

    def get_plural_forms(self) -> str:
        """Sanitized Plural-Forms field of the catalog."""
        return self._plural.get_plural_forms()

    def get_plural_rule(self) -> Optional[PluralRule]:
        return self._plural.get_rule()

    def select_plural(self, quantity: int) -> int:
        """Index of the plural form to use for quantity."""
        return self._plural.select(quantity)

    # -- public lookups ---------------------------------------------------

    def translate(self, message: Text) -> Text:
        """
        Translate message.

        Returns:
            The stored translation, or message unchanged on a miss
        """
        if self.passthrough:
            return message
        try:
            key = self._to_bytes(message)
        except UnicodeEncodeError:
            logger.debug("Cannot encode %r as %s, treating as a miss", message, self.encoding)
            return message
        result = self.lookup(key)
        if result is None:
            return message
        return self._to_text(result, message)

    def translate_plural(self, singular: Text, plural: Text, quantity: int) -> Text:
        """
        Translate a message with plural forms.

        Args:
            singular: Singular source string
            plural: Plural source string
            quantity: Integer that selects the plural form

        Returns:
            The selected stored form, or singular/plural on a miss

        Raises:
            TypeError: If quantity is not an integral number
        """
        quantity = as_quantity(quantity)
        fallback = plural if quantity != 1 else singular
        if self.passthrough:
            return fallback

        select = self.select_plural(quantity)
        try:
            key = plural_key(self._to_bytes(singular), self._to_bytes(plural))
        except UnicodeEncodeError:
            return fallback
        result = self.lookup(key)
        if result is None:
            return fallback

        forms = split_plural_forms(result)
        select = min(max(select, 0), len(forms) - 1)
        return self._to_text(forms[select], singular)

    def translate_context(self, context: Text, message: Text) -> Text:
        """Translate message within context."""
        try:
            key = ContextCodec.encode(self._to_bytes(context), self._to_bytes(message))
        except UnicodeEncodeError:
            return message
        result = self.translate(key)
        # The separator in the result means the key came back untranslated
        if ContextCodec.is_unresolved(result):
            return message
        return self._to_text(result, message)

    def translate_context_plural(
        self, context: Text, singular: Text, plural: Text, quantity: int
    ) -> Text:
        """Translate a plural message within context."""
        quantity = as_quantity(quantity)
        try:
            key = ContextCodec.encode(self._to_bytes(context), self._to_bytes(singular))
            plural_bytes = self._to_bytes(plural)
        except UnicodeEncodeError:
            return plural if quantity != 1 else singular
        result = self.translate_plural(key, plural_bytes, quantity)
        if ContextCodec.is_unresolved(result):
            return singular
        return self._to_text(result, singular)

    # gettext-style names
    gettext = translate
    ngettext = translate_plural
    pgettext = translate_context
    npgettext = translate_context_plural
