"""
moread - compiled message catalog (.mo) reader

Decodes GNU gettext binary catalogs of either byte order and serves
translation lookups against them, with plural-form selection driven by the
catalog's own Plural-Forms rule. Missing or corrupt catalogs never raise
from a lookup: the reader falls back to returning strings unchanged.

Quick start:
    from moread import CatalogReader, FileSource

    reader = CatalogReader(FileSource("messages.mo"))
    reader.translate("Hello")
    reader.translate_plural("%d file", "%d files", 3)
    reader.translate_context("menu", "Open")
"""

__version__ = "1.0.0"

from .byte_source import BufferSource, ByteSource, FileSource
from .errors import CatalogError, FormatError, PluralRuleError, SourceUnavailable
from .export import build_table
from .header import CatalogHeader, parse_header
from .keys import ContextCodec
from .plural import PluralRule, PluralRuleEvaluator
from .reader import CatalogReader
from .tables import Catalog, OffsetTable, TableState

__all__ = [
    "BufferSource",
    "ByteSource",
    "FileSource",
    "CatalogError",
    "FormatError",
    "PluralRuleError",
    "SourceUnavailable",
    "build_table",
    "CatalogHeader",
    "parse_header",
    "ContextCodec",
    "PluralRule",
    "PluralRuleEvaluator",
    "CatalogReader",
    "Catalog",
    "OffsetTable",
    "TableState",
]
