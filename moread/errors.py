#!/usr/bin/env python3
"""
Exception types raised while decoding message catalogs.

The reader never lets these escape a lookup: it records them on
``CatalogReader.error`` and falls back to pass-through mode. They surface
to callers only from ``parse_header``, the byte sources and the exporter.
"""


class CatalogError(Exception):
    """Base class for catalog decoding failures."""


class SourceUnavailable(CatalogError):
    """No byte source was given, or the source reports an error state."""


class FormatError(CatalogError):
    """The data is not a valid catalog (bad magic, truncated tables)."""


class PluralRuleError(CatalogError, ValueError):
    """A Plural-Forms expression could not be parsed or evaluated."""
