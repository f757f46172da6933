#!/usr/bin/env python3
"""
Export a decoded catalog as a UTF-8 translation table.

The whole string table is transcoded from the catalog charset to text and
written as JSON or YAML, together with a block of build metadata:

    {
      "meta": {"Revision": 0, "Total-Strings": 3, "Table-Size": 3, ...},
      "messages": {"": "Content-Type: ...", "Hello": "Merhaba", ...}
    }

Plural entries keep their NUL-joined keys and values.
"""

import json
import logging
import os
import sys
from email.utils import formatdate
from pathlib import Path
from typing import Optional, TextIO, Union

try:
    import yaml
    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False

from .byte_source import FileSource
from .errors import CatalogError
from .reader import CatalogReader

logger = logging.getLogger(__name__)

FORMAT_VERSION = "A"
OUTPUT_FORMATS = ("json", "yaml")


def _open_reader(catalog) -> CatalogReader:
    if isinstance(catalog, CatalogReader):
        return catalog
    return CatalogReader(FileSource(catalog), enable_cache=True)


def _decode(value: bytes, charset: str) -> str:
    return value.decode(charset, errors="replace")


def build_table_dict(catalog: Union[CatalogReader, str, os.PathLike]) -> dict:
    """
    Decode every catalog entry into a text table with build metadata.

    Args:
        catalog: A CatalogReader, or a path/binary stream to open

    Returns:
        {"meta": {...}, "messages": {original: translation}}

    Raises:
        CatalogError: If the catalog cannot be decoded or holds no strings
    """
    reader = _open_reader(catalog)
    try:
        if reader.passthrough:
            raise CatalogError(f"Unable to initialize MO input file: {reader.error}")
        table = dict(reader.entries())
        charset = reader.encoding
    finally:
        if reader is not catalog:
            reader.close()

    if reader.passthrough or not table:
        raise CatalogError("Unable to read translations from file")

    logger.debug("Transcoding %d entries from %s", len(table), charset)
    messages = {_decode(k, charset): _decode(v, charset) for k, v in table.items()}

    return {
        "meta": {
            "Revision": reader.revision,
            "Total-Strings": reader.total,
            "Table-Size": len(messages),
            "Build-Timestamp": formatdate(usegmt=True),
            "Format-Version": FORMAT_VERSION,
            "Encoding": "UTF-8",
        },
        "messages": messages,
    }


def render_table(table: dict, fmt: str = "json") -> str:
    """Serialize a table built by build_table_dict."""
    if fmt == "json":
        return json.dumps(table, indent=2, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        if not YAML_AVAILABLE:
            raise ImportError("PyYAML is required for YAML output. Install with: pip install pyyaml")
        return yaml.safe_dump(table, allow_unicode=True, sort_keys=False, default_flow_style=False)
    raise ValueError(f"Unknown output format: {fmt!r} (expected one of {', '.join(OUTPUT_FORMATS)})")


def build_table(
    catalog: Union[CatalogReader, str, os.PathLike],
    outfile: Union[None, str, os.PathLike, TextIO] = None,
    fmt: str = "json",
    return_contents: bool = False,
) -> Optional[str]:
    """
    Export catalog as a UTF-8 table to outfile.

    Args:
        catalog: A CatalogReader, or a path/binary stream to open
        outfile: None for stdout, a path, or a writable text stream
        fmt: "json" or "yaml"
        return_contents: Return the rendered text instead of writing it

    Returns:
        The rendered text if return_contents, else None

    Raises:
        CatalogError: If the catalog cannot be decoded
        ValueError: If outfile is neither a path nor a writable stream
    """
    if outfile is not None and not isinstance(outfile, (str, os.PathLike)) and not hasattr(outfile, "write"):
        raise ValueError("Expected a filename or writable stream")

    contents = render_table(build_table_dict(catalog), fmt)
    if return_contents:
        return contents

    if outfile is None:
        sys.stdout.write(contents)
    elif isinstance(outfile, (str, os.PathLike)):
        Path(outfile).write_text(contents, encoding="utf-8")
        logger.debug("Wrote table to %s", outfile)
    else:
        outfile.write(contents)
    return None
