#!/usr/bin/env python3
"""
moread - compiled message catalog (.mo) reader

Inspect compiled gettext catalogs and run lookups against them from the
command line. Results are printed as JSON.

Commands:
    info      - Header, metadata and plural rule of a catalog
    translate - Look up a message (optionally within a context)
    plural    - Look up a plural message for a quantity
    select    - Show which plural form each quantity selects
    export    - Dump the whole table as UTF-8 JSON or YAML

Example:
    1. moread info locale/tr/LC_MESSAGES/app.mo
       → Returns: byte order, revision, entry count, metadata, plural rule

    2. moread translate locale/tr/LC_MESSAGES/app.mo "Open file"
       → Returns: {"translation": "Dosya aç", "translated": true, ...}

    3. moread plural app.mo "%d file" "%d files" 5 --context menu
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .byte_source import FileSource
from .export import OUTPUT_FORMATS, build_table, build_table_dict, render_table
from .reader import CatalogReader


def _open_reader(args) -> CatalogReader:
    return CatalogReader(
        FileSource(args.catalog),
        enable_cache=not args.no_cache,
        encoding=args.encoding,
    )


def _error_result(reader: CatalogReader, catalog: str) -> dict:
    return {
        "status": "error",
        "error_type": type(reader.error).__name__,
        "error": str(reader.error),
        "suggestion": f"Check that '{catalog}' exists and is a compiled .mo file",
    }


def cmd_info(args) -> dict:
    """Describe a catalog."""
    reader = _open_reader(args)
    with reader:
        if reader.passthrough:
            return _error_result(reader, args.catalog)

        metadata = reader.info()
        rule = reader.get_plural_rule()
        if reader.passthrough:
            return _error_result(reader, args.catalog)

        return {
            "status": "ok",
            "catalog": args.catalog,
            "header": reader.catalog.header.to_dict(),
            "cache": reader.enable_cache,
            "charset": reader.charset(),
            "metadata": metadata,
            "plural_forms": reader.get_plural_forms(),
            "nplurals": rule.nplurals if rule else None,
            "summary": f"{reader.total} entries, revision {reader.revision}, "
                       f"{reader.catalog.header.byteorder} endian",
        }


def cmd_translate(args) -> dict:
    """Translate a single message."""
    reader = _open_reader(args)
    with reader:
        if args.context is not None:
            translation = reader.translate_context(args.context, args.msgid)
        else:
            translation = reader.translate(args.msgid)
        return {
            "status": "ok" if not reader.passthrough else "passthrough",
            "msgid": args.msgid,
            "context": args.context,
            "translation": translation,
            "translated": translation != args.msgid,
        }


def cmd_plural(args) -> dict:
    """Translate a plural message for a quantity."""
    reader = _open_reader(args)
    with reader:
        if args.context is not None:
            translation = reader.translate_context_plural(
                args.context, args.singular, args.plural, args.n
            )
        else:
            translation = reader.translate_plural(args.singular, args.plural, args.n)
        return {
            "status": "ok" if not reader.passthrough else "passthrough",
            "singular": args.singular,
            "plural": args.plural,
            "context": args.context,
            "n": args.n,
            "form": None if reader.passthrough else reader.select_plural(args.n),
            "translation": translation,
        }


def cmd_select(args) -> dict:
    """Evaluate the plural rule for each quantity."""
    reader = _open_reader(args)
    with reader:
        if reader.passthrough:
            return _error_result(reader, args.catalog)
        return {
            "status": "ok",
            "plural_forms": reader.get_plural_forms(),
            "selections": {str(n): reader.select_plural(n) for n in args.n},
        }


def cmd_export(args):
    """Export the catalog table as UTF-8 JSON or YAML."""
    reader = _open_reader(args)
    with reader:
        if not args.output:
            return build_table(reader, fmt=args.format, return_contents=True)
        table = build_table_dict(reader)
        Path(args.output).write_text(render_table(table, args.format), encoding="utf-8")
        return {
            "status": "ok",
            "output": args.output,
            "format": args.format,
            "entries": table["meta"]["Table-Size"],
            "summary": f"Exported {table['meta']['Table-Size']} entries to {args.output}",
        }


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="moread",
        description="moread - compiled message catalog (.mo) reader",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Describe a catalog
  moread info messages.mo

  # Look up a message, with and without context
  moread translate messages.mo "Open"
  moread translate messages.mo "Open" --context menu

  # Plural lookup for 5 items, searching the file instead of caching it
  moread --no-cache plural messages.mo "%d item" "%d items" 5

  # Which plural form do 0, 1, 2 and 5 select?
  moread select messages.mo 0 1 2 5

  # Export the whole table
  moread export messages.mo --format yaml --output messages.yaml
        """,
    )
    parser.add_argument("--no-cache", action="store_true",
                        help="Binary-search the file on each lookup instead of caching all strings")
    parser.add_argument("--encoding", "-e", default=None,
                        help="Encoding of messages (default: catalog charset, else utf-8)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log decoding details to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # info command
    info_parser = subparsers.add_parser("info", help="Describe a catalog")
    info_parser.add_argument("catalog", help="Compiled .mo file")

    # translate command
    translate_parser = subparsers.add_parser("translate", help="Translate a message")
    translate_parser.add_argument("catalog", help="Compiled .mo file")
    translate_parser.add_argument("msgid", help="Message to translate")
    translate_parser.add_argument("--context", "-c", default=None, help="Message context (msgctxt)")

    # plural command
    plural_parser = subparsers.add_parser("plural", help="Translate a plural message")
    plural_parser.add_argument("catalog", help="Compiled .mo file")
    plural_parser.add_argument("singular", help="Singular form (msgid)")
    plural_parser.add_argument("plural", help="Plural form (msgid_plural)")
    plural_parser.add_argument("n", type=int, help="Quantity")
    plural_parser.add_argument("--context", "-c", default=None, help="Message context (msgctxt)")

    # select command
    select_parser = subparsers.add_parser("select", help="Evaluate the plural rule")
    select_parser.add_argument("catalog", help="Compiled .mo file")
    select_parser.add_argument("n", type=int, nargs="+", help="Quantities")

    # export command
    export_parser = subparsers.add_parser("export", help="Export the table as UTF-8")
    export_parser.add_argument("catalog", help="Compiled .mo file")
    export_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    export_parser.add_argument("--format", "-f", default="json", choices=list(OUTPUT_FORMATS),
                               help="Output format (default: json)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )

    try:
        if args.command == "info":
            result = cmd_info(args)
            print(json.dumps(result, indent=2, ensure_ascii=False))
        elif args.command == "translate":
            result = cmd_translate(args)
            print(json.dumps(result, indent=2, ensure_ascii=False))
        elif args.command == "plural":
            result = cmd_plural(args)
            print(json.dumps(result, indent=2, ensure_ascii=False))
        elif args.command == "select":
            result = cmd_select(args)
            print(json.dumps(result, indent=2, ensure_ascii=False))
        elif args.command == "export":
            result = cmd_export(args)
            if isinstance(result, str):
                sys.stdout.write(result)
            else:
                print(json.dumps(result, indent=2, ensure_ascii=False))
    except Exception as e:
        print(json.dumps({
            "status": "error",
            "error": str(e),
            "error_type": type(e).__name__,
        }), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
