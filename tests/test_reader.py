#!/usr/bin/env python3
"""
Tests for CatalogReader lookups.

Tests verify:
1. Stored entries translate, unknown strings pass through (both lookup modes)
2. Cache lookup and binary search agree on every key
3. Plural lookups pick the form selected by the catalog's rule
4. Context lookups, including the 0x04 sentinel ambiguity
5. Pass-through mode for missing, invalid and truncated catalogs
6. Lazy, one-time table loading
7. Corrupt, closed and shared sources never crash a lookup
"""

import struct
import sys
import threading

import pytest

from moread import BufferSource, CatalogReader, FileSource, FormatError, SourceUnavailable, TableState
from moread.header import HEADER_SIZE

from conftest import HEADER, MESSAGES, compile_mo


class RecordingSource(BufferSource):
    """BufferSource that remembers the furthest byte it was asked for."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.furthest = 0
        self.reads = 0

    def read(self, n: int) -> bytes:
        self.reads += 1
        chunk = super().read(n)
        self.furthest = max(self.furthest, self.position())
        return chunk


# -- plain lookups ---------------------------------------------------------

def test_stored_entries_translate(reader):
    """Test 1: Every stored (original, translation) pair is returned as stored."""
    for original, translation in MESSAGES.items():
        assert reader.translate(original) == translation


def test_unknown_strings_pass_through(reader):
    """Test 2: Strings not in the catalog come back unchanged."""
    for missing in ["Goodbye", "hello", "Hello ", "aaa", "zzzz", "ç"]:
        assert reader.translate(missing) == missing


def test_bytes_in_bytes_out(reader):
    """Test 3: Bytes keys return raw translation bytes."""
    assert reader.translate(b"Open") == "Aç".encode("utf-8")
    assert reader.translate(b"Missing") == b"Missing"


def test_metadata_entry_is_empty_key(reader):
    """Test 4: The empty key resolves to the metadata header."""
    assert reader.translate("") == HEADER


def test_cache_and_search_agree(make_mo):
    """Test 5: Differential check of both lookup strategies over all keys."""
    messages = {"": HEADER}
    for i in range(200):
        messages[f"message {i:03d}"] = f"mesaj {i}"
    data = make_mo(messages)

    cached = CatalogReader(BufferSource(data), enable_cache=True)
    searched = CatalogReader(BufferSource(data), enable_cache=False)

    probes = list(messages) + ["message", "message 200", "message 05", "zzz", ""]
    for key in probes:
        assert cached.translate(key) == searched.translate(key), key


@pytest.mark.parametrize("byteorder", ["little", "big"])
def test_both_byte_orders(make_mo, byteorder):
    """Test 6: Catalogs of either byte order decode identically."""
    reader = CatalogReader(BufferSource(make_mo(MESSAGES, byteorder=byteorder)))
    assert reader.catalog.header.byteorder == byteorder
    assert reader.translate("Hello") == "Merhaba"
    assert reader.translate_plural("one item", "%d items", 3) == "%d öğe"


@pytest.mark.parametrize("enable_cache", [True, False])
def test_empty_translation(make_mo, enable_cache):
    """Test 7: A zero-length stored translation is a hit returning ''."""
    reader = CatalogReader(BufferSource(make_mo({"": HEADER, "Blank": ""})), enable_cache=enable_cache)
    assert reader.translate("Blank") == ""


@pytest.mark.parametrize("enable_cache", [True, False])
def test_empty_catalog(make_mo, enable_cache):
    """Test 8: A catalog without entries translates nothing."""
    reader = CatalogReader(BufferSource(make_mo({})), enable_cache=enable_cache)
    assert not reader.passthrough
    assert reader.translate("x") == "x"
    assert reader.translate_plural("x", "xs", 2) == "xs"
    assert reader.get_plural_rule().nplurals == 2


def test_find_string_indices(mo_bytes):
    """Test 9: find_string returns table indices of sorted originals."""
    reader = CatalogReader(BufferSource(mo_bytes), enable_cache=False)
    reader.load_tables()
    keys = sorted(k.encode("utf-8") for k in MESSAGES)
    for index, key in enumerate(keys):
        assert reader.find_string(key) == index
    assert reader.find_string(b"nope") == -1
    # Inverted window is turned around
    assert reader.find_string(keys[3], len(keys), 0) == 3


def test_declared_charset_is_used_for_str(make_mo):
    """Test 10: str arguments follow the catalog's declared charset."""
    header = HEADER.replace("UTF-8", "ISO-8859-1").encode("latin-1")
    data = make_mo({b"": header, "café".encode("latin-1"): "kahvé".encode("latin-1")})
    reader = CatalogReader(BufferSource(data))
    assert reader.charset() == "ISO-8859-1"
    assert reader.translate("café") == "kahvé"
    assert reader.translate("café".encode("latin-1")) == "kahvé".encode("latin-1")


def test_explicit_encoding_wins(make_mo):
    """Test 11: encoding= overrides the catalog charset."""
    data = make_mo({b"": HEADER.encode(), "ü".encode("latin-1"): b"u"})
    reader = CatalogReader(BufferSource(data), encoding="latin-1")
    assert reader.translate("ü") == "u"


def test_info_fields(reader):
    """Test 12: Metadata fields are exposed with lower-cased names."""
    info = reader.info()
    assert info["language"] == "tr"
    assert info["project-id-version"] == "demo 1.0"
    assert reader.charset() == "UTF-8"


# -- plurals -----------------------------------------------------------------

def test_plural_forms_selected(reader):
    """Test 13: translate_plural returns the form picked by the rule."""
    assert reader.translate_plural("one item", "%d items", 1) == "bir öğe"
    assert reader.translate_plural("one item", "%d items", 5) == "%d öğe"
    assert reader.translate_plural("one item", "%d items", 0) == "%d öğe"


def test_plural_miss_falls_back(reader):
    """Test 14: Unknown plural entries use singular for 1, plural otherwise."""
    assert reader.translate_plural("cat", "cats", 1) == "cat"
    assert reader.translate_plural("cat", "cats", 2) == "cats"
    assert reader.translate_plural("cat", "cats", 0) == "cats"


@pytest.mark.parametrize("enable_cache", [True, False])
def test_plural_index_clamped_to_stored_forms(make_mo, enable_cache):
    """Test 15: A selected index past the stored forms returns the last form."""
    header = HEADER.replace(
        "nplurals=2; plural=n != 1;",
        "nplurals=3; plural=n==1 ? 0 : n<5 ? 1 : 2;",
    )
    data = make_mo({"": header, "day\0days": "gün\0günler"})
    reader = CatalogReader(BufferSource(data), enable_cache=enable_cache)
    assert reader.select_plural(7) == 2
    assert reader.translate_plural("day", "days", 7) == "günler"
    assert reader.translate_plural("day", "days", 3) == "günler"
    assert reader.translate_plural("day", "days", 1) == "gün"


@pytest.mark.parametrize("enable_cache", [True, False])
def test_three_form_catalog(make_mo, enable_cache):
    """Test 16: A Slavic-style catalog selects among three forms."""
    header = HEADER.replace(
        "nplurals=2; plural=n != 1;",
        "nplurals=3; plural=(n==1)?0:((n>=2&&n<=4)?1:2);",
    )
    data = make_mo({"": header, "file\0files": "soubor\0soubory\0souborů"})
    reader = CatalogReader(BufferSource(data), enable_cache=enable_cache)
    assert reader.translate_plural("file", "files", 1) == "soubor"
    assert reader.translate_plural("file", "files", 3) == "soubory"
    assert reader.translate_plural("file", "files", 5) == "souborů"


def test_missing_plural_forms_defaults_to_english(make_mo):
    """Test 17: Metadata without Plural-Forms gets the two-form English rule."""
    data = make_mo({"": "Content-Type: text/plain; charset=UTF-8\n", "a\0b": "A\0B"})
    reader = CatalogReader(BufferSource(data))
    assert reader.get_plural_forms() == "nplurals=2;plural=n==1 ? (0) : (1);;"
    assert reader.get_plural_rule().nplurals == 2
    assert [reader.select_plural(n) for n in (0, 1, 2)] == [1, 0, 1]


# -- context ------------------------------------------------------------------

def test_context_lookup(reader):
    """Test 18: Context-scoped entries resolve only within their context."""
    assert reader.translate_context("menu", "Open") == "Menüyü aç"
    assert reader.translate_context("toolbar", "Open") == "Open"
    assert reader.translate_context("menu", "Close") == "Close"


def test_context_plural_lookup(reader):
    """Test 19: Context prefix applies to the singular of a plural key."""
    assert reader.translate_context_plural("menu", "%d file", "%d files", 1) == "%d dosya"
    assert reader.translate_context_plural("menu", "%d file", "%d files", 4) == "%d dosyalar"


def test_context_plural_miss(reader):
    """Test 20: Context plural misses fall back to the plain source strings."""
    assert reader.translate_context_plural("toolbar", "%d file", "%d files", 1) == "%d file"
    assert reader.translate_context_plural("toolbar", "%d file", "%d files", 2) == "%d files"


@pytest.mark.parametrize("enable_cache", [True, False])
def test_translation_containing_separator_is_treated_as_miss(make_mo, enable_cache):
    """Test 21: A real translation holding byte 0x04 reads as unresolved."""
    data = make_mo({"": HEADER, "ctx\x04msg": "odd\x04value"})
    reader = CatalogReader(BufferSource(data), enable_cache=enable_cache)
    assert reader.translate("ctx\x04msg") == "odd\x04value"
    assert reader.translate_context("ctx", "msg") == "msg"


def test_gettext_aliases(reader):
    """Test 22: gettext-style names map onto the lookup methods."""
    assert reader.gettext("Save") == "Kaydet"
    assert reader.ngettext("one item", "%d items", 1) == "bir öğe"
    assert reader.pgettext("menu", "Open") == "Menüyü aç"
    assert reader.npgettext("menu", "%d file", "%d files", 2) == "%d dosyalar"


# -- pass-through -----------------------------------------------------------

def test_no_source_passes_through():
    """Test 23: A reader without a source returns input unchanged."""
    reader = CatalogReader(None)
    assert reader.passthrough
    assert isinstance(reader.error, SourceUnavailable)
    assert reader.translate("x") == "x"
    assert reader.translate_plural("x", "xs", 1) == "x"
    assert reader.translate_plural("x", "xs", 2) == "xs"
    assert reader.translate_context("c", "x") == "x"
    assert reader.translate_context_plural("c", "x", "xs", 1) == "x"
    assert reader.translate_context_plural("c", "x", "xs", 3) == "xs"


def test_bad_magic_passes_through():
    """Test 24: A source failing the magic check sets a FormatError."""
    reader = CatalogReader(BufferSource(b"\x00" * 64))
    assert reader.passthrough
    assert isinstance(reader.error, FormatError)
    assert reader.translate("x") == "x"
    assert reader.catalog is None


def test_source_error_state_passes_through(tmp_path):
    """Test 25: A source reporting an error is treated as missing."""
    source = FileSource(tmp_path / "missing.mo")
    reader = CatalogReader(source)
    assert reader.passthrough
    assert reader.error is source.error
    assert reader.translate("Hello") == "Hello"


@pytest.mark.parametrize("enable_cache", [True, False])
def test_truncated_tables_degrade(mo_bytes, enable_cache):
    """Test 26: A catalog cut inside its tables degrades instead of raising."""
    reader = CatalogReader(BufferSource(mo_bytes[:40]), enable_cache=enable_cache)
    assert not reader.passthrough
    assert reader.translate("Hello") == "Hello"
    assert reader.passthrough
    assert isinstance(reader.error, FormatError)
    assert reader.translate_plural("one item", "%d items", 2) == "%d items"


def test_truncated_strings_degrade_in_search_mode(mo_bytes):
    """Test 27: Demand reads past the end of data degrade to pass-through."""
    reader = CatalogReader(BufferSource(mo_bytes[:-40]), enable_cache=False)
    assert reader.translate("zebra") == "zebra"
    assert reader.passthrough


# -- loading --------------------------------------------------------------------

def test_construction_reads_only_header(mo_bytes):
    """Test 28: Constructing a reader touches nothing past the header."""
    source = RecordingSource(mo_bytes)
    reader = CatalogReader(source)
    assert source.furthest == HEADER_SIZE
    assert reader.catalog.state is TableState.UNLOADED
    assert reader.catalog.cache is None


def test_tables_load_once(mo_bytes):
    """Test 29: Tables load on first lookup and are never re-read."""
    source = RecordingSource(mo_bytes)
    reader = CatalogReader(source)
    reader.translate("Hello")
    assert reader.catalog.state is TableState.LOADED
    originals = reader.catalog.originals
    reads = source.reads

    reader.translate("Open")
    reader.load_tables()
    assert reader.catalog.originals is originals
    assert source.reads == reads


def test_concurrent_first_lookups(mo_bytes):
    """Test 30: Concurrent first lookups all see the loaded catalog."""
    source = RecordingSource(mo_bytes)
    reader = CatalogReader(source)
    results = []

    def worker():
        results.append(reader.translate("Hello"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == ["Merhaba"] * 8
    single = RecordingSource(mo_bytes)
    CatalogReader(single).load_tables()
    assert source.reads == single.reads


# -- robustness -------------------------------------------------------------------

@pytest.mark.parametrize("enable_cache", [True, False])
def test_corrupt_entry_count_on_disk_degrades(tmp_path, enable_cache):
    """Test 31: A huge entry count in a file on disk degrades to pass-through."""
    path = tmp_path / "corrupt.mo"
    path.write_bytes(struct.pack("<5I", 0x950412DE, 0, 0x7FFFFFFF, 20, 20))
    reader = CatalogReader(FileSource(path), enable_cache=enable_cache)
    assert not reader.passthrough
    assert reader.translate("x") == "x"
    assert reader.passthrough
    assert isinstance(reader.error, FormatError)
    reader.close()


def test_concurrent_search_lookups_on_file(tmp_path, make_mo):
    """Test 32: Threads sharing a search-mode FileSource reader get their own entries."""
    messages = {"": HEADER}
    messages.update({f"message {i}": f"mesaj {i}" for i in range(300)})
    path = tmp_path / "many.mo"
    path.write_bytes(make_mo(messages))
    reader = CatalogReader(FileSource(path), enable_cache=False)
    wrong = []

    def worker(offset):
        for j in range(600):
            i = (offset * 37 + j) % 300
            result = reader.translate(f"message {i}")
            if result != f"mesaj {i}":
                wrong.append((i, result))

    threads = [threading.Thread(target=worker, args=(k,)) for k in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    reader.close()
    assert wrong == []
    assert not reader.passthrough


def test_integral_quantities_only(reader):
    """Test 33: Plural quantities must be integral on hit and miss alike."""
    assert reader.translate_plural("one item", "%d items", 1.0) == "bir öğe"
    assert reader.translate_plural("one item", "%d items", 2.0) == "%d öğe"
    assert reader.select_plural(5.0) == 1
    with pytest.raises(TypeError):
        reader.translate_plural("one item", "%d items", 1.5)
    with pytest.raises(TypeError):
        reader.translate_plural("cat", "cats", 1.5)
    with pytest.raises(TypeError):
        reader.translate_context_plural("menu", "%d file", "%d files", "2")
    with pytest.raises(TypeError):
        CatalogReader(None).translate_plural("cat", "cats", 0.5)


@pytest.mark.parametrize("enable_cache", [True, False])
def test_unencodable_argument_is_a_miss(make_mo, enable_cache):
    """Test 34: Characters the catalog charset lacks never match a stored '?'."""
    header = "Content-Type: text/plain; charset=ASCII\nPlural-Forms: nplurals=2; plural=n != 1;\n"
    data = make_mo({
        "": header,
        "?": "question",
        "?\0?s": "one\0many",
        "m\x04?": "in menu",
    })
    reader = CatalogReader(BufferSource(data), enable_cache=enable_cache)
    assert reader.encoding == "ascii"
    assert reader.translate("?") == "question"
    assert reader.translate("ü") == "ü"
    assert reader.translate_plural("ü", "üs", 2) == "üs"
    assert reader.translate_plural("ü", "üs", 1) == "ü"
    assert reader.translate_context("m", "ü") == "ü"
    assert reader.translate_context_plural("m", "ü", "üs", 3) == "üs"
    assert not reader.passthrough


def test_closed_source_degrades(mo_file):
    """Test 35: Lookups after close() pass through instead of crashing."""
    reader = CatalogReader(FileSource(mo_file), enable_cache=False)
    assert reader.translate("Hello") == "Merhaba"
    reader.close()
    assert reader.translate("Open") == "Open"
    assert reader.passthrough
    assert isinstance(reader.error, SourceUnavailable)


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
