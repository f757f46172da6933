#!/usr/bin/env python3
"""
Shared fixtures: compile small catalogs in memory.

compile_mo() lays a catalog out the way msgfmt does without a hash table:
7-word header, originals table, translations table, then NUL-terminated
string data. Originals are sorted by their bytes.
"""

import struct

import pytest

from moread import BufferSource, CatalogReader


HEADER = (
    "Project-Id-Version: demo 1.0\n"
    "Language: tr\n"
    "Content-Type: text/plain; charset=UTF-8\n"
    "Plural-Forms: nplurals=2; plural=n != 1;\n"
)

MESSAGES = {
    "": HEADER,
    "Hello": "Merhaba",
    "Open": "Aç",
    "Save": "Kaydet",
    "apple": "elma",
    "zebra": "zebra (tr)",
    "one item\0%d items": "bir öğe\0%d öğe",
    "menu\x04Open": "Menüyü aç",
    "menu\x04%d file\0%d files": "%d dosya\0%d dosyalar",
}


def _b(value) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compile_mo(messages: dict, byteorder: str = "little", revision: int = 0) -> bytes:
    """Compile {original: translation} into catalog bytes."""
    pairs = sorted((_b(k), _b(v)) for k, v in messages.items())
    prefix = "<" if byteorder == "little" else ">"

    count = len(pairs)
    originals_offset = 28
    translations_offset = originals_offset + count * 8
    data_offset = translations_offset + count * 8

    pos = data_offset
    original_table = []
    for key, _ in pairs:
        original_table.append((len(key), pos))
        pos += len(key) + 1
    translation_table = []
    for _, value in pairs:
        translation_table.append((len(value), pos))
        pos += len(value) + 1

    out = [struct.pack(prefix + "7I", 0x950412de, revision, count,
                       originals_offset, translations_offset, 0, data_offset)]
    for length, offset in original_table + translation_table:
        out.append(struct.pack(prefix + "2I", length, offset))
    for key, _ in pairs:
        out.append(key + b"\0")
    for _, value in pairs:
        out.append(value + b"\0")
    return b"".join(out)


@pytest.fixture
def make_mo():
    """Factory fixture: make_mo(messages, byteorder="little") -> bytes."""
    return compile_mo


@pytest.fixture
def mo_bytes():
    """The standard demo catalog."""
    return compile_mo(MESSAGES)


@pytest.fixture
def mo_file(tmp_path, mo_bytes):
    """The standard demo catalog written to disk."""
    path = tmp_path / "messages.mo"
    path.write_bytes(mo_bytes)
    return path


@pytest.fixture(params=[True, False], ids=["cache", "search"])
def reader(request, mo_bytes):
    """Reader over the demo catalog, in both lookup modes."""
    return CatalogReader(BufferSource(mo_bytes), enable_cache=request.param)
