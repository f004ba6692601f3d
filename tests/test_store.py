import asyncio
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import pytest

from pinpad.errors import Expired, NotFound, StoreUnavailable
from pinpad.store import (
    FILE_TTL, SNIPPET_TTL, STORE_CODE_ALPHABET, ItemKind, create_store, normalize_store_code,
)
from pinpad.store.client import MAX_CODE_ATTEMPTS


class TestStoreCodes:
    def test_alphabet_skips_ambiguous_characters(self):
        for ch in "01IO":
            assert ch not in STORE_CODE_ALPHABET

    def test_normalize(self):
        assert normalize_store_code("  ab3xyz ") == "AB3XYZ"


class TestSnippets:
    async def test_save_and_load(self, store):
        item = await store.save_snippet("print(1)", "python")

        assert len(item.code) == 6
        assert all(ch in STORE_CODE_ALPHABET for ch in item.code)
        assert item.expires_at - item.created_at == SNIPPET_TTL.total_seconds()

        loaded = await store.load(item.code)
        assert loaded.kind == ItemKind.SNIPPET
        assert loaded.content == "print(1)"
        assert loaded.language == "python"

    async def test_language_defaults_to_plaintext(self, store):
        item = await store.save_snippet("notes")
        assert (await store.load(item.code)).language == "plaintext"

    async def test_lookup_is_case_insensitive(self, store):
        item = await store.save_snippet("x = 1")

        loaded = await store.load(f" {item.code.lower()} ")

        assert loaded.code == item.code

    async def test_unknown_code(self, store):
        with pytest.raises(NotFound) as exc_info:
            await store.load("ZZZZZZ")
        assert exc_info.value.message == "Code not found."

    async def test_expires_after_72_hours(self, store, clock):
        item = await store.save_snippet("print(1)")

        clock.advance(SNIPPET_TTL.total_seconds())
        assert (await store.load(item.code)).content == "print(1)"

        clock.advance(1)
        with pytest.raises(Expired) as exc_info:
            await store.load(item.code)
        assert exc_info.value.message == "This code has expired."


class TestFiles:
    async def test_save_and_fetch(self, store):
        item = await store.save_file("notes.txt", b"abc", "text/plain")

        assert item.expires_at - item.created_at == FILE_TTL.total_seconds()
        assert item.url.startswith("file://")

        loaded = await store.load(item.code)
        assert loaded.kind == ItemKind.FILE
        assert loaded.name == "notes.txt"
        assert loaded.size == 3
        assert loaded.mime_type == "text/plain"
        assert await store.fetch_file(loaded) == b"abc"

    async def test_expires_after_24_hours(self, store, clock):
        item = await store.save_file("a.bin", b"\x00")

        clock.advance(FILE_TTL.total_seconds() + 1)

        with pytest.raises(Expired):
            await store.load(item.code)

    async def test_fetch_snippet_as_file(self, store):
        item = await store.save_snippet("text")
        with pytest.raises(NotFound):
            await store.fetch_file(item)

    async def test_missing_payload(self, store):
        item = await store.save_file("a.bin", b"data")
        Path(url2pathname(urlparse(item.url).path)).unlink()

        with pytest.raises(NotFound):
            await store.fetch_file(item)


class TestCodeAllocation:
    async def test_collision_is_retried(self, store, monkeypatch):
        codes = iter(["AAAAAA", "AAAAAA", "BBBBBB"])
        monkeypatch.setattr("pinpad.store.client.generate_store_code", lambda: next(codes))

        first = await store.save_snippet("one")
        second = await store.save_snippet("two")

        assert first.code == "AAAAAA"
        assert second.code == "BBBBBB"
        assert (await store.load("AAAAAA")).content == "one"

    async def test_gives_up_when_every_code_is_taken(self, store, monkeypatch):
        calls = []

        def always_same():
            calls.append(1)
            return "AAAAAA"

        monkeypatch.setattr("pinpad.store.client.generate_store_code", always_same)
        await store.save_snippet("one")
        calls.clear()

        with pytest.raises(StoreUnavailable):
            await store.save_snippet("two")
        assert len(calls) == MAX_CODE_ATTEMPTS


class TestUnavailable:
    async def test_unopened_store(self, tmp_path):
        client = create_store(tmp_path)

        with pytest.raises(StoreUnavailable):
            await client.save_snippet("print(1)")
        with pytest.raises(StoreUnavailable):
            await client.load("ABCDEF")

    async def test_closed_store(self, store):
        item = await store.save_snippet("print(1)")
        await store.close()

        with pytest.raises(StoreUnavailable) as exc_info:
            await store.load(item.code)
        assert exc_info.value.message


class TestPurge:
    async def test_purge_removes_only_expired(self, store, clock):
        snippet = await store.save_snippet("keep me longer")
        upload = await store.save_file("short.bin", b"123")

        clock.advance(FILE_TTL.total_seconds() + 1)
        assert await store.purge_expired() == 1
        assert await store.database.count_items() == 1
        with pytest.raises(NotFound):
            await store.load(upload.code)
        assert not Path(url2pathname(urlparse(upload.url).path)).exists()

        clock.advance(SNIPPET_TTL.total_seconds())
        assert await store.purge_expired() == 1
        with pytest.raises(NotFound):
            await store.load(snippet.code)

    async def test_purge_with_nothing_expired(self, store):
        await store.save_snippet("fresh")
        assert await store.purge_expired() == 0


class TestConcurrentSaves:
    async def test_colliding_file_saves_both_succeed(self, store, monkeypatch):
        codes = iter(["AAAAAA", "AAAAAA", "BBBBBB", "CCCCCC", "DDDDDD"])
        monkeypatch.setattr("pinpad.store.client.generate_store_code", lambda: next(codes))
        big, small = b"A" * 50000, b"B" * 10

        first, second = await asyncio.gather(
            store.save_file("a.bin", big),
            store.save_file("b.bin", small),
        )

        assert {first.code, second.code} == {"AAAAAA", "BBBBBB"}
        assert await store.fetch_file(await store.load(first.code)) == big
        assert await store.fetch_file(await store.load(second.code)) == small

    async def test_failed_upload_releases_code(self, store, monkeypatch):
        async def broken_put(code, data):
            raise OSError("disk full")

        monkeypatch.setattr(store.blobs, "put", broken_put)

        with pytest.raises(StoreUnavailable):
            await store.save_file("a.bin", b"data")
        assert await store.database.count_items() == 0
