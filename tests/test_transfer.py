import pytest

from pinpad.errors import NoPeer
from pinpad.session.messages import file_chunk, file_meta
from pinpad.transfer import CHUNK_SIZE, CompletedFile, FileChunker

from .helpers import until


class TestFileChunker:
    def test_chunk_count(self):
        chunker = FileChunker()
        assert chunker.get_chunk_count(0) == 0
        assert chunker.get_chunk_count(1) == 1
        assert chunker.get_chunk_count(CHUNK_SIZE) == 1
        assert chunker.get_chunk_count(CHUNK_SIZE + 1) == 2
        assert chunker.get_chunk_count(40000) == 3

    def test_last_chunk_carries_remainder(self):
        chunker = FileChunker()
        assert chunker.get_chunk_bounds(2, 40000) == (32768, 7232)

    def test_chunk_bytes(self):
        data = bytes(40000)
        chunks = list(FileChunker().chunk_bytes(data))
        assert [len(c) for c in chunks] == [16384, 16384, 7232]
        assert b''.join(chunks) == data

    async def test_chunk_file_stops_at_declared_size(self, tmp_path):
        path = tmp_path / "grows.bin"
        path.write_bytes(b"a" * 100)

        chunks = [c async for c in FileChunker(chunk_size=32).chunk_file(path, 70)]

        assert [len(c) for c in chunks] == [32, 32, 6]


class TestFileTransfer:
    async def test_file_arrives_with_progress(self, connected_pair):
        host, guest = connected_pair
        data = bytes(i % 251 for i in range(40000))
        progress = []
        received = []
        guest.files.on_progress(lambda percent, transfer: progress.append(percent))
        guest.files.on_file_received(received.append)

        sent = await host.files.send_bytes("data.bin", data)

        await until(lambda: received)
        assert progress == pytest.approx([40.96, 81.92, 100.0])
        assert sent.chunks_sent == 3
        assert sent.bytes_sent == 40000

        [completed] = guest.received_files
        assert completed is received[0]
        assert completed.name == "data.bin"
        assert completed.size == 40000
        assert completed.content == data
        assert completed.mime_type == "application/octet-stream"
        assert guest.file_progress == 0.0
        assert guest.files.incoming is None

    async def test_send_file_from_disk(self, connected_pair, tmp_path):
        host, guest = connected_pair
        path = tmp_path / "notes.txt"
        path.write_bytes(b"n" * 20000)
        sends = []
        host.files.on_send_progress(lambda outgoing: sends.append(outgoing.bytes_sent))

        outgoing = await host.send_file(path)

        await until(lambda: guest.received_files)
        assert outgoing.chunks_sent == 2
        assert sends == [16384, 20000]
        assert guest.received_files[0].mime_type == "text/plain"
        assert guest.received_files[0].content == b"n" * 20000

    async def test_send_missing_file(self, connected_pair, tmp_path):
        host, _ = connected_pair
        with pytest.raises(FileNotFoundError):
            await host.send_file(tmp_path / "missing.txt")

    async def test_send_without_peer_raises_no_peer(self, make_pad, tmp_path):
        pad = make_pad()
        path = tmp_path / "a.txt"
        path.write_bytes(b"a")

        with pytest.raises(NoPeer):
            await pad.send_file(path)
        with pytest.raises(NoPeer):
            await pad.files.send_bytes("a.txt", b"a")

    async def test_empty_file_completes_immediately(self, connected_pair):
        host, guest = connected_pair

        await host.files.send_bytes("empty.txt", b"")

        await until(lambda: guest.received_files)
        completed = guest.received_files[0]
        assert completed.size == 0
        assert completed.content == b""
        assert guest.files.incoming is None

    async def test_stray_chunk_after_completion_is_ignored(self, connected_pair):
        host, guest = connected_pair
        await host.files.send_bytes("a.txt", b"hello")
        await until(lambda: guest.received_files)

        await host.session.send(file_chunk(b"stray"))

        await until(lambda: guest.files.chunks_discarded == 1)
        assert len(guest.received_files) == 1

    async def test_new_meta_supersedes_pending_transfer(self, connected_pair):
        host, guest = connected_pair
        await host.session.send(file_meta("first.txt", 100, "text/plain"))
        await host.session.send(file_chunk(b"x" * 10))

        await host.files.send_bytes("second.txt", b"hello")

        await until(lambda: guest.received_files)
        assert [f.name for f in guest.received_files] == ["second.txt"]
        assert guest.received_files[0].content == b"hello"

    async def test_overshoot_is_truncated_to_declared_size(self, connected_pair):
        host, guest = connected_pair

        await host.session.send(file_meta("short.txt", 5, "text/plain"))
        await host.session.send(file_chunk(b"hello world"))

        await until(lambda: guest.received_files)
        assert guest.received_files[0].content == b"hello"
        assert guest.received_files[0].size == 5

    async def test_disconnect_discards_partial_transfer(self, connected_pair):
        host, guest = connected_pair
        await host.session.send(file_meta("big.bin", 100, "application/octet-stream"))
        await host.session.send(file_chunk(b"x" * 10))
        await until(lambda: guest.files.incoming is not None and guest.files.incoming.received_size == 10)
        assert guest.file_progress == pytest.approx(10.0)

        await host.leave()

        await until(lambda: guest.files.incoming is None)
        assert guest.received_files == []
        assert guest.file_progress == 0.0

    async def test_malformed_meta_is_ignored(self, connected_pair):
        host, guest = connected_pair

        await host.session.send(file_meta("bad.txt", -1, "text/plain"))
        await host.files.send_bytes("good.txt", b"ok")

        await until(lambda: guest.received_files)
        assert [f.name for f in guest.received_files] == ["good.txt"]


class TestCompletedFile:
    async def test_save_never_overwrites(self, tmp_path):
        completed = CompletedFile(name="a.txt", size=2, content=b"hi")

        first = await completed.save(tmp_path)
        second = await completed.save(tmp_path)

        assert first == tmp_path / "a.txt"
        assert second == tmp_path / "a (1).txt"
        assert second.read_bytes() == b"hi"

    async def test_save_uses_base_name_only(self, tmp_path):
        completed = CompletedFile(name="../../evil.txt", size=1, content=b"x")

        path = await completed.save(tmp_path / "downloads")

        assert path == tmp_path / "downloads" / "evil.txt"
