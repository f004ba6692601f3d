import asyncio
import json
import re

from click.testing import CliRunner

from pinpad.cli import cli, format_size, watch_document

from .helpers import until

CODE_RE = re.compile(r"Code \(share this\): ([A-Z2-9]{6})")


def _save(runner, data_dir, *args):
    result = runner.invoke(cli, ['--data-dir', str(data_dir), 'save', *args])
    assert result.exit_code == 0, result.output
    match = CODE_RE.search(result.output)
    assert match, result.output
    return match.group(1)


class TestStoreCommands:
    def test_save_and_load_snippet(self, tmp_path):
        runner = CliRunner()
        code = _save(runner, tmp_path, '--text', 'print(1)', '--language', 'python')

        result = runner.invoke(cli, ['--data-dir', str(tmp_path), 'load', code])

        assert result.exit_code == 0, result.output
        assert 'print(1)' in result.output

    def test_save_and_load_file(self, tmp_path):
        source = tmp_path / "hello.txt"
        source.write_bytes(b"hello")
        runner = CliRunner()
        code = _save(runner, tmp_path / "data", str(source))
        target = tmp_path / "out.txt"

        result = runner.invoke(
            cli, ['--data-dir', str(tmp_path / "data"), 'load', code, '-o', str(target)]
        )

        assert result.exit_code == 0, result.output
        assert target.read_bytes() == b"hello"

    def test_load_unknown_code(self, tmp_path):
        result = CliRunner().invoke(cli, ['--data-dir', str(tmp_path), 'load', 'ZZZZZZ'])
        assert "Code not found." in result.output

    def test_save_needs_input(self, tmp_path):
        result = CliRunner().invoke(cli, ['--data-dir', str(tmp_path), 'save'])
        assert "Give a FILE or --text" in result.output


class TestSessionCommands:
    def test_join_without_endpoint(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PINPAD_PEER", raising=False)
        result = CliRunner().invoke(cli, ['--data-dir', str(tmp_path), 'join', '123456'])
        assert "No host endpoint given" in result.output

    def test_join_with_invalid_pin(self, tmp_path):
        result = CliRunner().invoke(
            cli, ['--data-dir', str(tmp_path), 'join', '12ab', '--peer', '127.0.0.1:1']
        )
        assert "Invalid PIN" in result.output


def test_format_size():
    assert format_size(512) == "512.0 B"
    assert format_size(40000) == "39.1 KB"


class TestMaintenanceCommands:
    def test_purge(self, tmp_path):
        runner = CliRunner()
        _save(runner, tmp_path, '--text', 'fresh')

        result = runner.invoke(cli, ['--data-dir', str(tmp_path), 'purge'])

        assert result.exit_code == 0, result.output
        assert "Purged 0 expired item(s)" in result.output

    def test_config_write(self, tmp_path):
        target = tmp_path / "config.json"

        result = CliRunner().invoke(
            cli, ['--data-dir', str(tmp_path), 'config', '--write', str(target)]
        )

        assert result.exit_code == 0, result.output
        assert "Configuration" in result.output
        assert json.loads(target.read_text())["data_dir"] == str(tmp_path)

    def test_config_example(self, tmp_path):
        result = CliRunner().invoke(cli, ['--data-dir', str(tmp_path), 'config', '--example'])

        assert result.exit_code == 0, result.output
        assert '"session_port": 8470' in result.output
        assert '"peer_endpoint"' in result.output


class TestWatchDocument:
    async def test_file_and_document_stay_in_step(self, connected_pair, tmp_path):
        host, guest = connected_pair
        path = tmp_path / "pad.py"
        path.write_text("x = 1")
        watcher = asyncio.create_task(watch_document(host, path, interval=0.01))
        try:
            await until(lambda: guest.text == "x = 1")

            await guest.update_code("y = 2")
            await until(lambda: path.read_text() == "y = 2")

            await asyncio.sleep(0.05)
            path.write_text("z = 300")
            await until(lambda: guest.text == "z = 300")
            assert host.text == "z = 300"
        finally:
            watcher.cancel()

    async def test_missing_file_is_created_on_first_remote_edit(self, connected_pair, tmp_path):
        host, guest = connected_pair
        path = tmp_path / "later.py"
        watcher = asyncio.create_task(watch_document(host, path, interval=0.01))
        try:
            await asyncio.sleep(0.05)
            assert not path.exists()

            await guest.update_code("late = True")
            await until(lambda: path.exists() and path.read_text() == "late = True")
        finally:
            watcher.cancel()
