import json
from pathlib import Path

import pytest

from pinpad.config import Config, load_config, parse_endpoint


class TestParseEndpoint:
    def test_host_and_port(self):
        assert parse_endpoint("192.168.1.100:8470") == ("192.168.1.100", 8470)

    @pytest.mark.parametrize("value", ["localhost", ":8470", "host:", "host:port"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_endpoint(value)


class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.session_port == 8470
        assert config.peer_endpoint is None
        assert config.download_dir == Path('./pinpad_data/received')

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "session_port": 9000,
            "peer_endpoint": "10.0.0.2:9000",
            "data_dir": str(tmp_path / "data"),
        }))

        config = Config.from_file(path)

        assert config.session_port == 9000
        assert config.peer_endpoint == ("10.0.0.2", 9000)
        assert config.data_dir == tmp_path / "data"
        assert config.download_dir == tmp_path / "data" / "received"

    def test_missing_file_gives_defaults(self, tmp_path):
        assert Config.from_file(tmp_path / "nope.json") == Config()

    def test_save_and_reload(self, tmp_path):
        config = Config(session_port=9100, peer_endpoint=("peer.local", 9100))
        path = tmp_path / "config.json"

        config.save(path)

        assert Config.from_file(path).to_dict() == config.to_dict()

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"session_port": 9000, "api_port": 9001}))
        monkeypatch.setenv("PINPAD_SESSION_PORT", "9500")
        monkeypatch.setenv("PINPAD_PEER", "127.0.0.1:9500")

        config = load_config(path)

        assert config.session_port == 9500
        assert config.api_port == 9001
        assert config.peer_endpoint == ("127.0.0.1", 9500)

    def test_env_wins_even_when_it_matches_the_default(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"log_level": "DEBUG", "session_port": 9000}))
        monkeypatch.setenv("PINPAD_LOG_LEVEL", "INFO")
        monkeypatch.setenv("PINPAD_SESSION_PORT", "8470")

        config = load_config(path)

        assert config.log_level == "INFO"
        assert config.session_port == 8470

    def test_env_data_dir_moves_download_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PINPAD_DATA_DIR", str(tmp_path / "env"))
        monkeypatch.delenv("PINPAD_DOWNLOAD_DIR", raising=False)

        config = load_config()

        assert config.download_dir == tmp_path / "env" / "received"
