"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Tuple
import json

from dotenv import load_dotenv


@dataclass
class Config:
    """
    PinPad Configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (PINPAD_*)
    2. Config file (config.json)
    3. Default values
    """
    # Live session (TCP transport)
    session_host: str = '0.0.0.0'
    session_port: int = 8470
    peer_endpoint: Optional[Tuple[str, int]] = None
    connect_timeout: float = 10.0

    # Share store HTTP API
    api_host: str = '0.0.0.0'
    api_port: int = 8080

    # Storage
    data_dir: Path = field(default_factory=lambda: Path('./pinpad_data'))
    download_dir: Path = field(default_factory=lambda: Path('./pinpad_data/received'))

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Live session
        config.session_host = os.getenv('PINPAD_SESSION_HOST', config.session_host)
        config.session_port = int(os.getenv('PINPAD_SESSION_PORT', config.session_port))
        config.connect_timeout = float(
            os.getenv('PINPAD_CONNECT_TIMEOUT', config.connect_timeout)
        )

        peer = os.getenv('PINPAD_PEER', '')
        if peer:
            config.peer_endpoint = parse_endpoint(peer)

        # API
        config.api_host = os.getenv('PINPAD_API_HOST', config.api_host)
        config.api_port = int(os.getenv('PINPAD_API_PORT', config.api_port))

        # Storage
        data_dir = os.getenv('PINPAD_DATA_DIR')
        if data_dir:
            config.data_dir = Path(data_dir)
            config.download_dir = config.data_dir / 'received'

        download_dir = os.getenv('PINPAD_DOWNLOAD_DIR')
        if download_dir:
            config.download_dir = Path(download_dir)

        # Logging
        config.log_level = os.getenv('PINPAD_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        config.session_host = data.get('session_host', config.session_host)
        config.session_port = data.get('session_port', config.session_port)
        config.connect_timeout = data.get('connect_timeout', config.connect_timeout)
        if data.get('peer_endpoint'):
            config.peer_endpoint = parse_endpoint(data['peer_endpoint'])

        config.api_host = data.get('api_host', config.api_host)
        config.api_port = data.get('api_port', config.api_port)

        if 'data_dir' in data:
            config.data_dir = Path(data['data_dir'])
            config.download_dir = config.data_dir / 'received'
        if 'download_dir' in data:
            config.download_dir = Path(data['download_dir'])

        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'session_host': self.session_host,
            'session_port': self.session_port,
            'peer_endpoint': (
                f"{self.peer_endpoint[0]}:{self.peer_endpoint[1]}"
                if self.peer_endpoint else None
            ),
            'connect_timeout': self.connect_timeout,
            'api_host': self.api_host,
            'api_port': self.api_port,
            'data_dir': str(self.data_dir),
            'download_dir': str(self.download_dir),
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def parse_endpoint(value: str) -> Tuple[str, int]:
    """Parse ``host:port`` into a tuple. Raises ValueError on bad input."""
    host, _, port = value.strip().rpartition(':')
    if not host or not port:
        raise ValueError(f"Invalid endpoint (use host:port): {value}")
    return host, int(port)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    config = Config()

    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    env_config = Config.from_env()

    # Merge (every variable that is set wins, even when it equals the default)
    for key, env_name in ENV_VARIABLES.items():
        if os.getenv(env_name):
            setattr(config, key, getattr(env_config, key))
    if os.getenv('PINPAD_DATA_DIR') and not os.getenv('PINPAD_DOWNLOAD_DIR'):
        config.download_dir = env_config.download_dir

    return config


ENV_VARIABLES = {
    'session_host': 'PINPAD_SESSION_HOST',
    'session_port': 'PINPAD_SESSION_PORT',
    'peer_endpoint': 'PINPAD_PEER',
    'connect_timeout': 'PINPAD_CONNECT_TIMEOUT',
    'api_host': 'PINPAD_API_HOST',
    'api_port': 'PINPAD_API_PORT',
    'data_dir': 'PINPAD_DATA_DIR',
    'download_dir': 'PINPAD_DOWNLOAD_DIR',
    'log_level': 'PINPAD_LOG_LEVEL',
}


EXAMPLE_CONFIG = """
{
  "session_host": "0.0.0.0",
  "session_port": 8470,
  "peer_endpoint": "192.168.1.100:8470",
  "connect_timeout": 10.0,
  "api_host": "0.0.0.0",
  "api_port": 8080,
  "data_dir": "./pinpad_data",
  "download_dir": "./pinpad_data/received",
  "log_level": "INFO"
}
"""
