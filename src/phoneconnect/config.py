"""Configuration loader for the dial client.

Settings live in ``$XDG_CONFIG_HOME/phoneconnect/config.json`` (normally
``~/.config/phoneconnect/config.json``).  The file is created with
placeholder values by ``dial config init`` or on first use; a placeholder
``server_url`` makes the client discover the gateway on the LAN and write
the discovered URL back.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from .errors import ConfigError, ConfigNotFound, Unauthorized

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = "phoneconnect"
CONFIG_FILE_NAME = "config.json"

# Factory-default URL written by `config init`.  While the config still
# holds this value, the gateway is auto-discovered.
PLACEHOLDER_URL = "http://10.61.214.187:3000"
PLACEHOLDER_TOKEN = "change-me-secret"


@dataclass
class AppConfig:
    """Client configuration loaded from the user's config file."""

    # Gateway HTTP base URL, e.g. "http://10.0.0.5:3000"
    server_url: str = PLACEHOLDER_URL
    # Bearer token that matches GATEWAY_TOKENS on the server
    token: str = PLACEHOLDER_TOKEN
    # Bluetooth MAC of the phone/headset; when set, `dial call` opens HFP call audio
    bt_mac: str | None = None
    log_level: str = "warning"

    @staticmethod
    def path() -> Path:
        """Return the path to the config file."""
        base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
        return Path(base) / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    @property
    def is_placeholder(self) -> bool:
        """True when the URL is blank or still the unconfigured placeholder."""
        return not self.server_url.strip() or self.server_url == PLACEHOLDER_URL

    def validate(self) -> None:
        """Check that required fields are usable."""
        if not self.token.strip():
            raise Unauthorized()

    def save(self) -> None:
        """Write the config back to disk, creating parent directories."""
        path = self.path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(self), indent=2))
        logger.info("Config saved to %s", path)

    @classmethod
    def write_default(cls) -> Path:
        """Write a default config file and return its path."""
        config = cls()
        config.save()
        return config.path()

    @classmethod
    def load(cls) -> "AppConfig":
        """Load the config file.

        Raises ConfigNotFound if the file does not exist and ConfigError if
        it is not valid JSON.
        """
        path = cls.path()
        if not path.exists():
            raise ConfigNotFound(str(path))

        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Failed to parse config file {path}: expected an object")

        config = cls(
            server_url=data.get("server_url", PLACEHOLDER_URL),
            token=data.get("token", PLACEHOLDER_TOKEN),
            bt_mac=data.get("bt_mac") or None,
            log_level=data.get("log_level", "warning"),
        )
        logger.debug("Loaded config from %s", path)
        return config

    @classmethod
    def load_or_create(cls) -> "AppConfig":
        """Load the config, writing defaults first if none exists yet."""
        try:
            return cls.load()
        except ConfigNotFound:
            path = cls.write_default()
            logger.info("Created default config at %s", path)
            return cls.load()
