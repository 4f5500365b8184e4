"""Configuration management for medialink."""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List
import toml
from loguru import logger

CONFIG_DIR = Path.home() / ".medialink"
CONFIG_FILE = CONFIG_DIR / "config.toml"


@dataclass
class UploadSettings:
    """Upload transport and accepted file types."""
    endpoint: str = ""
    token: str = ""
    accepted_types: List[str] = field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/gif"])
    part_size: int = 10 * 1024 * 1024  # 10MB
    timeout: int = 300


@dataclass
class UrlPolicySettings:
    """Protocol and domain policy for link destinations."""
    default_protocol: str = "https"
    allowed_protocols: List[str] = field(default_factory=lambda: ["http", "https"])
    disallowed_protocols: List[str] = field(default_factory=lambda: ["ftp", "file", "mailto"])
    disallowed_domains: List[str] = field(
        default_factory=lambda: ["example-phishing.com", "malicious-site.net"])
    no_autolink_domains: List[str] = field(
        default_factory=lambda: ["example-no-autolink.com", "another-no-autolink.com"])


@dataclass
class SchemaSettings:
    """Media node schema options."""
    inline: bool = True
    allow_base64: bool = False
    html_attributes: Dict[str, str] = field(default_factory=dict)


class Config:
    """Manage user configuration in ~/.medialink/config.toml."""

    def __init__(self, config_dir: Path = CONFIG_DIR):
        self.config_dir = config_dir
        self.config_file = config_dir / "config.toml"
        self._ensure_config_dir()

    def _ensure_config_dir(self):
        """Ensure config directory exists."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Config directory: {}", self.config_dir)

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_file.exists()

    def load(self) -> dict:
        """Load configuration from file."""
        if not self.exists():
            logger.debug("Config file does not exist, returning empty config")
            return {}

        try:
            config_data = toml.load(self.config_file)
            logger.debug("Loaded config from {}", self.config_file)
            return config_data
        except Exception as e:
            logger.error("Failed to load config: {}", e)
            return {}

    def save(self, config_data: dict):
        """Save configuration to file."""
        try:
            with open(self.config_file, 'w') as f:
                toml.dump(config_data, f)
            logger.debug("Saved config to {}", self.config_file)
        except Exception as e:
            logger.error("Failed to save config: {}", e)
            raise

    def get_upload_settings(self) -> UploadSettings:
        """Get upload settings, falling back to defaults for missing keys."""
        return _build(UploadSettings, self.load().get('upload', {}))

    def get_url_policy_settings(self) -> UrlPolicySettings:
        """Get link policy settings."""
        return _build(UrlPolicySettings, self.load().get('links', {}))

    def get_schema_settings(self) -> SchemaSettings:
        """Get media node schema settings."""
        return _build(SchemaSettings, self.load().get('schema', {}))

    def save_upload_settings(self, settings: UploadSettings):
        """Save upload settings."""
        data = self.load()
        data['upload'] = asdict(settings)
        self.save(data)
        logger.info("Upload settings saved")

    def save_url_policy_settings(self, settings: UrlPolicySettings):
        """Save link policy settings."""
        data = self.load()
        data['links'] = asdict(settings)
        self.save(data)
        logger.info("Link policy saved")


def _build(settings_cls, section: dict):
    """Instantiate a settings dataclass, ignoring unknown keys."""
    known = {f for f in settings_cls.__dataclass_fields__}
    unknown = set(section) - known
    if unknown:
        logger.warning("Ignoring unknown {} keys: {}", settings_cls.__name__, sorted(unknown))
    return settings_cls(**{k: v for k, v in section.items() if k in known})
