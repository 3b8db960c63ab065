# relay/settings.py
# Environment-driven knobs plus the JSON document behind /config and /services.
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from relay.errors import ConfigInvalid, ConfigMissing

logger = logging.getLogger(__name__)


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


# --- CONFIGURATION ---
# The sample document ships inside the package; point SETTINGS_FILE at your own.
DEFAULT_SETTINGS_FILE = Path(__file__).resolve().parent / "defaults" / "settings.json"
PORT = int(os.environ.get("PORT", 5000))
SETTINGS_FILE = os.environ.get("SETTINGS_FILE", str(DEFAULT_SETTINGS_FILE))
UPSTREAM_TIMEOUT = float(os.environ.get("UPSTREAM_TIMEOUT", 30))
MAX_REDIRECTS = int(os.environ.get("MAX_REDIRECTS", 5))
DEFAULT_USER_AGENT = os.environ.get("DEFAULT_USER_AGENT", "Mozilla/5.0")
IMPERSONATE = os.environ.get("IMPERSONATE", "chrome124")
VERIFY_TLS = _env_flag("UPSTREAM_VERIFY_TLS", True)
INTERCEPT_MEDIA = _env_flag("INTERCEPT_MEDIA", True)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class ServiceConfig:
    """Branding and service list shown by the player UI."""

    app_name: str = "IPTV Player"
    logo_url: str = ""
    primary_color: str = "#1a73e8"
    accent_color: str = "#00bcd4"
    features: list = field(default_factory=list)
    version: str = "1.0.0"
    services: list = field(default_factory=list)
    allow_custom_service: bool = True

    @classmethod
    def from_mapping(cls, data):
        # Keys that are absent or null fall back to the field default.
        known = {name: value for name, value in data.items()
                 if name in cls.__dataclass_fields__ and value is not None}
        return cls(**known)

    def config_payload(self):
        return {
            "app_name": self.app_name,
            "logo_url": self.logo_url,
            "primary_color": self.primary_color,
            "accent_color": self.accent_color,
            "features": self.features,
            "version": self.version,
        }

    def services_payload(self):
        return {
            "services": self.services,
            "allow_custom": self.allow_custom_service,
        }


def load_service_config(path=None) -> ServiceConfig:
    path = Path(path or SETTINGS_FILE)
    if not path.is_file():
        logger.error("Configuration file not found: %s", path)
        raise ConfigMissing("Configuration file not found")

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (ValueError, UnicodeDecodeError) as e:
        logger.error("Could not parse %s: %s", path, e)
        raise ConfigInvalid("Invalid configuration file") from e

    if not isinstance(data, dict):
        logger.error("Configuration in %s is not a JSON object", path)
        raise ConfigInvalid("Invalid configuration file")

    return ServiceConfig.from_mapping(data)
