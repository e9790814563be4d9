"""Settings loaded from ``settings.json``; built-in defaults apply when absent."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigurationError
from .models import PortalDescriptor

logger = logging.getLogger(__name__)

CONFIG_SEARCH_PATHS = (
    Path("config") / "settings.json",
    Path("settings.json"),
    Path("/etc/wimesh/settings.json"),
    Path.home() / ".config" / "wimesh" / "settings.json",
)


@dataclass(frozen=True)
class GlobalSettings:
    check_interval: float = 5


@dataclass(frozen=True)
class HttpSettings:
    timeout: float = 10
    connect_timeout: float = 5
    max_retries: int = 3


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "info"
    log_file: str = ""


@dataclass(frozen=True)
class PortalSettings:
    name: str
    type: str
    ssids: Tuple[str, ...]
    mac_address: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_descriptor(self) -> PortalDescriptor:
        return PortalDescriptor(
            name=self.name,
            ssids=frozenset(self.ssids),
            mac_address=self.mac_address,
            extra=dict(self.extra),
        )


def default_portals() -> Tuple[PortalSettings, ...]:
    return (PortalSettings(name="KTX Khu B", type="awing", ssids=("1.Free Wi-MESH",)),)


@dataclass(frozen=True)
class Settings:
    global_: GlobalSettings = field(default_factory=GlobalSettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    portals: Tuple[PortalSettings, ...] = field(default_factory=default_portals)
    source: Optional[Path] = None

    def all_ssids(self) -> List[str]:
        return [ssid for portal in self.portals for ssid in portal.ssids]


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key, {})
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' must be an object")
    return value


def _number(section: dict, key: str, default: float, cast=float) -> Any:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be a number")
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{key}' must be a number, got {value!r}") from exc


def parse_portal(entry: Any, index: int) -> PortalSettings:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"portals[{index}] must be an object")
    missing = [key for key in ("name", "type", "ssids") if key not in entry]
    if missing:
        raise ConfigurationError(f"portals[{index}] missing {', '.join(missing)}")
    ssids = entry["ssids"]
    if isinstance(ssids, str) or not isinstance(ssids, list):
        raise ConfigurationError(f"portals[{index}].ssids must be a list")

    extra = {
        key: value
        for key, value in entry.items()
        if key not in ("name", "type", "ssids", "mac_address")
    }
    return PortalSettings(
        name=str(entry["name"]),
        type=str(entry["type"]),
        ssids=tuple(str(ssid) for ssid in ssids),
        mac_address=str(entry.get("mac_address") or ""),
        extra=extra,
    )


def parse_settings(raw: Any, source: Optional[Path] = None) -> Settings:
    if not isinstance(raw, dict):
        raise ConfigurationError("settings root must be an object")

    global_section = _section(raw, "global")
    http_section = _section(raw, "http")
    logging_section = _section(raw, "logging")

    portals_raw = raw.get("portals")
    if portals_raw is None:
        portals = default_portals()
    elif isinstance(portals_raw, list):
        portals = tuple(parse_portal(entry, idx) for idx, entry in enumerate(portals_raw))
    else:
        raise ConfigurationError("'portals' must be a list")

    return Settings(
        global_=GlobalSettings(
            check_interval=_number(global_section, "check_interval", 5),
        ),
        http=HttpSettings(
            timeout=_number(http_section, "timeout", 10),
            connect_timeout=_number(http_section, "connect_timeout", 5),
            max_retries=_number(http_section, "max_retries", 3, int),
        ),
        logging=LoggingSettings(
            level=str(logging_section.get("level", "info")),
            log_file=str(logging_section.get("log_file") or ""),
        ),
        portals=portals,
        source=source,
    )


def find_config_file(search_paths=CONFIG_SEARCH_PATHS) -> Optional[Path]:
    for path in search_paths:
        if path.is_file():
            return path
    return None


def load_settings(config_path: Optional[Path] = None, search_paths=CONFIG_SEARCH_PATHS) -> Settings:
    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
    else:
        path = find_config_file(search_paths)
        if path is None:
            logger.debug("No config file found, using defaults")
            return Settings()

    logger.debug("Loading config from: %s", path)
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as exc:
        raise ConfigurationError(f"Failed to read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Failed to parse config file {path}: {exc}") from exc
    return parse_settings(raw, source=path)
