import argparse
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from . import __version__, network
from .errors import ConfigurationError, PortalLoginError, SupervisionError
from .logging_config import setup_logging
from .registry import PortalRegistry, build_registry
from .settings import load_settings
from .supervisor import Supervisor

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STATUS_ERROR = 2
EXIT_NO_PORTAL = 3
EXIT_LOGIN_FAILED = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wimesh-login",
        description="Captive portal auto login client",
    )
    parser.add_argument(
        "-d", "--daemon", action="store_true", help="Run in daemon mode (continuous monitoring)"
    )
    parser.add_argument("-c", "--config", type=Path, help="Config file path (settings.json)")
    parser.add_argument("--log-level", help="Override logging.level from the config file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run_once(
    registry: PortalRegistry,
    find_connected_ssid: Callable[[Iterable[str]], Optional[str]] = network.find_connected_ssid,
    has_connectivity: Callable[[], bool] = network.has_internet_connectivity,
) -> int:
    target_ssids = sorted(registry.all_ssids())
    try:
        ssid = find_connected_ssid(target_ssids)
    except SupervisionError as exc:
        logger.error("Failed to check WiFi status: %s", exc)
        return EXIT_STATUS_ERROR

    if ssid is None:
        logger.warning("Not connected to any configured WiFi network")
        logger.info("Configured SSIDs: %s", ", ".join(target_ssids))
        return EXIT_OK

    logger.info("Connected to: %s", ssid)
    if has_connectivity():
        logger.info("Already online")
        return EXIT_OK

    portal = registry.find_for_ssid(ssid)
    if portal is None:
        logger.error("No portal configured for SSID: %s", ssid)
        return EXIT_NO_PORTAL

    logger.info("Using portal: %s", portal.name)
    try:
        portal.connect()
    except PortalLoginError as exc:
        logger.error("Connection failed: %s", exc)
        return EXIT_LOGIN_FAILED

    logger.info("Connection established!")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        setup_logging(args.log_level or "INFO")
        logger.error("%s", exc)
        return EXIT_STATUS_ERROR

    setup_logging(args.log_level or settings.logging.level, settings.logging.log_file)
    logger.info("Wimesh v%s - Captive Portal Auto Login", __version__)
    if settings.source:
        logger.info("Using config: %s", settings.source)

    registry = build_registry(settings)

    if not args.daemon:
        return run_once(registry)

    supervisor = Supervisor(registry, check_interval=settings.global_.check_interval)
    try:
        supervisor.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping daemon")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
