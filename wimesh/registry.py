import logging
from typing import Callable, Iterator, List, Optional, Set

from .portals import CaptivePortal, create_portal
from .settings import HttpSettings, PortalSettings, Settings

logger = logging.getLogger(__name__)


class PortalRegistry:
    """Ordered SSID -> portal lookup; the first registered match wins."""

    def __init__(self) -> None:
        self._portals: List[CaptivePortal] = []

    def register(self, portal: CaptivePortal) -> None:
        logger.debug(
            "Registered portal: %s (SSIDs: %s)", portal.name, ", ".join(sorted(portal.ssids))
        )
        self._portals.append(portal)

    def find_for_ssid(self, ssid: str) -> Optional[CaptivePortal]:
        for portal in self._portals:
            if portal.matches_ssid(ssid):
                return portal
        return None

    def all_ssids(self) -> Set[str]:
        return {ssid for portal in self._portals for ssid in portal.ssids}

    def has_ssid(self, ssid: str) -> bool:
        return self.find_for_ssid(ssid) is not None

    def __iter__(self) -> Iterator[CaptivePortal]:
        return iter(self._portals)

    def __len__(self) -> int:
        return len(self._portals)


def build_registry(
    settings: Settings,
    factory: Callable[[PortalSettings, HttpSettings], Optional[CaptivePortal]] = create_portal,
) -> PortalRegistry:
    registry = PortalRegistry()
    for portal_settings in settings.portals:
        portal = factory(portal_settings, settings.http)
        if portal is not None:
            registry.register(portal)

    if not registry.all_ssids():
        logger.warning("No portals configured! Add portal entries to settings.json")
    return registry
