import logging
from typing import Dict, Optional, Type

from ..settings import HttpSettings, PortalSettings
from .awing import AwingPortal
from .base import CaptivePortal

logger = logging.getLogger(__name__)

PORTAL_TYPES: Dict[str, Type[CaptivePortal]] = {
    "awing": AwingPortal,
}


def create_portal(settings: PortalSettings, http: HttpSettings) -> Optional[CaptivePortal]:
    portal_cls = PORTAL_TYPES.get(settings.type.lower())
    if portal_cls is None:
        logger.warning("Unknown portal type '%s', skipping: %s", settings.type, settings.name)
        return None
    return portal_cls.from_settings(settings, http)


__all__ = ["AwingPortal", "CaptivePortal", "PORTAL_TYPES", "create_portal"]
