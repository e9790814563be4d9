"""
Captive portal handler contract
===============================
Every vendor handler implements ``CaptivePortal``. The registry and the
supervisor only talk to this interface.

To add a vendor:
    1. Create ``<vendor>.py`` with a ``CaptivePortal`` subclass
    2. Give it a ``from_settings(settings, http_settings)`` classmethod
    3. Add its type tag to ``PORTAL_TYPES`` in ``wimesh/portals/__init__.py``
"""

from abc import ABC, abstractmethod
from typing import FrozenSet

from .. import network
from ..models import PortalDescriptor


class CaptivePortal(ABC):
    def __init__(self, descriptor: PortalDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def ssids(self) -> FrozenSet[str]:
        return self.descriptor.ssids

    def matches_ssid(self, ssid: str) -> bool:
        return ssid in self.descriptor.ssids

    @abstractmethod
    def connect(self) -> None:
        """Run the full login flow; raise ``StepError`` on failure."""

    def is_authenticated(self) -> bool:
        return network.has_internet_connectivity()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, ssids={sorted(self.ssids)!r})"
