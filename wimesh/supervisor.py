"""
Daemon loop
===========
Each tick checks which configured SSID (if any) the machine is associated
with, checks internet access and, when blocked, runs the matching portal's
login flow. Consecutive login failures are counted; after
``MAX_CONSECUTIVE_FAILURES`` the loop backs off for ``BACKOFF_DELAY``.

All loop state lives on a ``SupervisorState`` owned by the ``Supervisor``.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from . import network
from .errors import PortalLoginError, SupervisionError
from .registry import PortalRegistry

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_FAILURES = 3
SETTLE_DELAY = 10
BACKOFF_DELAY = 60


class SupervisorMode(Enum):
    MONITORING = "monitoring"
    AUTHENTICATING = "authenticating"
    BACKOFF = "backoff"


@dataclass
class SupervisorState:
    consecutive_failures: int = 0
    last_check: Optional[float] = None
    mode: SupervisorMode = SupervisorMode.MONITORING


class Supervisor:
    def __init__(
        self,
        registry: PortalRegistry,
        check_interval: float = 5,
        find_connected_ssid: Callable[[Iterable[str]], Optional[str]] = network.find_connected_ssid,
        has_connectivity: Callable[[], bool] = network.has_internet_connectivity,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        state: Optional[SupervisorState] = None,
    ) -> None:
        self.registry = registry
        self.check_interval = check_interval
        self._find_connected_ssid = find_connected_ssid
        self._has_connectivity = has_connectivity
        self._sleep = sleep
        self._clock = clock
        self.state = state if state is not None else SupervisorState()
        self.target_ssids = sorted(registry.all_ssids())

    def run_forever(self) -> None:
        logger.info("Starting daemon mode...")
        logger.info("Monitoring SSIDs: %s", ", ".join(self.target_ssids))
        logger.info("Check interval: %ss", self.check_interval)
        while True:
            self.wait_for_next_tick()
            self.tick()

    def wait_for_next_tick(self) -> None:
        if self.state.last_check is not None:
            elapsed = self._clock() - self.state.last_check
            if elapsed < self.check_interval:
                self._sleep(self.check_interval - elapsed)
        self.state.last_check = self._clock()

    def tick(self) -> SupervisorMode:
        state = self.state
        try:
            ssid = self._find_connected_ssid(self.target_ssids)
        except SupervisionError as exc:
            logger.warning("Failed to check WiFi status: %s", exc)
            return state.mode

        if ssid is None:
            logger.debug("Not connected to any configured WiFi")
            state.consecutive_failures = 0
            return state.mode

        if self._has_connectivity():
            if state.consecutive_failures > 0:
                logger.debug("Internet restored on '%s'", ssid)
                state.consecutive_failures = 0
            return state.mode

        logger.warning("No internet on '%s', attempting login...", ssid)
        portal = self.registry.find_for_ssid(ssid)
        if portal is None:
            logger.warning("No portal configured for SSID: %s", ssid)
            return state.mode

        state.mode = SupervisorMode.AUTHENTICATING
        try:
            portal.connect()
        except PortalLoginError as exc:
            state.consecutive_failures += 1
            logger.error(
                "Login failed via '%s' (attempt %d/%d): %s",
                portal.name,
                state.consecutive_failures,
                MAX_CONSECUTIVE_FAILURES,
                exc,
            )
            if state.consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                state.mode = SupervisorMode.BACKOFF
                logger.error("Too many failures, backing off for %ss...", BACKOFF_DELAY)
                self._sleep(BACKOFF_DELAY)
                state.consecutive_failures = 0
        else:
            logger.info("Login successful via '%s'", portal.name)
            state.consecutive_failures = 0
            self._sleep(SETTLE_DELAY)

        state.mode = SupervisorMode.MONITORING
        return state.mode
