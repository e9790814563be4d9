"""OS-level network queries: Wi-Fi association and internet reachability."""

import logging
import subprocess
from typing import Iterable, List, Optional

import requests

from .errors import SupervisionError

logger = logging.getLogger(__name__)

CONNECTIVITY_URL = "https://www.google.com"
CONNECTIVITY_TIMEOUT = 5


def run_cmd(command: List[str]) -> str:
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise SupervisionError(f"{command[0]} unavailable: {exc}") from exc
    if result.returncode != 0:
        raise SupervisionError(
            f"{' '.join(command)} exited with {result.returncode}: {result.stderr.strip()}"
        )
    return result.stdout.strip()


def split_terse(line: str) -> List[str]:
    """Split one line of ``nmcli -t`` output, honouring ``\\:`` escapes."""
    fields: List[str] = []
    current = []
    chars = iter(line)
    for char in chars:
        if char == "\\":
            current.append(next(chars, ""))
        elif char == ":":
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def find_connected_ssid(target_ssids: Iterable[str]) -> Optional[str]:
    """Return the active SSID if it is one of ``target_ssids``."""
    targets = set(target_ssids)
    output = run_cmd(["nmcli", "-t", "-f", "active,ssid", "dev", "wifi"])
    for line in output.splitlines():
        fields = split_terse(line)
        if len(fields) >= 2 and fields[0] == "yes" and fields[1] in targets:
            return fields[1]
    return None


def get_wifi_device() -> Optional[str]:
    output = run_cmd(["nmcli", "-t", "-f", "DEVICE,TYPE", "device"])
    for line in output.splitlines():
        fields = split_terse(line)
        if len(fields) >= 2 and fields[1] == "wifi":
            return fields[0]
    return None


def get_wifi_mac_address() -> Optional[str]:
    device = get_wifi_device()
    if not device:
        return None
    output = run_cmd(["nmcli", "-g", "GENERAL.HWADDR", "device", "show", device])
    # -g output escapes the colons of the address
    address = output.replace("\\:", ":").strip()
    return address or None


def has_internet_connectivity(
    check_url: str = CONNECTIVITY_URL,
    timeout: float = CONNECTIVITY_TIMEOUT,
) -> bool:
    try:
        response = requests.head(check_url, allow_redirects=False, timeout=timeout)
    except requests.RequestException as exc:
        logger.debug("Connectivity check failed: %s", exc)
        return False
    # same rule as curl -f: redirects count as reachable
    return response.status_code < 400
