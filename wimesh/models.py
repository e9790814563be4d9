from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet


@dataclass(frozen=True)
class GatewayParameters:
    mac: str
    ip: str
    chap_id: str
    chap_challenge: str
    login_only_url: str


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class PortalDescriptor:
    name: str
    ssids: FrozenSet[str]
    mac_address: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


def mask_value(value: str, keep: int = 2) -> str:
    if not value:
        return ""
    if len(value) <= keep * 2:
        return "*" * len(value)
    return f"{value[:keep]}***{value[-keep:]}"
