"""
Awing Connect captive portal (Wi-MESH networks)
===============================================
Login is a fixed chain of six steps, each consuming what the previous one
produced:

    SCAN_GATEWAY     GET the captive redirect page, scrape GatewayParameters
    HANDSHAKE        GET the vendor login URL; it becomes the Referer anchor
    VERIFY_DEVICE    POST {} to /Home/VerifyUrl, keep the JSON as context
    GET_CREDENTIALS  POST context to /Content/GetCustomer, scrape the form
    SEND_ANALYTICS   POST context to /Analytic/Send
    LOGIN_ROUTER     POST the credentials to the gateway login URL

Step outputs live on a per-call ``AuthAttempt``; only the HTTP session
(cookies) carries over between ``connect()`` calls.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import requests

from .. import network
from ..errors import PortalLoginError, ProtocolError, StepError, SupervisionError
from ..extractor import parse_credentials, parse_gateway_parameters
from ..http_client import HttpClient
from ..models import Credentials, GatewayParameters, PortalDescriptor, mask_value
from ..settings import HttpSettings, PortalSettings
from .base import CaptivePortal

logger = logging.getLogger(__name__)

GATEWAY_URL = "http://login.net.vn"
BASE_URL = "http://v1.awingconnect.vn"
FALLBACK_LOGIN_URL = "http://free.wi-mesh.vn/login"


class AuthStep(Enum):
    SCAN_GATEWAY = "Scan Gateway"
    HANDSHAKE = "Handshake"
    VERIFY_DEVICE = "Verify Device"
    GET_CREDENTIALS = "Get Credentials"
    SEND_ANALYTICS = "Send Analytics"
    LOGIN_ROUTER = "Login to Router"
    DONE = "Done"


@dataclass
class AuthAttempt:
    step: AuthStep = AuthStep.SCAN_GATEWAY
    gateway: Optional[GatewayParameters] = None
    handshake_url: Optional[str] = None
    context: Any = None
    credentials: Optional[Credentials] = None


def read_json(response: requests.Response, endpoint: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ProtocolError(f"{endpoint} did not return JSON") from exc


def find_auth_form(data: Any) -> str:
    if not isinstance(data, dict):
        raise ProtocolError("contentAuthenForm not found in response")
    captive_context = data.get("captiveContext")
    if isinstance(captive_context, dict):
        nested = captive_context.get("contentAuthenForm")
        if isinstance(nested, str) and nested:
            return nested
    top_level = data.get("contentAuthenForm")
    if isinstance(top_level, str) and top_level:
        return top_level
    raise ProtocolError("contentAuthenForm not found in response")


class AwingPortal(CaptivePortal):
    def __init__(
        self,
        descriptor: PortalDescriptor,
        client: Optional[HttpClient] = None,
        mac_resolver: Callable[[], Optional[str]] = network.get_wifi_mac_address,
    ) -> None:
        super().__init__(descriptor)
        self.client = client if client is not None else HttpClient()
        self._mac_resolver = mac_resolver
        extra = descriptor.extra
        self.gateway_url = str(extra.get("gateway_url") or GATEWAY_URL).rstrip("/")
        self.base_url = str(extra.get("base_url") or BASE_URL).rstrip("/")
        self.fallback_login_url = str(extra.get("fallback_login_url") or FALLBACK_LOGIN_URL)
        self.last_attempt: Optional[AuthAttempt] = None
        self._mac_address = descriptor.mac_address

    @classmethod
    def from_settings(cls, settings: PortalSettings, http: HttpSettings) -> "AwingPortal":
        client = HttpClient(
            timeout=http.timeout,
            connect_timeout=http.connect_timeout,
            max_retries=http.max_retries,
        )
        return cls(settings.to_descriptor(), client=client)

    @property
    def mac_address(self) -> str:
        if not self._mac_address:
            try:
                self._mac_address = self._mac_resolver() or ""
            except SupervisionError as exc:
                logger.warning("[%s] Could not detect Wi-Fi MAC address: %s", self.name, exc)
            if not self._mac_address:
                logger.warning("[%s] No MAC address configured or detected", self.name)
        return self._mac_address

    def connect(self) -> None:
        attempt = AuthAttempt()
        self.last_attempt = attempt
        transitions = {
            AuthStep.SCAN_GATEWAY: self._scan_gateway,
            AuthStep.HANDSHAKE: self._handshake,
            AuthStep.VERIFY_DEVICE: self._verify_device,
            AuthStep.GET_CREDENTIALS: self._get_credentials,
            AuthStep.SEND_ANALYTICS: self._send_analytics,
            AuthStep.LOGIN_ROUTER: self._login_router,
        }

        while attempt.step is not AuthStep.DONE:
            step = attempt.step
            try:
                attempt.step = transitions[step](attempt)
            except PortalLoginError as exc:
                raise StepError(self.name, step.value, exc) from exc

        logger.info("[%s] Connected successfully!", self.name)

    def api_headers(self, attempt: AuthAttempt) -> Dict[str, str]:
        headers = {"Origin": self.base_url}
        if attempt.handshake_url:
            headers["Referer"] = attempt.handshake_url
        return headers

    def build_handshake_url(self, gateway: GatewayParameters) -> str:
        return (
            f"{self.base_url}/login?serial={self.mac_address}"
            f"&client_mac={gateway.mac}"
            f"&client_ip={gateway.ip}"
            f"&userurl={self.gateway_url}/"
            f"&login_url={quote(gateway.login_only_url, safe='')}"
            f"&chap_id={gateway.chap_id}"
            f"&chap_challenge={gateway.chap_challenge}"
        )

    def _scan_gateway(self, attempt: AuthAttempt) -> AuthStep:
        logger.info("[%s] Step 1: Scanning Gateway...", self.name)
        response = self.client.get(self.gateway_url)
        attempt.gateway = parse_gateway_parameters(response.text)
        logger.info("   -> Found gateway: %s", attempt.gateway.ip or "unknown")
        return AuthStep.HANDSHAKE

    def _handshake(self, attempt: AuthAttempt) -> AuthStep:
        if attempt.gateway is None:
            raise ProtocolError("Gateway not scanned")
        logger.info("[%s] Step 2: Handshaking...", self.name)
        logger.info("   -> Using MAC: %s", mask_value(self.mac_address))

        url = self.build_handshake_url(attempt.gateway)
        self.client.get(url, headers={"Referer": url, "Origin": self.base_url})
        attempt.handshake_url = url
        return AuthStep.VERIFY_DEVICE

    def _verify_device(self, attempt: AuthAttempt) -> AuthStep:
        if not attempt.handshake_url:
            raise ProtocolError("Handshake not completed")
        logger.info("[%s] Step 3: Verifying Device...", self.name)
        response = self.client.post_json(
            f"{self.base_url}/Home/VerifyUrl", {}, headers=self.api_headers(attempt)
        )
        attempt.context = read_json(response, "/Home/VerifyUrl")
        return AuthStep.GET_CREDENTIALS

    def build_customer_payload(self, context: Any) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "captiveContextDTO": context,
            "customer": {"gender": 1, "name": ""},
            "customerRequiredFields": [],
        }
        if isinstance(context, dict):
            payload.update(context)
        return payload

    def _get_credentials(self, attempt: AuthAttempt) -> AuthStep:
        if not attempt.handshake_url:
            raise ProtocolError("Handshake not completed")
        logger.info("[%s] Step 4: Getting Credentials...", self.name)
        response = self.client.post_json(
            f"{self.base_url}/Content/GetCustomer",
            self.build_customer_payload(attempt.context),
            headers=self.api_headers(attempt),
        )
        form_html = find_auth_form(read_json(response, "/Content/GetCustomer"))
        attempt.credentials = parse_credentials(form_html)
        logger.info("   -> Got credentials for: %s", mask_value(attempt.credentials.username))
        return AuthStep.SEND_ANALYTICS

    def _send_analytics(self, attempt: AuthAttempt) -> AuthStep:
        if not attempt.handshake_url:
            raise ProtocolError("Handshake not completed")
        logger.info("[%s] Step 5: Sending Analytics...", self.name)
        payload = {
            "captiveContextDTO": attempt.context,
            "analyticType": "Authentication",
            "viewIndex": 1,
        }
        self.client.post_json(
            f"{self.base_url}/Analytic/Send", payload, headers=self.api_headers(attempt)
        )
        return AuthStep.LOGIN_ROUTER

    def _login_router(self, attempt: AuthAttempt) -> AuthStep:
        if attempt.gateway is None:
            raise ProtocolError("Gateway not scanned")
        if attempt.credentials is None:
            raise ProtocolError("Credentials not extracted")
        logger.info("[%s] Step 6: Logging into Router...", self.name)

        login_url = attempt.gateway.login_only_url or self.fallback_login_url
        form = {
            "username": attempt.credentials.username,
            "password": attempt.credentials.password,
            "dst": f"{self.base_url}/Success",
            "popup": "false",
        }
        self.client.post_form(login_url, form)
        return AuthStep.DONE
