import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import pytest

from wimesh.errors import ExtractionError, ProtocolError, StepError, TransportError
from wimesh.http_client import HttpClient
from wimesh.models import PortalDescriptor
from wimesh.portals.awing import (
    BASE_URL,
    FALLBACK_LOGIN_URL,
    GATEWAY_URL,
    AuthAttempt,
    AuthStep,
    AwingPortal,
)
from wimesh.settings import HttpSettings, PortalSettings

from .helpers import AUTH_FORM, GATEWAY_PAGE, make_response

DEVICE_MAC = "DE:AD:BE:EF:00:01"
CONTEXT = {"sessionId": "s-1", "nasId": "nas-42", "customer": {"gender": 0}}


class FakeClient:
    """Records every call and serves canned responses keyed by URL path."""

    def __init__(self, responses: Dict[str, Any]) -> None:
        self.responses = responses
        self.calls: List[Dict[str, Any]] = []

    def _respond(self, method: str, url: str, headers=None, body=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "body": body})
        path = urlparse(url).path or "/"
        result = self.responses[path]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result()
        return result

    def get(self, url: str, headers: Optional[Dict[str, str]] = None):
        return self._respond("GET", url, headers)

    def post_json(self, url: str, body: Any, headers: Optional[Dict[str, str]] = None):
        return self._respond("POST_JSON", url, headers, body)

    def post_form(self, url: str, fields: Dict[str, str], headers=None):
        return self._respond("POST_FORM", url, headers, fields)

    @property
    def trace(self):
        return [(call["method"], urlparse(call["url"]).path or "/") for call in self.calls]


def standard_responses(gateway_page: str = GATEWAY_PAGE, customer: Any = None) -> Dict[str, Any]:
    if customer is None:
        customer = {"captiveContext": {"contentAuthenForm": AUTH_FORM}}
    return {
        "/": make_response(200, gateway_page),
        "/login": make_response(200, "<html>portal</html>"),
        "/Home/VerifyUrl": make_response(200, json=CONTEXT),
        "/Content/GetCustomer": make_response(200, json=customer),
        "/Analytic/Send": make_response(200, json={"ok": True}),
    }


FULL_TRACE = [
    ("GET", "/"),
    ("GET", "/login"),
    ("POST_JSON", "/Home/VerifyUrl"),
    ("POST_JSON", "/Content/GetCustomer"),
    ("POST_JSON", "/Analytic/Send"),
    ("POST_FORM", "/login"),
]


def make_portal(client: FakeClient, mac_address: str = DEVICE_MAC, **extra) -> AwingPortal:
    descriptor = PortalDescriptor(
        name="KTX Khu B",
        ssids=frozenset({"1.Free Wi-MESH"}),
        mac_address=mac_address,
        extra=extra,
    )
    return AwingPortal(descriptor, client=client, mac_resolver=lambda: None)


class TestConnect:
    def test_runs_all_six_steps_in_order(self):
        client = FakeClient(standard_responses())
        portal = make_portal(client)

        portal.connect()

        assert client.trace == FULL_TRACE
        assert portal.last_attempt.step is AuthStep.DONE

    def test_scan_gateway_hits_captive_host(self):
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        assert client.calls[0]["url"] == GATEWAY_URL

    def test_handshake_url_and_headers(self):
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        handshake = client.calls[1]
        url = handshake["url"]
        assert url.startswith(f"{BASE_URL}/login?")
        assert "login_url=http%3A%2F%2F10.10.0.1%2Flogin" in url
        query = parse_qs(urlparse(url).query)
        assert query["serial"] == [DEVICE_MAC]
        assert query["client_mac"] == ["AA:BB:CC:DD:EE:FF"]
        assert query["client_ip"] == ["10.10.0.23"]
        assert query["userurl"] == [f"{GATEWAY_URL}/"]
        assert query["login_url"] == ["http://10.10.0.1/login"]
        assert query["chap_challenge"] == ["ch4ll3ng3"]
        assert handshake["headers"] == {"Referer": url, "Origin": BASE_URL}

    def test_api_calls_use_handshake_as_referer(self):
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        handshake_url = client.calls[1]["url"]
        for call in client.calls[2:5]:
            assert call["url"].startswith(BASE_URL)
            assert call["headers"] == {"Referer": handshake_url, "Origin": BASE_URL}

    def test_verify_device_posts_empty_body(self):
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        assert client.calls[2]["body"] == {}

    def test_customer_payload_merges_context(self):
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        payload = client.calls[3]["body"]
        assert payload["captiveContextDTO"] == CONTEXT
        assert payload["customerRequiredFields"] == []
        assert payload["sessionId"] == "s-1"
        assert payload["nasId"] == "nas-42"
        # context keys override the skeleton
        assert payload["customer"] == {"gender": 0}

    def test_analytics_payload(self):
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        assert client.calls[4]["body"] == {
            "captiveContextDTO": CONTEXT,
            "analyticType": "Authentication",
            "viewIndex": 1,
        }

    def test_login_router_posts_credentials(self):
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        login = client.calls[5]
        assert login["url"] == "http://10.10.0.1/login"
        assert login["body"] == {
            "username": "guest-8812",
            "password": "s3cr3t-pw",
            "dst": f"{BASE_URL}/Success",
            "popup": "false",
        }

    def test_login_falls_back_without_login_only_url(self):
        page = GATEWAY_PAGE.replace('var link_login_only = "http://10.10.0.1/login";', "")
        client = FakeClient(standard_responses(gateway_page=page))
        make_portal(client).connect()

        assert client.calls[5]["url"] == FALLBACK_LOGIN_URL
        assert "login_url=&" in client.calls[1]["url"]

    def test_top_level_form_is_used_when_nested_missing(self):
        customer = {"captiveContext": {"other": 1}, "contentAuthenForm": AUTH_FORM}
        client = FakeClient(standard_responses(customer=customer))
        make_portal(client).connect()

        assert client.calls[5]["body"]["username"] == "guest-8812"

    def test_nested_form_is_preferred(self):
        decoy = AUTH_FORM.replace("guest-8812", "decoy")
        customer = {"captiveContext": {"contentAuthenForm": AUTH_FORM}, "contentAuthenForm": decoy}
        client = FakeClient(standard_responses(customer=customer))
        make_portal(client).connect()

        assert client.calls[5]["body"]["username"] == "guest-8812"

    def test_endpoint_overrides(self):
        client = FakeClient(standard_responses())
        portal = make_portal(
            client,
            gateway_url="http://gw.test/",
            base_url="http://portal.test",
            fallback_login_url="http://fallback.test/login",
        )
        portal.connect()

        assert client.calls[0]["url"] == "http://gw.test"
        assert client.calls[2]["url"] == "http://portal.test/Home/VerifyUrl"
        assert client.calls[2]["headers"]["Origin"] == "http://portal.test"

    def test_device_mac_is_detected_when_not_configured(self):
        client = FakeClient(standard_responses())
        descriptor = PortalDescriptor(name="KTX", ssids=frozenset({"x"}))
        portal = AwingPortal(descriptor, client=client, mac_resolver=lambda: "12:34:56:78:9A:BC")

        portal.connect()

        assert "serial=12:34:56:78:9A:BC&" in client.calls[1]["url"]

    def test_credentials_are_not_logged(self, caplog):
        caplog.set_level(logging.DEBUG)
        client = FakeClient(standard_responses())
        make_portal(client).connect()

        assert "s3cr3t-pw" not in caplog.text
        assert "guest-8812" not in caplog.text
        assert DEVICE_MAC not in caplog.text
        assert "Connected successfully" in caplog.text


class TestFailures:
    def test_missing_challenge_aborts_at_scan(self):
        page = GATEWAY_PAGE.replace('var chap_challenge = "ch4ll3ng3";', "")
        client = FakeClient(standard_responses(gateway_page=page))
        portal = make_portal(client)

        with pytest.raises(StepError) as excinfo:
            portal.connect()

        assert excinfo.value.step == "Scan Gateway"
        assert isinstance(excinfo.value.__cause__, ExtractionError)
        assert client.trace == FULL_TRACE[:1]

    def test_missing_form_is_protocol_error(self):
        client = FakeClient(standard_responses(customer={"captiveContext": {}}))
        portal = make_portal(client)

        with pytest.raises(StepError) as excinfo:
            portal.connect()

        assert excinfo.value.step == "Get Credentials"
        assert isinstance(excinfo.value.cause, ProtocolError)
        assert "contentAuthenForm" in str(excinfo.value)
        assert client.trace == FULL_TRACE[:4]

    @pytest.mark.parametrize(
        "customer",
        [
            {"contentAuthenForm": {"html": "x"}},
            {"contentAuthenForm": ["<input>"]},
            {"captiveContext": {"contentAuthenForm": 42}},
            {"captiveContext": {"contentAuthenForm": {"html": "x"}}, "contentAuthenForm": None},
        ],
    )
    def test_non_string_form_is_protocol_error(self, customer):
        client = FakeClient(standard_responses(customer=customer))

        with pytest.raises(StepError) as excinfo:
            make_portal(client).connect()

        assert excinfo.value.step == "Get Credentials"
        assert isinstance(excinfo.value.cause, ProtocolError)
        assert client.trace == FULL_TRACE[:4]

    def test_nested_non_string_falls_back_to_top_level(self):
        customer = {
            "captiveContext": {"contentAuthenForm": {"html": "x"}},
            "contentAuthenForm": AUTH_FORM,
        }
        client = FakeClient(standard_responses(customer=customer))

        make_portal(client).connect()

        assert client.calls[5]["body"]["username"] == "guest-8812"

    def test_non_json_verify_response(self):
        responses = standard_responses()
        responses["/Home/VerifyUrl"] = make_response(200, "<html>oops</html>")
        client = FakeClient(responses)

        with pytest.raises(StepError) as excinfo:
            make_portal(client).connect()

        assert excinfo.value.step == "Verify Device"
        assert isinstance(excinfo.value.cause, ProtocolError)

    def test_analytics_failure_is_not_ignored(self):
        responses = standard_responses()
        responses["/Analytic/Send"] = TransportError("Request failed: 403", status_code=403)
        client = FakeClient(responses)

        with pytest.raises(StepError) as excinfo:
            make_portal(client).connect()

        assert excinfo.value.step == "Send Analytics"
        assert excinfo.value.cause.status_code == 403
        assert client.trace == FULL_TRACE[:5]

    def test_partial_state_is_kept_after_failure(self):
        responses = standard_responses()
        responses["/Home/VerifyUrl"] = TransportError("Request failed: 500", status_code=500)
        portal = make_portal(FakeClient(responses))

        with pytest.raises(StepError):
            portal.connect()

        attempt = portal.last_attempt
        assert attempt.step is AuthStep.VERIFY_DEVICE
        assert attempt.gateway.chap_challenge == "ch4ll3ng3"
        assert attempt.handshake_url.startswith(f"{BASE_URL}/login?")
        assert attempt.credentials is None

    @pytest.mark.parametrize(
        "method_name,attempt",
        [
            ("_handshake", AuthAttempt()),
            ("_verify_device", AuthAttempt()),
            ("_get_credentials", AuthAttempt()),
            ("_send_analytics", AuthAttempt()),
            ("_login_router", AuthAttempt()),
        ],
    )
    def test_steps_check_their_preconditions(self, method_name, attempt):
        client = FakeClient(standard_responses())
        portal = make_portal(client)

        with pytest.raises(ProtocolError):
            getattr(portal, method_name)(attempt)

        assert client.calls == []


class TestRepeatedConnect:
    def test_two_connects_are_independent(self):
        second_page = GATEWAY_PAGE.replace("ch4ll3ng3", "n3w-ch4ll3ng3")
        pages = iter([GATEWAY_PAGE, second_page])
        responses = standard_responses()
        responses["/"] = lambda: make_response(200, next(pages))
        client = FakeClient(responses)
        portal = make_portal(client)

        portal.connect()
        first_attempt = portal.last_attempt
        portal.connect()

        assert client.trace == FULL_TRACE + FULL_TRACE
        assert portal.last_attempt is not first_attempt
        assert "chap_challenge=ch4ll3ng3" in client.calls[1]["url"]
        assert "chap_challenge=n3w-ch4ll3ng3" in client.calls[7]["url"]
        assert client.calls[8]["headers"]["Referer"] == client.calls[7]["url"]

    def test_http_client_is_reused(self):
        portal = AwingPortal.from_settings(
            PortalSettings(name="KTX", type="awing", ssids=("1.Free Wi-MESH",)),
            HttpSettings(timeout=12, connect_timeout=4, max_retries=5),
        )

        assert isinstance(portal.client, HttpClient)
        assert portal.client.timeout == 12
        assert portal.client.connect_timeout == 4
        assert portal.client.max_retries == 5
        assert portal.matches_ssid("1.Free Wi-MESH")
        assert not portal.matches_ssid("1.free wi-mesh")


def test_is_authenticated_uses_connectivity_check(mocker):
    check = mocker.patch("wimesh.network.has_internet_connectivity", return_value=True)
    portal = make_portal(FakeClient({}))

    assert portal.is_authenticated() is True
    check.assert_called_once_with()
