"""Scrapers for the loosely formatted pages a captive portal serves.

Both helpers work on raw text with regular expressions rather than a
markup parser: gateway parameters live inside inline ``<script>`` blocks
and the credential form arrives as an HTML fragment embedded in JSON.
"""

import html
import re
from typing import Optional

from .errors import ExtractionError
from .models import Credentials, GatewayParameters

# Gateway page keys; ``link-login-only`` is also seen as ``link_login_only``.
GATEWAY_KEYS = {
    "mac": "mac",
    "ip": "ip",
    "chap_id": "chap_id",
    "chap_challenge": "chap_challenge",
    "login_only_url": r"link[-_]login[-_]only",
}


def _assignment_pattern(key_pattern: str) -> re.Pattern:
    # key = "value" | key: 'value' | "key": "value"
    return re.compile(
        rf"""(?<![\w-])["']?{key_pattern}["']?\s*[:=]\s*["']([^"']+)["']"""
    )


def extract_value(text: str, key_pattern: str) -> Optional[str]:
    match = _assignment_pattern(key_pattern).search(text)
    return match.group(1) if match else None


def parse_gateway_parameters(text: str) -> GatewayParameters:
    """Pull the gateway parameters out of the captive redirect page.

    Only ``chap_challenge`` is mandatory, the other fields default to an
    empty string. When a key appears more than once the first occurrence
    wins.
    """
    text = text or ""
    chap_challenge = extract_value(text, GATEWAY_KEYS["chap_challenge"])
    if chap_challenge is None:
        raise ExtractionError("chap_challenge not found")

    return GatewayParameters(
        mac=extract_value(text, GATEWAY_KEYS["mac"]) or "",
        ip=extract_value(text, GATEWAY_KEYS["ip"]) or "",
        chap_id=extract_value(text, GATEWAY_KEYS["chap_id"]) or "",
        chap_challenge=chap_challenge,
        login_only_url=extract_value(text, GATEWAY_KEYS["login_only_url"]) or "",
    )


def extract_input_value(form_html: str, name: str) -> Optional[str]:
    escaped = re.escape(name)
    patterns = (
        rf"""<input[^>]*name=["']{escaped}["'][^>]*value=["']([^"']*)["']""",
        rf"""<input[^>]*value=["']([^"']*)["'][^>]*name=["']{escaped}["']""",
    )
    for pattern in patterns:
        match = re.search(pattern, form_html, re.IGNORECASE)
        if match:
            return html.unescape(match.group(1))
    return None


def parse_credentials(form_html: str) -> Credentials:
    """Read the hidden ``username``/``password`` inputs of the auth form.

    Attribute order does not matter. Multiple inputs with the same name
    are not disambiguated; the first one found is used.
    """
    form_html = form_html or ""
    username = extract_input_value(form_html, "username")
    if username is None:
        raise ExtractionError("username not found in form")
    password = extract_input_value(form_html, "password")
    if password is None:
        raise ExtractionError("password not found in form")
    return Credentials(username=username, password=password)
