import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from .errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
DEFAULT_CONNECT_TIMEOUT = 5
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
BODY_EXCERPT_LIMIT = 200

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9,vi;q=0.8",
}

JSON_HEADERS = {
    "Content-Type": "application/json",
    "X-Requested-With": "XMLHttpRequest",
}


def body_excerpt(response: requests.Response, limit: int = BODY_EXCERPT_LIMIT) -> str:
    return (response.text or "")[:limit]


class HttpClient:
    """Cookie-keeping HTTP client with bounded exponential-backoff retries.

    A single ``requests.Session`` backs every call so cookies set by one
    portal step are presented on the next, including across repeated
    logins with the same client.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> requests.Response:
        return self._request("GET", url, headers=headers)

    def post_json(
        self,
        url: str,
        body: Any,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        merged = dict(JSON_HEADERS)
        if headers:
            merged.update(headers)
        return self._request("POST", url, headers=merged, json=body)

    def post_form(
        self,
        url: str,
        fields: Dict[str, str],
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        return self._request("POST", url, headers=headers, data=fields)

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        last_error: Optional[TransportError] = None

        for attempt in range(self.max_retries):
            is_last = attempt >= self.max_retries - 1
            try:
                response = self.session.request(
                    method,
                    url,
                    timeout=(self.connect_timeout, self.timeout),
                    **kwargs,
                )
            except requests.RequestException as exc:
                error = TransportError(f"{method} {url} failed: {exc}", url=url)
                if is_last:
                    raise error from exc
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Request error: %s, retrying in %.1fs (attempt %d/%d)",
                    exc,
                    delay,
                    attempt + 1,
                    self.max_retries,
                )
                last_error = error
                self._sleep(delay)
                continue

            if 200 <= response.status_code < 300:
                return response

            excerpt = body_excerpt(response)
            if response.status_code >= 500 and not is_last:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Server error %s, body: '%s', retrying in %.1fs (attempt %d/%d)",
                    response.status_code,
                    excerpt,
                    delay,
                    attempt + 1,
                    self.max_retries,
                )
                last_error = TransportError(
                    f"Request failed: {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                    body_excerpt=excerpt,
                )
                self._sleep(delay)
                continue

            raise TransportError(
                f"Request failed: {response.status_code} - {excerpt[:50]}",
                url=url,
                status_code=response.status_code,
                body_excerpt=excerpt,
            )

        if last_error is not None:
            raise last_error
        raise TransportError("Max retries exceeded", url=url)
