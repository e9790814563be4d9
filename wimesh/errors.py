from typing import Optional


class PortalLoginError(Exception):
    """Base class for every failure the login client reports."""


class TransportError(PortalLoginError):
    def __init__(
        self,
        message: str,
        url: str = "",
        status_code: Optional[int] = None,
        body_excerpt: str = "",
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body_excerpt = body_excerpt


class ExtractionError(PortalLoginError):
    pass


class ProtocolError(PortalLoginError):
    pass


class ConfigurationError(PortalLoginError):
    pass


class SupervisionError(PortalLoginError):
    pass


class StepError(PortalLoginError):
    """A portal login step failed; the underlying error is kept as ``__cause__``."""

    def __init__(self, portal_name: str, step: str, cause: Exception) -> None:
        super().__init__(f"[{portal_name}] {step} failed: {cause}")
        self.portal_name = portal_name
        self.step = step
        self.cause = cause
