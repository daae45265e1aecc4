"""Exception types raised by the bridge."""


class AgriSenseError(Exception):
    """Base class for all bridge errors."""


class ConfigError(AgriSenseError):
    """Raised at startup when required configuration is missing."""


class GatewayError(AgriSenseError):
    """An upstream fetch failed. Carries the URL that was requested."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class NetworkFailure(GatewayError):
    """Transport error or a non-success HTTP status from an upstream."""

    def __init__(self, message: str, url: str | None = None, status: int | None = None):
        super().__init__(message, url=url)
        self.status = status


class ParseFailure(GatewayError):
    """Upstream answered, but the body was not JSON or had an unexpected shape."""
