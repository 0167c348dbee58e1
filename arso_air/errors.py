class ArsoError(Exception):
    """Base exception for the ARSO air quality core."""

class NetworkError(ArsoError):
    """Raised when a feed cannot be downloaded or the server answers with a non-2xx status."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code

class MalformedInput(ArsoError):
    """Raised when a feed is not a well-formed XML document."""
