"""
Custom Exception Classes for the HCC2 Edge Client

Hierarchical exception structure. Remote calls never raise across the
gateway boundary (they return ApiResult); these are raised by setup and
by the metrics loop.
"""


class EdgeClientError(Exception):
    """Base exception for all edge client errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(EdgeClientError):
    """Configuration-related errors"""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class DataPointError(EdgeClientError):
    """Invalid data point definition"""

    def __init__(self, message: str, topic: str | None = None):
        self.topic = topic
        super().__init__(f"Data Point Error: {message}", recoverable=False)


class SetupError(EdgeClientError):
    """Fatal bootstrap/registration errors"""

    def __init__(
        self,
        message: str,
        state: str | None = None,
        status_code: int | None = None,
    ):
        self.state = state
        self.status_code = status_code
        super().__init__(f"Setup Error: {message}", recoverable=False)


class SampleError(EdgeClientError):
    """Metrics could not be sampled in a cycle"""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(f"Sample Error: {message}", recoverable=True)
