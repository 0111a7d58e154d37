"""
Exception types shared across the ingestion pipeline
"""

from jobfeed.utils.text import truncate


class JobFeedError(Exception):
    """Base class for all jobfeed errors"""


class ConfigurationError(JobFeedError):
    """A required secret or API key is missing"""


class FeedError(JobFeedError):
    """
    Fetching or decoding an ATS job feed failed

    kind is one of:
        http     - non-2xx response (status_code and truncated body set)
        parse    - response body is not valid JSON
        timeout  - request exceeded the fixed fetch timeout
        network  - connection-level failure
    """

    KINDS = ("http", "parse", "timeout", "network")

    def __init__(
        self,
        kind: str,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown feed error kind: {kind}")
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        """Timeouts, connection failures, 429 and 5xx say nothing about the feed itself"""
        if self.kind == "http":
            return self.status_code == 429 or (self.status_code or 0) >= 500
        return self.kind in ("timeout", "network")

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": str(self),
            "status_code": self.status_code,
        }


class ClassifierError(JobFeedError):
    """The LLM classifier request itself failed (transport or API error)"""


class ClassifierParseError(JobFeedError):
    """Classifier free-text response did not contain the expected shape"""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = truncate(raw, 500)
