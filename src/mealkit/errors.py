"""Error taxonomy for the extraction pipeline.

Only InvalidRequest is meant to reach callers. The ModelInvocationError
family is raised by the LLM client and absorbed by the extractor, which
degrades to a fallback record.
"""


class ExtractionError(Exception):
    """Base class for all mealkit errors."""


class InvalidRequest(ExtractionError, ValueError):
    """The caller sent a request that is missing required fields."""


class ModelInvocationError(ExtractionError):
    """A single model call did not produce a response."""

    kind = "model_error"


class AuthError(ModelInvocationError):
    """Missing or rejected API credential. Never retried."""

    kind = "auth_error"


class ModelTimeout(ModelInvocationError):
    """The configured deadline elapsed before the model answered."""

    kind = "timeout"


class TransportError(ModelInvocationError):
    """Network, DNS or TLS failure talking to the completion API."""

    kind = "transport_error"


class UpstreamError(ModelInvocationError):
    """The completion API answered with a non-2xx status."""

    kind = "upstream_error"

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"Upstream returned HTTP {status_code}")
