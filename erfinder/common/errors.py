"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class CandidateValidationError(PipelineError):
    """Raised when a feed record cannot become a valid candidate."""

    error_code = "CANDIDATE_INVALID"


class FetchError(PipelineError):
    """Raised when an upstream provider call fails."""

    error_code = "FETCH_ERROR"


class RateLimitedError(FetchError):
    """Upstream answered 429; the caller decides whether to back off."""

    error_code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class AuthFailureError(FetchError):
    """Upstream rejected the credential; never retried."""

    error_code = "AUTH_FAILURE"


class UnavailableError(FetchError):
    """Transient failure that survived the retry budget."""

    error_code = "UNAVAILABLE"


class UpstreamError(FetchError):
    """Structurally malformed or rejected upstream response."""

    error_code = "UPSTREAM_ERROR"


class SnapshotStoreError(PipelineError):
    """Raised when the snapshot store cannot persist or read a blob."""

    error_code = "SNAPSHOT_STORE_ERROR"


class SnapshotQuotaError(SnapshotStoreError):
    """Raised when a snapshot blob exceeds the store's byte ceiling."""

    error_code = "SNAPSHOT_QUOTA_EXCEEDED"
