"""Error taxonomy shared by services and the HTTP layer."""


class NotFoundError(LookupError):
    """Session or image is absent or expired."""


class ValidationFailedError(ValueError):
    """Request rejected with a human-readable reason."""


class AnalysisInProgressError(ValidationFailedError):
    """Another analysis batch is already running for the session."""


class ServiceUnavailableError(RuntimeError):
    """A required upstream service is not configured."""


class MalformedReportError(ValueError):
    """Language model output could not be parsed into a report."""
