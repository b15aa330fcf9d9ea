"""
Exception hierarchy.

PipelineError and its subclasses are raised by stage handlers and the
generative client; the worker turns them into retry decisions.
ServiceError and its subclasses are raised by the project service and
mapped to HTTP status codes by the API.
"""


class CitecastError(Exception):
    """Base class for all application errors."""


# ============================================
# PIPELINE
# ============================================

class PipelineError(CitecastError):
    """A stage attempt failed."""


class StageInputError(PipelineError):
    """A stage was invoked without the inputs it needs (missing ids, text, chunks, profile)."""


class ExtractionError(PipelineError):
    """Text could not be extracted from a source."""


class StructuredOutputError(PipelineError):
    """The generative model never produced output matching the expected schema."""


class UnknownJobTypeError(PipelineError):
    pass


# ============================================
# SERVICE
# ============================================

class ServiceError(CitecastError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class InvalidInputError(ServiceError):
    status_code = 400


class PreconditionFailedError(ServiceError):
    status_code = 409


class RateLimitExceededError(ServiceError):
    status_code = 429

    def __init__(self, message: str, retry_after_minutes: int):
        super().__init__(message)
        self.retry_after_minutes = retry_after_minutes
