from __future__ import annotations


class ExtractorError(RuntimeError):
    def __init__(self, message: str, *, code: str = "extractor_unavailable"):
        super().__init__(message)
        self.code = code


class ExtractorUnavailableError(ExtractorError):
    """No usable provider credentials; callers surface this as 503."""

    def __init__(self, message: str = "Extractor is not configured"):
        super().__init__(message, code="not_configured")


class StageError(RuntimeError):
    """A stage could not produce a usable output. Local to that stage."""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        code: str = "stage_failed",
        raw_response: str | None = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.code = code
        self.raw_response = raw_response


class StageValidationError(StageError):
    def __init__(
        self,
        message: str,
        *,
        stage: str,
        details: list[str] | None = None,
        raw_response: str | None = None,
    ):
        super().__init__(message, stage=stage, code="invalid_output", raw_response=raw_response)
        self.details = details or []


class BatchInputError(ValueError):
    def __init__(self, message: str, *, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code
