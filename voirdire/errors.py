from typing import Any


class AnalyzerFailure(Exception):
    """Base class for every terminal failure of an analysis run."""

    public_message = "An unexpected error occurred"

    def __init__(self, message: str, *, state: str | None = None):
        super().__init__(message)
        self.message = message
        self.state = state


class RequestValidationError(AnalyzerFailure):
    public_message = "Invalid request"

    def __init__(self, errors: list[str], message: str = "Request validation failed", *, state: str | None = None):
        super().__init__(message, state=state)
        self.errors = list(errors)


class ConfigurationError(AnalyzerFailure):
    """Required static assets or credentials are missing. Operator-fixable."""

    def __init__(self, message: str, *, state: str | None = None):
        super().__init__(message, state=state)
        self.public_message = message


class BackendContractError(AnalyzerFailure):
    public_message = "Analysis failed. The model returned an invalid response. Please try again."

    def __init__(
        self,
        kind: str,
        message: str,
        errors: list[str] | None = None,
        raw: Any | None = None,
        *,
        state: str | None = None,
    ):
        super().__init__(f"Model output failure ({kind}): {message}", state=state)
        self.kind = kind
        self.errors = list(errors or [])
        self.raw = raw


class BackendTransportError(AnalyzerFailure):
    public_message = "AI service error. Please try again later."

    def __init__(self, message: str, status: int | None = None, *, state: str | None = None):
        super().__init__(message, state=state)
        self.status = status


STATUS_CODES: dict[type[AnalyzerFailure], int] = {
    RequestValidationError: 400,
    ConfigurationError: 500,
    BackendContractError: 500,
    BackendTransportError: 502,
}


def status_code_for(exc: AnalyzerFailure) -> int:
    for failure_type, status in STATUS_CODES.items():
        if isinstance(exc, failure_type):
            return status
    return 500
