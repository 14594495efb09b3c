"""Error taxonomy for the regression suite."""


class RegressionSuiteError(Exception):
    """Base class for suite errors."""


class ConfigurationError(RegressionSuiteError):
    """Required configuration is missing or invalid. Fatal at startup."""


class SessionError(RegressionSuiteError):
    """Browser session could not be acquired. Fatal to the owning scenario."""


class StepTimeoutError(RegressionSuiteError, TimeoutError):
    """An awaited operation exceeded its bound."""


class NetworkError(RegressionSuiteError):
    """A live API call failed. Never leaves the API adapter."""

    def __init__(
        self, message: str, status: int | None = None, body: object = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class StructuralValidationError(RegressionSuiteError, AssertionError):
    """Response shape, field or type mismatch."""


class ReportGenerationError(RegressionSuiteError):
    """Aggregation, trend or merge failure. Never affects the exit code."""
