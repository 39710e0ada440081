"""
Custom exception classes for the telemetry visualizer.
These allow us to differentiate between user errors (4xx) and system errors (5xx).
"""

class AppException(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

class ParseError(AppException):
    """Raised when an uploaded CSV cannot be parsed."""
    def __init__(self, message: str = "Failed to parse the uploaded CSV file."):
        super().__init__(message, status_code=400)

class InvalidSelectionError(AppException):
    """Raised when an axis selection names an unknown axis or a non-numeric column."""
    def __init__(self, message: str = "The requested axis selection is invalid."):
        super().__init__(message, status_code=400)

class VisualizationError(AppException):
    """Raised when the selected axes yield no plottable points."""
    def __init__(self, message: str = "Failed to generate visualization."):
        super().__init__(message, status_code=422)

class InsightError(AppException):
    """Base class for failures of the insight request."""
    def __init__(self, message: str = "Could not fetch insights.", status_code: int = 502):
        super().__init__(message, status_code=status_code)

class NoDataError(InsightError):
    """Raised when insights are requested for an empty dataset."""
    def __init__(self, message: str = "No data provided to generate insights."):
        super().__init__(message, status_code=400)

class ConfigError(InsightError):
    """Raised when the insight service credential or endpoint is not configured."""
    def __init__(self, message: str = "Insight service is not configured."):
        super().__init__(message, status_code=500)

class TransportError(InsightError):
    """Raised when every attempt to reach the insight service failed."""
    def __init__(self, message: str = "Could not reach the insight service.", attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)

class ResponseShapeError(InsightError):
    """Raised when the service answered but the generated text is missing."""
    def __init__(self, message: str = "LLM response was empty or malformed."):
        super().__init__(message)

class SchemaError(InsightError):
    """Raised when the generated text is not the expected JSON object."""
    def __init__(self, message: str = "LLM response did not match the insight schema."):
        super().__init__(message)
