"""Application-level exception types for citypulse."""

from __future__ import annotations


class CityPulseError(Exception):
    """Base exception for citypulse."""


class ConfigurationError(CityPulseError):
    """Raised when settings or command line options are unusable."""


class MissingCredentialError(CityPulseError):
    """Raised when no credential is configured for the generation service."""

    def __init__(self, message: str = "請先輸入有效的 Gemini API Key") -> None:
        super().__init__(message)


class TransportError(CityPulseError):
    """Raised on network, parse or service-reported failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PayloadShapeError(CityPulseError):
    """Raised when a response body is missing expected keys or types."""


class IndexNotFoundError(CityPulseError):
    """Raised when the requested dashboard index is absent for a city."""

    def __init__(self, city: str, index: str) -> None:
        super().__init__(f'Index "{index}" not found under city="{city}".')
        self.city = city
        self.index = index
