"""Error taxonomy for the recommendation engine.

ConfigurationError is fatal and surfaces to the API caller. Provider errors
are recovered per cascade attempt and never reach the caller.
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """A required external-service credential is missing."""


class ProviderError(Exception):
    """Base class for search provider failures."""

    def __init__(self, message: str, *, query: str = "") -> None:
        super().__init__(message)
        self.query = query


class ProviderTransportError(ProviderError):
    """Network, timeout, or HTTP status failure calling the search backend."""

    def __init__(self, message: str, *, query: str = "", status_code: int | None = None) -> None:
        super().__init__(message, query=query)
        self.status_code = status_code


class ProviderSoftError(ProviderError):
    """Provider answered but reported an error, quota issue, or unparseable body."""
