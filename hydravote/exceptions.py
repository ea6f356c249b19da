"""Exceptions for HydraVote operations."""


class HydraVoteError(Exception):
    """Base exception for HydraVote errors."""

    pass


class ConfigurationError(HydraVoteError):
    """Provider or engine configuration is invalid."""

    pass


class ProviderError(HydraVoteError):
    """Provider request failed."""

    def __init__(self, message: str, provider_id: str = None, status_code: int = None):
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code


class ProviderRateLimitError(ProviderError):
    """Provider rate limit exceeded."""

    pass


class ProviderResponseError(ProviderError):
    """Provider returned an empty or unusable response."""

    pass


class CalibrationError(HydraVoteError):
    """Benchmark aggregation or weight resolution failed."""

    pass


class AnalysisNotFoundError(HydraVoteError):
    """Analysis record not found."""

    pass
