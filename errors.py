"""
Exception types shared across the enhancement pipeline.
"""


class EnhancerError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(EnhancerError):
    """A required credential or setting is missing. Fatal for the whole run."""


class SearchProviderError(EnhancerError):
    """A search provider could not answer a query."""


class ArticleApiError(EnhancerError):
    """The article storage service returned an error or was unreachable."""


class PublishError(ArticleApiError):
    """The storage service refused or failed to store an enhanced article."""


class PreservationError(EnhancerError):
    """Generated HTML does not contain the original article verbatim."""
