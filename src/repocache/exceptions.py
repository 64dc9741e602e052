"""Exception hierarchy for repocache.

Fetch and storage failures are never wrapped: they reach the caller as the
exception the fetch function or backend raised.
"""


class RepositoryError(Exception):
    """Base exception for all repocache errors."""


class ConfigurationError(RepositoryError, ValueError):
    """Invalid repository configuration, raised at construction time."""


class NormalizationError(RepositoryError, TypeError):
    """Raw response data does not match the shape of the field map."""
