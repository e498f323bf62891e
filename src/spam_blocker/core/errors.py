"""Exception hierarchy shared across the scoring engine and the indexer."""

from __future__ import annotations


class SpamBlockerError(RuntimeError):
    """Base exception raised for spam blocker failures."""


class UnknownPublicationTypeError(SpamBlockerError, ValueError):
    """Raised when a challenge request carries no recognised publication."""


class InvalidRemoteDataError(SpamBlockerError, ValueError):
    """Raised when a remote node returns a payload that fails validation.

    The original validation error is chained as ``__cause__`` so callers can
    inspect the individual field failures.
    """


class InvalidChallengeTierConfigError(SpamBlockerError, ValueError):
    """Raised when challenge tier thresholds are not strictly increasing."""


class IndexerError(SpamBlockerError):
    """Base exception for network indexer failures."""


class PageQueueClearedError(IndexerError):
    """Raised for page fetches still waiting in the queue when it is cleared."""
