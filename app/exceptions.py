"""Error taxonomy for the analytics core.

Validation errors subclass ``ValueError`` so callers that only know the
builtin still catch them. Store failures are wrapped so the HTTP layer can
tell "bad request" apart from "backing store is down".
"""


class AnalyticsError(Exception):
    """Base class for analytics failures."""


class InvalidArgument(AnalyticsError, ValueError):
    """A required identifier was missing."""


class InvalidRange(AnalyticsError, ValueError):
    """A date range was missing a bound or had start after end."""


class StoreUnavailable(AnalyticsError):
    """The backing store failed to answer a query."""
