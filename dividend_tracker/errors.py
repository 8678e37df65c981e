"""Exception types for dividend_tracker.

Analytics errors are raised straight to the caller; partial-data situations
(unknown yields, short histories) are reported as result fields instead.
"""


class DividendTrackerError(Exception):
    """Base class for every error raised by the package."""


class ValidationError(DividendTrackerError, ValueError):
    """A record or holding failed construction-time validation."""


class ConfigError(DividendTrackerError):
    """Settings could not be loaded or contain invalid values."""


class LedgerError(DividendTrackerError):
    pass


class DuplicateRecordError(LedgerError):
    """A record with the same (symbol, ex-date) key already exists."""

    def __init__(self, symbol, ex_date):
        super().__init__(
            f"Dividend for {symbol} with ex-date {ex_date.isoformat()} already exists "
            "(use --force to add it anyway)"
        )
        self.symbol = symbol
        self.ex_date = ex_date


class RecordNotFoundError(LedgerError):
    pass


class PersistenceError(DividendTrackerError):
    pass


class FetchError(DividendTrackerError):
    """Historical dividend data could not be downloaded or parsed."""


class AnalyticsError(DividendTrackerError):
    pass


class InsufficientDataError(AnalyticsError):
    """Not enough historical years or data points for the analysis."""


class MissingCostBasisError(AnalyticsError):
    """No holding has a usable cost basis."""


class NoBaselineDataError(AnalyticsError):
    """The projection baseline window contains no dividend history."""


class InvalidParameterError(AnalyticsError, ValueError):
    """Malformed caller input: bad year, negative limit, unknown tag."""
