"""Exceptions raised by the calendar core."""


class SchedulingError(Exception):
    """Base exception for scheduling errors."""

    pass


class InvalidPatternError(SchedulingError):
    """Recurrence rule is malformed."""

    pass


class MissingParameterError(SchedulingError):
    """Resolution strategy was invoked without the times it needs."""

    def __init__(self, strategy: str, missing: list[str]):
        self.strategy = strategy
        self.missing = missing
        super().__init__(
            f"Strategy '{strategy}' requires: {', '.join(missing)}"
        )


class InvalidIntervalError(SchedulingError):
    """Interval end lies before its start."""

    pass


class UnknownStrategyError(SchedulingError):
    """Resolution strategy name is not recognised."""

    pass


class RepositoryUnavailableError(SchedulingError):
    """Appointment store failed transiently; the call may be retried."""

    pass
