"""Exceptions raised by linewatch."""


class LinewatchError(Exception):
    pass


class FeedUnavailableError(LinewatchError):
    """The real-time feed could not be fetched or decoded."""


class StopDataError(LinewatchError):
    """The stop reference data could not be read."""
