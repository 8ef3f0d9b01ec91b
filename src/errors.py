"""Error taxonomy for task scheduling and delivery."""


class CourierError(Exception):
    """Base class for all sqlcourier failures."""


class ConfigNotFound(CourierError):
    """A task, data source, or destination reference did not resolve."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} not found: {name}")
        self.kind = kind
        self.name = name


class ConfigError(CourierError, ValueError):
    """A record store file, or a record inside it, is malformed."""


class ScheduleParseError(CourierError, ValueError):
    """A schedule descriptor string is malformed."""


class QueryError(CourierError):
    """Connecting to the data source or running the query failed."""


class FormatError(CourierError):
    """The query result could not be shaped into the requested format."""


class DeliveryError(CourierError):
    """Uploading or posting the payload to a destination failed."""


class Cancelled(CourierError):
    """The run's cancel token fired while a call was suspended."""
