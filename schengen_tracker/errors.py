"""Error taxonomy shared by the import pipeline and the ledger."""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class PermissionDenied(TrackerError):
    """Access to a device source (calendar, photos) was not granted."""


class SourceUnavailable(TrackerError):
    """The device source has no data. Collectors turn this into an empty scan."""


class GeocodeFailure(TrackerError):
    """A single coordinate lookup failed. Never aborts a scan."""


class ValidationError(TrackerError):
    """A trip was rejected at the write boundary."""


class CommitConflict(TrackerError):
    """A candidate matches a trip already in the ledger."""

    def __init__(self, reason: str, existing_trip_id: str = ""):
        super().__init__(f"{reason} of trip {existing_trip_id}" if existing_trip_id else reason)
        self.reason = reason
        self.existing_trip_id = existing_trip_id


class Cancelled(TrackerError):
    """The user cancelled a running scan."""


class InvalidTransition(TrackerError):
    """An import session operation was called from the wrong state."""
