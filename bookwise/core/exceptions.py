"""Error types raised by the scheduling core and its HTTP layer"""


class BookwiseError(Exception):
    """Base class for all bookwise errors"""


class InvalidInputError(BookwiseError, ValueError):
    """Input that the scheduling core refuses to compute on"""


class NotFoundError(BookwiseError):
    """A referenced booking link, pool, service, provider or booking does not exist"""


class SlotUnavailableError(BookwiseError):
    """The requested time was taken between the availability query and the booking"""

    def __init__(self, provider_id: str, message: str = "This time slot is no longer available"):
        super().__init__(message)
        self.provider_id = provider_id


class CalendarSyncError(BookwiseError):
    """An external calendar API refused or failed a request"""
