"""Check-in domain exceptions.

Scan outcomes (expired, wrong gym, ...) are ValidationStatus values, not
exceptions. These cover infrastructure failures around the booking data.
"""


class CheckInError(Exception):
    """Base exception for check-in errors."""

    pass


class BookingLookupError(CheckInError):
    """The booking source could not answer a status lookup."""

    pass


class BookingStoreError(CheckInError):
    """The local booking file could not be read."""

    pass
