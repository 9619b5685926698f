"""Domain-specific exceptions for Booking Core.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from BookingAPIError for easy catching.

The merge and recompute engines never raise for accepted records; these
exceptions belong to the collaborators around them (configuration, ingest,
manual edits).
"""


class BookingAPIError(Exception):
    """Base exception for all Booking Core errors.

    This is the base class for all domain-specific exceptions in the package.
    Users can catch this exception to handle any Booking Core error.
    """

    pass


class ConfigError(BookingAPIError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Invalid configuration values are provided
    - Required configuration is missing
    - Configuration files cannot be loaded or parsed
    """

    pass


class DataQualityError(BookingAPIError):
    """Raised when imported data cannot be mapped to booking records.

    This exception is raised when:
    - Required columns are missing from an export
    - A snapshot file has an unsupported layout
    """

    pass


class EditError(BookingAPIError):
    """Raised when a manual edit is structurally invalid.

    This exception is raised when:
    - Grouping bookings that belong to different customers or days
    - Grouping fewer than two bookings
    - Assigning staff to a booking that was not left for later assignment
    """

    pass


class RecordNotFoundError(EditError):
    """Raised when an edit targets an identity key that is not in the history."""

    pass
