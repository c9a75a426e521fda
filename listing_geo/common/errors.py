"""Domain errors and failure typing."""

from listing_geo.common.result import ErrorKind


class ListingGeoError(Exception):
    """Base class for listing-geo failures."""

    error_code = "LISTING_GEO_ERROR"
    kind = ErrorKind.REMOTE_FETCH_FAILURE


class ConfigError(ListingGeoError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"
    kind = ErrorKind.CONFIG


class LocationError(ListingGeoError):
    """Raised when the current position cannot be determined."""

    error_code = "LOCATION_ERROR"
    kind = ErrorKind.POSITION_UNAVAILABLE
    default_message = "Unable to retrieve location"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class LocationUnsupported(LocationError):
    error_code = "LOCATION_UNSUPPORTED"
    kind = ErrorKind.UNSUPPORTED
    default_message = "Geolocation is not supported by this platform"


class LocationPermissionDenied(LocationError):
    error_code = "LOCATION_PERMISSION_DENIED"
    kind = ErrorKind.PERMISSION_DENIED
    default_message = "Location access denied by user"


class LocationUnavailable(LocationError):
    error_code = "LOCATION_UNAVAILABLE"
    kind = ErrorKind.POSITION_UNAVAILABLE
    default_message = "Location information unavailable"


class LocationTimeout(LocationError):
    error_code = "LOCATION_TIMEOUT"
    kind = ErrorKind.TIMEOUT
    default_message = "Location request timed out"


class LocationCancelled(LocationError):
    error_code = "LOCATION_CANCELLED"
    kind = ErrorKind.CANCELLED
    default_message = "Location request cancelled"


class StoreError(ListingGeoError):
    """Raised for failures talking to the remote document store."""

    error_code = "STORE_ERROR"
    kind = ErrorKind.REMOTE_FETCH_FAILURE


class RemoteFetchError(StoreError):
    error_code = "REMOTE_FETCH_FAILURE"
    kind = ErrorKind.REMOTE_FETCH_FAILURE


class RemoteWriteError(StoreError):
    error_code = "REMOTE_WRITE_FAILURE"
    kind = ErrorKind.REMOTE_WRITE_FAILURE
