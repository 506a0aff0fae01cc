"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt the current step."""

    error_code = "STAGE_ERROR"


class ListingFetchError(StageError):
    """Raised when the dispensary listing page could not be downloaded."""

    error_code = "LISTING_FETCH_ERROR"


class ParseError(StageError):
    """Raised when the listing document is not parseable as HTML at all."""

    error_code = "PARSE_ERROR"


class RunInProgressError(PipelineError):
    """Raised when an ingestion run is requested while another is active."""

    error_code = "RUN_IN_PROGRESS"


class RegionLookupError(PipelineError):
    """Zip lookup failure scoped to a single region."""

    error_code = "REGION_LOOKUP_ERROR"


class InvalidResponse(RegionLookupError):
    error_code = "REGION_INVALID_RESPONSE"


class DecodingError(RegionLookupError):
    error_code = "REGION_DECODING_ERROR"


class UnexpectedStatus(RegionLookupError):
    error_code = "REGION_UNEXPECTED_STATUS"

    def __init__(self, status: str) -> None:
        super().__init__(f"Unexpected result status: {status}")
        self.status = status


class NetworkError(RegionLookupError):
    error_code = "REGION_NETWORK_ERROR"


class GeocodeError(PipelineError):
    """Geocoding failure scoped to a single address."""

    error_code = "GEOCODE_ERROR"
    retryable = False


class GeocodeRateLimitedError(GeocodeError):
    """Rate limiting or transport failure; the address should be retried later."""

    error_code = "GEOCODE_RATE_LIMITED"
    retryable = True


class GeocodeNoResultError(GeocodeError):
    error_code = "GEOCODE_NO_RESULT"


class GeocodeOtherError(GeocodeError):
    error_code = "GEOCODE_OTHER"
