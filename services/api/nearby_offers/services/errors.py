"""Error taxonomy for discovery requests.

Routes translate these into the structured error response; see
`nearby_offers.main` for the HTTP mapping.
"""

from typing import Any


class DiscoveryError(Exception):
    """Base class for errors raised by the discovery core."""

    code = "DISCOVERY_ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(DiscoveryError):
    """Malformed or missing request parameters. Raised before any query runs."""

    code = "VALIDATION_ERROR"


class Unauthenticated(DiscoveryError):
    """Identity is required but could not be resolved."""

    code = "UNAUTHENTICATED"


class CommerceNotFound(DiscoveryError):
    code = "COMMERCE_NOT_FOUND"


class UpstreamQueryError(DiscoveryError):
    """A ranking or filter query failed at the data store."""

    code = "UPSTREAM_QUERY_ERROR"


class PartialDegradation(DiscoveryError):
    """The subscribed branch failed while the general branch succeeded.

    Taxonomy marker only: it is never raised. The feed composer logs a warning
    tagged with this code and returns an empty subscribed list.
    """

    code = "PARTIAL_DEGRADATION"
