"""
Marketplace polling: HTTP client, response parsing and batch attribution.
"""

from parcelwatch.marketplace.attribution import (
    Attribution,
    AttributionRule,
    attribute_batch,
    attribute_record,
)
from parcelwatch.marketplace.client import MarketplaceClient, normalize_credential
from parcelwatch.marketplace.errors import (
    CredentialExpired,
    MarketplaceAuthError,
    MarketplaceError,
)
from parcelwatch.marketplace.parser import is_plausible, parse_response

__all__ = [
    "Attribution",
    "AttributionRule",
    "CredentialExpired",
    "MarketplaceAuthError",
    "MarketplaceClient",
    "MarketplaceError",
    "attribute_batch",
    "attribute_record",
    "is_plausible",
    "normalize_credential",
    "parse_response",
]
