"""
Marketplace polling errors.
"""


class MarketplaceError(Exception):
    """Transient failure talking to the marketplace scraping endpoint."""


class MarketplaceAuthError(MarketplaceError):
    """
    The scraping service rejected our own service token (HTTP 302).

    This is a deployment problem, not a credential problem: it must never
    be attributed to a marketplace session.
    """


class CredentialExpired(Exception):
    """The marketplace reported the polled credential as expired."""
