"""
Store errors.
"""


class StoreTimeoutError(Exception):
    """
    A store query exceeded its deadline.

    Raised for PostgreSQL statement timeouts and connection pool exhaustion.
    Callers must not retry in a tight loop.
    """
