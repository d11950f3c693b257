"""
Engine errors surfaced to manual triggers.
"""


class CycleInProgressError(Exception):
    """A reconciliation cycle or manual check is already running."""


class SessionNotFoundError(Exception):
    """The referenced marketplace session does not exist."""


class SessionDisabledError(Exception):
    """Disabled sessions cannot be checked manually."""
