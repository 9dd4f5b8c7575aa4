from __future__ import annotations


class ResyncError(Exception):
    """Raised when a recoverable resync error occurs."""


class ConfigError(ResyncError):
    """Settings could not be loaded or are invalid."""


class DiscoveryError(ResyncError):
    """The resource lister could not enumerate resources."""


class EmptyResourceSetError(ResyncError):
    """A session was requested for zero resources."""


class TriggerError(ResyncError):
    """A sync trigger did not reach the controller for one resource."""


class ReadError(ResyncError):
    """The status of one resource could not be read."""
