"""Errors raised while composing the hosting resource graph.

All of them are structural defects found during synthesis, before anything
is handed to CloudFormation. None of them is retried.
"""


class HostingError(Exception):
    """Base class for every synthesis-time failure."""


class ConfigurationError(HostingError):
    """Missing or malformed input in the configuration record."""


class TopologyError(HostingError):
    """The requested network or service layout cannot be built."""


class DuplicateExportError(HostingError):
    """A cross-unit reference name was exported twice."""


class NotFoundError(HostingError):
    """A cross-unit reference was read before any unit exported it."""
