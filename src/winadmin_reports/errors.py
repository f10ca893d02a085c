from __future__ import annotations


class ReportError(Exception):
    """Base class for all winadmin_reports errors."""


class ConfigError(ReportError):
    """Invalid invocation: bad output path, query or config file.

    Always raised before any collaborator is contacted.
    """


class SourceUnavailable(ReportError):
    """The data source cannot be reached or refuses the credentials."""


class EntityError(ReportError):
    """A single entity could not be reported on. Never aborts a run."""

    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(f"{identifier}: {reason}")
        self.identifier = identifier
        self.reason = reason


class EntityNotFound(EntityError):
    def __init__(self, identifier: str, reason: str = "not found") -> None:
        super().__init__(identifier, reason)


class EntityFetchError(EntityError):
    pass
