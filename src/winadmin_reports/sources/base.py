from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class EntitySummary:
    id: str
    display_name: Optional[str]
    enabled: bool


@dataclass(frozen=True)
class EntityDetail:
    """Detail fields of one user as returned by a backend.

    `methods` holds backend-specific method type strings (Graph `@odata.type`
    or MSOnline `MethodType`); normalization maps them to report categories.
    """

    id: str
    display_name: Optional[str]
    enabled: Optional[bool]
    methods: List[str] = field(default_factory=list)
    default_method: Optional[str] = None


class DirectorySource(ABC):
    """Read-only directory / identity provider.

    Implementations receive an already-authenticated handle; they never
    negotiate credentials themselves.
    """

    name: str = "directory"

    # True when list_entities(enabled_only=True) filters at the source.
    supports_enabled_filter: bool = False

    @abstractmethod
    def list_entities(self, *, enabled_only: bool = False) -> List[EntitySummary]:
        """Enumerate users. Raises SourceUnavailable when enumeration is impossible."""

    @abstractmethod
    def get_entity_detail(self, identifier: str) -> EntityDetail:
        """Fetch one user.

        Raises EntityNotFound / EntityFetchError for per-user problems and
        SourceUnavailable for connection-level failures.
        """
