"""Data structures stored in the site graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(slots=True)
class Host:
    """A registered crawl root."""

    name: str
    last_status: int
    canonical_url: str


@dataclass(slots=True)
class Page:
    """A fetched document, or a stub for one that has only been linked to.

    ``child_ids`` is reserved for a parent/child hierarchy and is never
    filled in by the crawl step.
    """

    url: str
    status: Optional[int] = None
    resource_ids: List[int] = field(default_factory=list)
    reference_ids: List[int] = field(default_factory=list)
    child_ids: List[int] = field(default_factory=list)

    @property
    def is_stub(self) -> bool:
        return self.status is None


@dataclass(slots=True)
class Resource:
    """An embedded asset (image, script, frame ...) referenced by a page."""

    url: str
    resource_type: str = ""


class InsertStatus(str, Enum):
    """Terminal state of a root insertion."""

    EXTRACTED = "extracted"
    ALREADY_VISITED = "already_visited"
    RESOLUTION_FAILED = "resolution_failed"
    FETCH_FAILED = "fetch_failed"
    DECODE_FAILED = "decode_failed"


@dataclass(slots=True)
class InsertOutcome:
    """Result of one root insertion, returned as a value and never raised."""

    status: InsertStatus
    url: str
    identity: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is InsertStatus.EXTRACTED
