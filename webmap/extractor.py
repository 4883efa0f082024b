"""Extract link targets from HTML markup.

Every opening tag is inspected; attributes are classified through
``ATTRIBUTE_KINDS`` regardless of the tag they sit on, so ``<a href>`` and
``<link href>`` are both references while ``<img src>`` and ``<script src>``
are both resources. Document order is preserved and nothing is deduplicated.

Tokenizing is delegated to lxml's push parser, so markup can be fed in chunks::

    extractor = LinkExtractor()
    for chunk in chunks:
        extractor.feed(chunk)
    links = extractor.close()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from lxml import etree

LOGGER = logging.getLogger(__name__)


class LinkKind(str, Enum):
    """How an attribute value is recorded in the graph."""

    REFERENCE = "reference"
    RESOURCE = "resource"


ATTRIBUTE_KINDS: Dict[str, LinkKind] = {
    "href": LinkKind.REFERENCE,
    "src": LinkKind.RESOURCE,
}


@dataclass(slots=True)
class ExtractedLinks:
    """Raw link targets in document order."""

    references: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)

    def add(self, kind: LinkKind, value: str) -> None:
        if kind is LinkKind.REFERENCE:
            self.references.append(value)
        else:
            self.resources.append(value)


class LinkExtractor:
    """Push-based link extractor over lxml's HTML pull parser."""

    def __init__(self, encoding: Optional[str] = None) -> None:
        # huge_tree lifts libxml2's limit of about 255 open elements
        self._parser = etree.HTMLPullParser(
            events=("start",), encoding=encoding, huge_tree=True
        )
        self._links = ExtractedLinks()
        self._fed = False
        self._closed = False

    def feed(self, chunk: Union[bytes, str]) -> None:
        if self._closed:
            raise RuntimeError("LinkExtractor is already closed")
        if not chunk:
            return
        self._parser.feed(chunk)
        self._fed = True
        self._drain()

    def close(self) -> ExtractedLinks:
        """Signal end of input and return everything collected."""
        if self._closed:
            return self._links
        self._closed = True
        if self._fed:
            try:
                self._parser.close()
            except etree.XMLSyntaxError as exc:
                LOGGER.debug("Tokenizer stopped early: %s", exc)
            self._drain()
        return self._links

    def _drain(self) -> None:
        for _event, element in self._parser.read_events():
            self._collect(element.attrib.items())

    def _collect(self, attributes: Iterable[Tuple[str, str]]) -> None:
        for name, value in attributes:
            kind = ATTRIBUTE_KINDS.get(_local_name(name))
            if kind is not None:
                self._links.add(kind, value)


def extract(body: Union[bytes, str], encoding: Optional[str] = None) -> ExtractedLinks:
    """Extract references and resources from a complete document."""
    if isinstance(body, str):
        encoding = None
    extractor = LinkExtractor(encoding=encoding)
    extractor.feed(body)
    return extractor.close()


def _local_name(name: str) -> str:
    if name.startswith("{"):
        return name.rpartition("}")[2]
    return name
