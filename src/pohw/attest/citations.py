from __future__ import annotations

import logging
from typing import Optional

from ..api.models import Citation, CitationPosition, ContentAddress
from ..errors import InvalidInput

POHW_HASH = "pohw-hash"
DOI = "doi"
OTHER = "other"

_ARCHIVE_GATEWAYS = {
    "ipfs": ("ipfs://", "https://ipfs.io/ipfs/{}"),
    "arweave": ("ar://", "https://arweave.net/{}"),
}


def content_address(address_type: str, value: str) -> ContentAddress:
    try:
        scheme, url_fmt = _ARCHIVE_GATEWAYS[address_type]
    except KeyError:
        raise InvalidInput(f"Unsupported content address type: {address_type!r}") from None
    normalized = value.strip()
    if normalized.startswith(scheme):
        normalized = normalized[len(scheme):]
    if not normalized:
        raise InvalidInput("Content address value is empty")
    return ContentAddress(type=address_type, value=normalized, url=url_fmt.format(normalized))


def make_citation(
    text: str,
    source: str,
    source_type: str,
    start: int,
    end: int,
    other_type: Optional[str] = None,
    address_type: Optional[str] = None,
    address_value: Optional[str] = None,
) -> Citation:
    """Build a derivedFrom entry, normalizing the source the way the registry expects."""
    value = source.strip()
    if not value:
        raise InvalidInput("Citation source is empty")
    if end < start:
        raise InvalidInput(f"Citation end ({end}) precedes start ({start})")
    if source_type == OTHER:
        if not other_type or not other_type.strip():
            raise InvalidInput("Citations of type 'other' need an identifier type (e.g. ISBN, arXiv)")
        other_type = other_type.strip()
        value = f"{other_type}:{value}"
    else:
        other_type = None
    if source_type == POHW_HASH and not value.startswith("0x"):
        logging.warning("PoHW hash citation %r does not start with 0x", value)
    if source_type == DOI and not value.startswith("doi:"):
        value = "doi:" + value
    address = None
    if source_type == POHW_HASH and address_type and address_value:
        address = content_address(address_type, address_value)
    return Citation(
        text=text,
        source=value,
        source_type=source_type,
        position=CitationPosition(start=start, end=end),
        other_type=other_type,
        content_address=address,
    )


class CitationSet:
    """Ordered source mappings; one mapping per text range."""

    def __init__(self):
        self._items: list[Citation] = []

    def add(self, citation: Citation) -> None:
        for i, existing in enumerate(self._items):
            if existing.position == citation.position:
                self._items[i] = citation
                return
        self._items.append(citation)

    def remove(self, index: int) -> None:
        del self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def to_list(self) -> list[Citation]:
        return list(self._items)
