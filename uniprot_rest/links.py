"""Parsing of RFC 5988 ``Link`` headers.

UniProt advertises the next page of a search as::

    Link: <https://rest.uniprot.org/uniprotkb/search?cursor=...&size=500>; rel="next"

The URL is used verbatim for the following request.  The cursor embedded in
it is never decoded or rebuilt.
"""

from __future__ import annotations

import re
from typing import Mapping

__all__ = ["extract_next_link", "find_header", "parse_link_header"]

_LINK_RE = re.compile(r'<(?P<url>[^<>]+)>[\s;]*rel="?(?P<rel>[^";,]+)"?')


def find_header(headers: Mapping[str, str] | None, name: str) -> str | None:
    """Return the value of header ``name`` using a case-insensitive lookup."""

    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == wanted:
            return value
    return None


def parse_link_header(value: str | None) -> dict[str, str]:
    """Return a mapping of relation name to URL for every entry in ``value``.

    A space separated ``rel`` value such as ``"next last"`` registers the URL
    under each relation.  The first URL wins when a relation appears more than
    once.  Malformed entries are skipped.
    """

    links: dict[str, str] = {}
    if not value or not isinstance(value, str):
        return links
    for match in _LINK_RE.finditer(value):
        for rel in match.group("rel").lower().split():
            links.setdefault(rel, match.group("url"))
    return links


def extract_next_link(headers: Mapping[str, str] | None) -> str | None:
    """Return the ``rel="next"`` URL from ``headers`` or ``None``.

    Never raises: a missing, malformed or next-less header yields ``None``.
    """

    return parse_link_header(find_header(headers, "link")).get("next")
