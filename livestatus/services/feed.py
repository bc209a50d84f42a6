"""Extract the notified video id from a PubSubHubbub Atom payload."""

from __future__ import annotations

import logging
from typing import Any, Optional
from xml.parsers.expat import ExpatError

import xmltodict

logger = logging.getLogger(__name__)

_NAMESPACES = {
    "http://www.w3.org/2005/Atom": None,
    "http://www.youtube.com/xml/schemas/2015": "yt",
    "http://purl.org/atompub/tombstones/1.0": "at",
}


def _text(node: Any) -> Optional[str]:
    if isinstance(node, dict):
        node = node.get("#text")
    if isinstance(node, str):
        value = node.strip()
        return value or None
    return None


def extract_video_id(body: bytes | str) -> Optional[str]:
    """Return the ``yt:videoId`` of the first feed entry, or ``None``.

    ``None`` covers every "nothing actionable" case: unparseable markup,
    deleted-entry tombstones and entries without an id.
    """

    if not body:
        return None
    try:
        document = xmltodict.parse(
            body, process_namespaces=True, namespaces=_NAMESPACES
        )
    except ExpatError:
        logger.debug("ignoring unparseable notification body")
        return None

    feed = document.get("feed") if isinstance(document, dict) else None
    if not isinstance(feed, dict):
        return None
    if "at:deleted-entry" in feed:
        logger.info("ignoring deleted-entry notification")
        return None

    entry = feed.get("entry")
    if isinstance(entry, list):
        entry = entry[0] if entry else None
    if not isinstance(entry, dict):
        return None
    return _text(entry.get("yt:videoId"))


__all__ = ["extract_video_id"]
