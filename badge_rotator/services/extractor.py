"""Badge extraction: pull the first hyperlink anchor out of the source page."""

import logging
from typing import Optional

from bs4 import BeautifulSoup, Tag
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from badge_rotator.errors import ExtractionError
from badge_rotator.models.badge import BadgeFragment

logger = logging.getLogger(__name__)

BADGE_TAG = "a"

# The render service cannot draw the subscript two in "CO₂"
_SUBSCRIPT_TWO = "₂"


class SourceOrderFormatter(HTMLFormatter):
    """Minimal entity substitution, attributes kept in document order."""

    def __init__(self) -> None:
        super().__init__(entity_substitution=EntitySubstitution.substitute_xml)

    def attributes(self, tag: Tag):
        if tag.attrs is None:
            return []
        return list(tag.attrs.items())


def serialize(tag: Tag) -> str:
    """Render *tag* and its descendants back to HTML without reordering attributes."""
    return tag.decode(formatter=SourceOrderFormatter())


def find_first_anchor(root: Tag) -> Optional[Tag]:
    """Return the first ``<a>`` element under *root* in depth-first pre-order.

    The walk stops at the first match, so neither the match's descendants nor
    anything after it in document order is visited.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        if node.name == BADGE_TAG:
            return node
        # Push children in reverse so the leftmost child is visited first.
        stack.extend(child for child in reversed(node.contents) if isinstance(child, Tag))
    return None


def replace_subscript_two(html: str) -> str:
    return html.replace(_SUBSCRIPT_TWO, "2")


def extract_fragment(document: str) -> BadgeFragment:
    """Parse *document* and return the serialized badge anchor.

    Raises:
        ExtractionError: if the document contains no ``<a>`` element.
    """
    soup = BeautifulSoup(document, "lxml")
    anchor = find_first_anchor(soup)
    if anchor is None:
        logger.error("No <a> element found in the badge document")
        raise ExtractionError("Missing <a> in the node tree")

    html = replace_subscript_two(serialize(anchor))
    logger.info("Extracted badge fragment (%d chars)", len(html))
    return BadgeFragment(tag=anchor.name, html=html)
