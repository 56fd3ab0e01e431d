"""Tokenizer for Obsidian wikilink and callout syntax.

Produces structured matches before any tree mutation so span replacement can
be tested independently of tree walking.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from ..models import WikilinkReference

# [[target]], [[target|alias]], [[target#heading]], ![[target]]
WIKILINK_PATTERN = re.compile(r'(!)?\[\[([^\[\]\n]+?)\]\]')

# [!type], [!type]+, [!type]- followed by an optional title on the same line
CALLOUT_HEADER_PATTERN = re.compile(r'^\[!(\w+)\]([-+])?[ \t]*([^\n]*)')


@dataclass(frozen=True)
class WikilinkMatch:
    """A wikilink occurrence with its exact span in the scanned text."""

    start: int
    end: int
    reference: WikilinkReference


@dataclass(frozen=True)
class CalloutHeader:
    """Parsed ``[!type]`` header of a callout blockquote.

    ``end`` is the offset just past the header line (excluding the newline).
    """

    callout_type: str
    fold: Optional[str]
    title: Optional[str]
    end: int


def parse_wikilink_body(body: str, is_embed: bool = False) -> WikilinkReference:
    """Parse the text between ``[[`` and ``]]``."""
    target_part, _, alias = body.partition('|')
    target, _, heading = target_part.partition('#')
    return WikilinkReference(
        raw_target=target.strip(),
        alias=alias.strip() or None,
        heading_fragment=heading.strip() or None,
        is_embed=is_embed
    )


def find_wikilinks(text: str) -> List[WikilinkMatch]:
    """Return every wikilink in ``text`` in order of appearance."""
    matches = []
    for match in WIKILINK_PATTERN.finditer(text):
        reference = parse_wikilink_body(match.group(2), is_embed=match.group(1) == '!')
        if not reference.raw_target and not reference.heading_fragment:
            continue
        matches.append(WikilinkMatch(start=match.start(), end=match.end(), reference=reference))
    return matches


def parse_callout_header(text: str) -> Optional[CalloutHeader]:
    """Parse a callout header at the very start of ``text``.

    Returns:
        CalloutHeader, or None if ``text`` does not start with ``[!type]``
    """
    match = CALLOUT_HEADER_PATTERN.match(text)
    if not match:
        return None
    title = match.group(3).strip()
    return CalloutHeader(
        callout_type=match.group(1).lower(),
        fold=match.group(2),
        title=title or None,
        end=match.end()
    )


__all__ = [
    'WIKILINK_PATTERN',
    'CALLOUT_HEADER_PATTERN',
    'WikilinkMatch',
    'CalloutHeader',
    'parse_wikilink_body',
    'find_wikilinks',
    'parse_callout_header'
]
