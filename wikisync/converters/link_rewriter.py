"""Link rewriting pipeline applied to each document at render time.

Stages, in order:
1. PrefixStripStage - legacy ``wiki/`` links and images to site URLs
2. WikilinkStage - ``[[...]]`` / ``![[...]]`` spans to link and image nodes
3. CalloutStage - ``> [!type] Title`` blockquotes to aside nodes
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import unquote

from ..models import WikilinkReference
from .nodes import (
    Aside,
    Blockquote,
    Image,
    Link,
    Node,
    NodeTransformer,
    Paragraph,
    Text,
    text_content
)
from .paths import (
    attachment_url,
    has_legacy_prefix,
    is_external_url,
    is_image_filename,
    resolve_link_target,
    site_url,
    split_fragment,
    strip_wiki_prefix
)
from .tokenizer import find_wikilinks, parse_callout_header

logger = logging.getLogger('wikisync.converters.link_rewriter')

# Obsidian callout types to aside categories; anything else is a note
CALLOUT_TYPE_MAP = {
    'note': 'note',
    'tip': 'tip',
    'info': 'note',
    'warning': 'caution',
    'caution': 'caution',
    'danger': 'danger',
    'error': 'danger',
    'bug': 'danger',
    'example': 'tip',
    'quote': 'note',
    'success': 'tip',
    'question': 'note',
    'todo': 'note',
    'abstract': 'note',
    'summary': 'note',
}

DEFAULT_ASIDE_CATEGORY = 'note'


def map_callout_type(callout_type: str) -> str:
    """Aside category for an Obsidian callout type (case-insensitive)."""
    return CALLOUT_TYPE_MAP.get(callout_type.lower(), DEFAULT_ASIDE_CATEGORY)


def rewrite_legacy_url(url: str, is_image: bool = False) -> Optional[str]:
    """Rewrite a ``wiki/``-prefixed URL to its published form.

    Returns:
        The new URL, or None when the URL is external, anchor-only or has no
        legacy prefix
    """
    if not url or url.startswith('#') or is_external_url(url):
        return None
    if not has_legacy_prefix(url):
        return None

    path, fragment = split_fragment(strip_wiki_prefix(url))
    path = unquote(path)
    if is_image or is_image_filename(path):
        return attachment_url(path)
    return site_url(path, unquote(fragment) if fragment else None)


class PrefixStripStage(NodeTransformer):
    """Strips legacy ``wiki/`` prefixes from link and image targets."""

    def __init__(self):
        self.rewritten = 0

    def visit_link(self, node: Link) -> None:
        new_url = rewrite_legacy_url(node.url)
        if new_url is not None:
            logger.debug(f"Rewrote link {node.url} -> {new_url}")
            node.url = new_url
            self.rewritten += 1
        self.visit_children(node)

    def visit_image(self, node: Image) -> None:
        new_url = rewrite_legacy_url(node.url, is_image=True)
        if new_url is not None:
            logger.debug(f"Rewrote image {node.url} -> {new_url}")
            node.url = new_url
            self.rewritten += 1


class WikilinkStage(NodeTransformer):
    """Replaces wikilink spans inside text nodes with link or image nodes."""

    def __init__(self):
        self.resolved = 0

    def visit_link(self, node: Link) -> None:
        # Links cannot nest
        return None

    def visit_text(self, node: Text) -> Optional[List[Node]]:
        matches = find_wikilinks(node.value)
        if not matches:
            return None

        replacement: List[Node] = []
        last_index = 0
        for match in matches:
            if match.start > last_index:
                replacement.append(Text(node.value[last_index:match.start]))
            replacement.append(self.reference_to_node(match.reference))
            last_index = match.end
        if last_index < len(node.value):
            replacement.append(Text(node.value[last_index:]))

        self.resolved += len(matches)
        return replacement

    @staticmethod
    def reference_to_node(reference: WikilinkReference) -> Node:
        """Build the link or image node a wikilink reference resolves to."""
        if reference.is_embed and is_image_filename(reference.raw_target):
            return Image(url=attachment_url(reference.raw_target), alt=reference.display_name)

        url = resolve_link_target(reference.raw_target, reference.heading_fragment)
        return Link(
            url=url,
            children=[Text(reference.display_name)],
            css_class='internal-link-embed' if reference.is_embed else 'internal-link'
        )


class CalloutStage(NodeTransformer):
    """Converts callout blockquotes into aside nodes."""

    def __init__(self):
        self.converted = 0

    def visit_blockquote(self, node: Blockquote) -> Optional[Aside]:
        self.visit_children(node)
        if not node.children or not isinstance(node.children[0], Paragraph):
            return None

        paragraph = node.children[0]
        if not paragraph.children or not isinstance(paragraph.children[0], Text):
            return None

        first_text = paragraph.children[0]
        header = parse_callout_header(first_text.value)
        if header is None:
            return None

        title_parts = [header.title or '']
        body_inlines: List[Node] = []
        remainder = first_text.value[header.end:]
        rest = paragraph.children[1:]

        if remainder.startswith('\n'):
            body_inlines.append(Text(remainder[1:]))
            body_inlines.extend(rest)
        else:
            # Header line continues into following inline nodes
            in_header = True
            for child in rest:
                if not in_header:
                    body_inlines.append(child)
                elif isinstance(child, Text) and '\n' in child.value:
                    line_end, after = child.value.split('\n', 1)
                    title_parts.append(line_end)
                    body_inlines.append(Text(after))
                    in_header = False
                else:
                    title_parts.append(text_content(child))

        title = ' '.join(part.strip() for part in title_parts if part.strip()) or None
        body: List[Node] = []
        inline_body = self._trim_inlines(body_inlines)
        if inline_body:
            body.append(Paragraph(children=inline_body))
        body.extend(node.children[1:])

        category = map_callout_type(header.callout_type)
        if not body:
            logger.warning(f"Callout [!{header.callout_type}] has no content")
        logger.debug(f"Converted callout [!{header.callout_type}] -> {category} ({len(body)} block(s))")
        self.converted += 1
        return Aside(category=category, title=title, children=body)

    @staticmethod
    def _trim_inlines(inlines: List[Node]) -> List[Node]:
        """Strip whitespace at both ends of an inline run, dropping empty text."""
        result = list(inlines)
        while result and isinstance(result[0], Text):
            value = result[0].value.lstrip()
            if value:
                result[0] = Text(value)
                break
            result.pop(0)
        while result and isinstance(result[-1], Text):
            value = result[-1].value.rstrip()
            if value:
                result[-1] = Text(value)
                break
            result.pop()
        return result


class LinkRewritePipeline:
    """Runs all rewriting stages over a document tree."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('wikisync.converters.link_rewriter')
        self.stats = {
            'links_rewritten': 0,
            'wikilinks_resolved': 0,
            'callouts_converted': 0
        }

    def run(self, tree: Node) -> Node:
        """Transform ``tree`` in place and return the (possibly new) root."""
        prefix_stage = PrefixStripStage()
        wikilink_stage = WikilinkStage()
        callout_stage = CalloutStage()

        tree = prefix_stage.transform(tree)
        tree = wikilink_stage.transform(tree)
        tree = callout_stage.transform(tree)

        self.stats['links_rewritten'] += prefix_stage.rewritten
        self.stats['wikilinks_resolved'] += wikilink_stage.resolved
        self.stats['callouts_converted'] += callout_stage.converted

        self.logger.debug(
            f"Rewrote {prefix_stage.rewritten} legacy links, resolved "
            f"{wikilink_stage.resolved} wikilinks, converted {callout_stage.converted} callouts"
        )
        return tree

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()


__all__ = [
    'CALLOUT_TYPE_MAP',
    'map_callout_type',
    'rewrite_legacy_url',
    'PrefixStripStage',
    'WikilinkStage',
    'CalloutStage',
    'LinkRewritePipeline'
]
