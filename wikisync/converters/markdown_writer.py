"""Markdown writer that serializes a document tree back to markdown text."""

import logging
import re
from typing import List, Optional

from .nodes import (
    Aside,
    Blockquote,
    Code,
    Container,
    Heading,
    Image,
    Link,
    ListNode,
    Node,
    Paragraph,
    Text
)

BLOCK_TYPES = (Paragraph, Heading, Blockquote, ListNode, Aside)

INLINE_MARKERS = {
    'emphasis': '*',
    'strong': '**',
    'delete': '~~',
}

_BACKSLASH_ESCAPED = re.compile(r"([\\`*_\[\]])")
_BRACKETED_DESTINATION = re.compile(r"[\s()<>]")


def escape_text(value: str) -> str:
    """Escape markdown and HTML metacharacters so text stays literal."""
    value = value.replace('&', '&amp;').replace('<', '&lt;').replace('>', '&gt;')
    return _BACKSLASH_ESCAPED.sub(r'\\\1', value)


def format_destination(url: str) -> str:
    """Link destination; wrapped in angle brackets when it holds spaces or parentheses."""
    if not _BRACKETED_DESTINATION.search(url):
        return url
    return '<' + url.replace('<', '%3C').replace('>', '%3E') + '>'


def _is_block(node: Node) -> bool:
    if isinstance(node, BLOCK_TYPES):
        return True
    if isinstance(node, Code):
        return not node.inline
    if isinstance(node, Container):
        return node.name in ('root', 'thematic_break')
    return False


def _indent(text: str, prefix: str, first_prefix: Optional[str] = None) -> str:
    lines = text.split('\n')
    first = first_prefix if first_prefix is not None else prefix
    out = []
    for index, line in enumerate(lines):
        lead = first if index == 0 else prefix
        out.append(lead + line if line else lead.rstrip())
    return '\n'.join(out)


class MarkdownWriter:
    """Renders document trees as markdown.

    Asides are written in the directive syntax understood by Starlight:

        :::caution[Careful]
        body text
        :::
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('wikisync.converters.markdown_writer')

    def render(self, tree: Node) -> str:
        frontmatter = None
        if isinstance(tree, Container) and tree.name == 'root':
            frontmatter = tree.attributes.get('frontmatter')
            body = self._render_blocks(tree.children)
        else:
            body = self._render_blocks([tree])

        output = body.rstrip('\n') + '\n'
        if frontmatter is not None:
            output = f"---\n{frontmatter}\n---\n\n" + output
        return output

    def _render_blocks(self, nodes: List[Node], separator: str = '\n\n') -> str:
        parts = []
        inline_run: List[Node] = []
        for node in nodes:
            if _is_block(node) or (isinstance(node, Container) and node.name == 'html'):
                if inline_run:
                    parts.append(self._render_inlines(inline_run).strip())
                    inline_run = []
                parts.append(self._render_block(node))
            else:
                inline_run.append(node)
        if inline_run:
            parts.append(self._render_inlines(inline_run).strip())
        return separator.join(part for part in parts if part)

    def _render_block(self, node: Node) -> str:
        if isinstance(node, Paragraph):
            return self._render_inlines(node.children)
        if isinstance(node, Heading):
            return '#' * node.depth + ' ' + self._render_inlines(node.children).strip()
        if isinstance(node, Blockquote):
            return _indent(self._render_blocks(node.children), '> ')
        if isinstance(node, ListNode):
            return self._render_list(node)
        if isinstance(node, Code):
            fence = '````' if '```' in node.value else '```'
            return f"{fence}{node.lang or ''}\n{node.value}\n{fence}"
        if isinstance(node, Aside):
            opening = f":::{node.category}"
            if node.title:
                opening += f"[{escape_text(node.title)}]"
            body = self._render_blocks(node.children)
            return f"{opening}\n{body}\n:::" if body else f"{opening}\n:::"
        if isinstance(node, Container):
            if node.name == 'thematic_break':
                return '---'
            if node.name == 'html':
                return node.attributes.get('html', '')
            return self._render_blocks(node.children)
        return self._render_inlines([node])

    def _render_list(self, node: ListNode) -> str:
        lines = []
        number = node.start if node.start is not None else 1
        for item in node.children:
            marker = f"{number}." if node.ordered else '-'
            number += 1
            content = self._render_blocks(item.children, separator='\n')
            lines.append(_indent(content, ' ' * (len(marker) + 1), first_prefix=marker + ' '))
        return '\n'.join(lines)

    def _render_inlines(self, nodes: List[Node]) -> str:
        return ''.join(self._render_inline(node) for node in nodes)

    def _render_inline(self, node: Node) -> str:
        if isinstance(node, Text):
            return escape_text(node.value)
        if isinstance(node, Code):
            if node.inline:
                fence = '``' if '`' in node.value else '`'
                return f"{fence}{node.value}{fence}"
            return self._render_block(node)
        if isinstance(node, Link):
            title = f' "{node.title}"' if node.title else ''
            return f"[{self._render_inlines(node.children)}]({format_destination(node.url)}{title})"
        if isinstance(node, Image):
            title = f' "{node.title}"' if node.title else ''
            return f"![{escape_text(node.alt)}]({format_destination(node.url)}{title})"
        if isinstance(node, Container):
            if node.name in INLINE_MARKERS:
                marker = INLINE_MARKERS[node.name]
                return f"{marker}{self._render_inlines(node.children)}{marker}"
            if node.name == 'html':
                return node.attributes.get('html', '')
            if node.name == 'thematic_break':
                return '---'
            return self._render_inlines(node.children)
        return self._render_block(node)


__all__ = ['MarkdownWriter', 'escape_text', 'format_destination']
