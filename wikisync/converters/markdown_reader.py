"""Markdown reader that parses document text into the rewriting node tree.

Markdown is rendered to HTML with Python-Markdown and the HTML is walked with
BeautifulSoup, mapping each element onto the closed node set in ``nodes``.
"""

import logging
import re
from typing import List, Optional, Tuple

import markdown as md
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .nodes import (
    Blockquote,
    Code,
    Container,
    Heading,
    Image,
    Link,
    ListItem,
    ListNode,
    Node,
    Paragraph,
    Text
)

FRONTMATTER_PATTERN = re.compile(r'\A---[ \t]*\n(.*?\n)?---[ \t]*(?:\n|\Z)', re.DOTALL)

INLINE_CONTAINERS = {
    'em': 'emphasis',
    'i': 'emphasis',
    'strong': 'strong',
    'b': 'strong',
    'del': 'delete',
    's': 'delete',
}


def split_frontmatter(text: str) -> Tuple[Optional[str], str]:
    """Separate a leading YAML front matter block from the markdown body.

    Returns:
        Tuple of (raw front matter without delimiters or None, body)
    """
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return None, text
    return (match.group(1) or '').rstrip('\n'), text[match.end():]


class MarkdownReader:
    """Parses markdown text into a document tree."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the markdown reader.

        Args:
            logger: Logger instance
        """
        self.logger = logger or logging.getLogger('wikisync.converters.markdown_reader')
        self.md = md.Markdown(extensions=['fenced_code', 'tables', 'sane_lists'])

    def parse(self, text: str) -> Container:
        """
        Parse markdown into a root container node.

        Front matter is not parsed as markdown; it is kept verbatim in the
        root's ``frontmatter`` attribute.

        Args:
            text: Markdown document

        Returns:
            Root Container node
        """
        frontmatter, body = split_frontmatter(text)

        self.md.reset()
        html = self.md.convert(body)
        soup = BeautifulSoup(html, 'html.parser')

        tree = Container(name='root', children=self._convert_blocks(soup.children))
        if frontmatter is not None:
            tree.attributes['frontmatter'] = frontmatter

        self.logger.debug(f"Parsed {len(text)} chars into {len(tree.children)} block(s)")
        return tree

    def _convert_blocks(self, elements) -> List[Node]:
        """Convert block-level siblings, dropping inter-block whitespace."""
        nodes = []
        for element in elements:
            if isinstance(element, NavigableString) and not element.strip():
                continue
            node = self._convert(element)
            if node is not None:
                nodes.append(node)
        return nodes

    def _convert_inlines(self, elements) -> List[Node]:
        nodes = []
        for element in elements:
            node = self._convert(element)
            if node is not None:
                nodes.append(node)
        return nodes

    def _convert(self, element) -> Optional[Node]:
        if isinstance(element, Comment):
            return None
        if isinstance(element, NavigableString):
            return Text(str(element))
        if not isinstance(element, Tag):
            return None

        name = element.name
        if name == 'p':
            return Paragraph(children=self._convert_inlines(element.children))
        if name in ('h1', 'h2', 'h3', 'h4', 'h5', 'h6'):
            return Heading(depth=int(name[1]), children=self._convert_inlines(element.children))
        if name == 'blockquote':
            return Blockquote(children=self._convert_blocks(element.children))
        if name in ('ul', 'ol'):
            return self._convert_list(element)
        if name == 'pre':
            return self._convert_code_block(element)
        if name == 'code':
            return Code(value=element.get_text(), inline=True)
        if name == 'a':
            return Link(
                url=element.get('href', ''),
                children=self._convert_inlines(element.children),
                title=element.get('title')
            )
        if name == 'img':
            return Image(
                url=element.get('src', ''),
                alt=element.get('alt', ''),
                title=element.get('title')
            )
        if name in INLINE_CONTAINERS:
            return Container(
                name=INLINE_CONTAINERS[name],
                children=self._convert_inlines(element.children)
            )
        if name == 'br':
            return Text('\n')
        if name == 'hr':
            return Container(name='thematic_break')

        # Tables and raw HTML pass through untouched
        return Container(name='html', attributes={'html': str(element)})

    def _convert_list(self, element: Tag) -> ListNode:
        items = []
        for child in element.children:
            if isinstance(child, Tag) and child.name == 'li':
                items.append(ListItem(children=self._convert_list_item(child)))

        start = None
        if element.name == 'ol' and element.get('start'):
            try:
                start = int(element['start'])
            except ValueError:
                self.logger.debug(f"Ignoring non-numeric list start: {element['start']}")
        return ListNode(ordered=element.name == 'ol', children=items, start=start)

    def _convert_list_item(self, element: Tag) -> List[Node]:
        nodes = self._convert_inlines(element.children)
        while nodes and isinstance(nodes[0], Text) and not nodes[0].value.strip():
            nodes.pop(0)
        while nodes and isinstance(nodes[-1], Text) and not nodes[-1].value.strip():
            nodes.pop()
        if nodes and isinstance(nodes[-1], Text):
            nodes[-1] = Text(nodes[-1].value.rstrip())
        return nodes

    def _convert_code_block(self, element: Tag) -> Code:
        code = element.find('code')
        source = code if code is not None else element

        lang = None
        for css_class in (code.get('class') or []) if code is not None else []:
            if css_class.startswith('language-'):
                lang = css_class[len('language-'):]
                break

        value = source.get_text()
        if value.endswith('\n'):
            value = value[:-1]
        return Code(value=value, lang=lang)


__all__ = ['MarkdownReader', 'split_frontmatter']
