"""Document tree used by the link rewriting pipeline.

The tree is a closed set of node classes. Every node has a ``kind`` string used
for visitor dispatch (``visit_<kind>``); parents expose a mutable ``children``
list.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union


@dataclass
class Text:
    value: str
    kind = 'text'


@dataclass
class Code:
    """Code block, or inline code span when ``inline`` is set."""

    value: str
    lang: Optional[str] = None
    inline: bool = False
    kind = 'code'


@dataclass
class Image:
    url: str
    alt: str = ''
    title: Optional[str] = None
    kind = 'image'


@dataclass
class Link:
    url: str
    children: List['Node'] = field(default_factory=list)
    title: Optional[str] = None
    css_class: Optional[str] = None
    kind = 'link'


@dataclass
class Paragraph:
    children: List['Node'] = field(default_factory=list)
    kind = 'paragraph'


@dataclass
class Heading:
    depth: int
    children: List['Node'] = field(default_factory=list)
    kind = 'heading'


@dataclass
class Blockquote:
    children: List['Node'] = field(default_factory=list)
    kind = 'blockquote'


@dataclass
class ListItem:
    children: List['Node'] = field(default_factory=list)
    kind = 'list_item'


@dataclass
class ListNode:
    ordered: bool = False
    children: List[ListItem] = field(default_factory=list)
    start: Optional[int] = None
    kind = 'list'


@dataclass
class Aside:
    """Admonition block; ``category`` is one of ASIDE_CATEGORIES."""

    category: str
    title: Optional[str] = None
    children: List['Node'] = field(default_factory=list)
    kind = 'aside'


@dataclass
class Container:
    """Any other element: root, emphasis, strong, delete, table, thematic break.

    ``name`` identifies the element; ``attributes`` keeps whatever the writer
    needs to round-trip it.
    """

    name: str
    children: List['Node'] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)
    kind = 'container'


Node = Union[Text, Code, Image, Link, Paragraph, Heading, Blockquote,
             ListItem, ListNode, Aside, Container]

PARENT_TYPES = (Link, Paragraph, Heading, Blockquote, ListItem, ListNode, Aside, Container)

ASIDE_CATEGORIES = ('note', 'tip', 'caution', 'danger')


def root(*children: Node) -> Container:
    """Create a document root."""
    return Container(name='root', children=list(children))


def has_children(node: Node) -> bool:
    return isinstance(node, PARENT_TYPES)


def iter_nodes(node: Node) -> Iterator[Node]:
    """Pre-order traversal of ``node`` and all its descendants."""
    yield node
    if has_children(node):
        for child in node.children:
            yield from iter_nodes(child)


def text_content(node: Node) -> str:
    """Concatenated text of a node, recursing through inline children."""
    if isinstance(node, Text):
        return node.value
    if isinstance(node, Code):
        return node.value
    if isinstance(node, Image):
        return node.alt
    if has_children(node):
        return ''.join(text_content(child) for child in node.children)
    return ''


class NodeTransformer:
    """Single-pass tree rewriter in the spirit of ``ast.NodeTransformer``.

    ``visit_<kind>`` methods may return the node (possibly modified), a list of
    replacement nodes, or None to keep the node unchanged. The default
    behaviour recurses into children.
    """

    def transform(self, tree: Node) -> Node:
        result = self.visit(tree)
        if isinstance(result, list):
            return Container(name='root', children=result)
        return tree if result is None else result

    def visit(self, node: Node) -> Union[None, Node, List[Node]]:
        visitor = getattr(self, f'visit_{node.kind}', self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: Node) -> Union[None, Node, List[Node]]:
        if has_children(node):
            self.visit_children(node)
        return None

    def visit_children(self, node: Node) -> None:
        new_children = []
        for child in node.children:
            result = self.visit(child)
            if result is None:
                new_children.append(child)
            elif isinstance(result, list):
                new_children.extend(result)
            else:
                new_children.append(result)
        node.children = new_children


__all__ = [
    'Text',
    'Code',
    'Image',
    'Link',
    'Paragraph',
    'Heading',
    'Blockquote',
    'ListItem',
    'ListNode',
    'Aside',
    'Container',
    'Node',
    'ASIDE_CATEGORIES',
    'root',
    'has_children',
    'iter_nodes',
    'text_content',
    'NodeTransformer'
]
