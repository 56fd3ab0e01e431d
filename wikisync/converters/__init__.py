"""Render-time conversion of synced Obsidian markdown for the published site."""

import logging
from typing import Optional

from .link_rewriter import LinkRewritePipeline
from .markdown_reader import MarkdownReader
from .markdown_writer import MarkdownWriter
from .paths import attachment_url, is_image_filename, resolve_link_target, slugify


def rewrite_markdown(text: str, logger: Optional[logging.Logger] = None) -> str:
    """
    Convenience function running the full render-time rewrite over markdown text.

    This orchestrates:
    1. Parsing markdown into a document tree
    2. Legacy ``wiki/`` prefix stripping
    3. Wikilink and embed resolution
    4. Callout to aside conversion
    5. Serializing the tree back to markdown

    Args:
        text: Markdown document as synced from the repository
        logger: Optional logger instance (uses module logger if not provided)

    Returns:
        Rewritten markdown

    Example:
        >>> rewrite_markdown('See [[Getting Started/Setup]]')
        'See [Setup](/getting-started/setup)\\n'
    """
    if logger is None:
        logger = logging.getLogger('wikisync.converters')

    tree = MarkdownReader(logger=logger).parse(text)
    tree = LinkRewritePipeline(logger=logger).run(tree)
    return MarkdownWriter(logger=logger).render(tree)


__all__ = [
    'rewrite_markdown',
    'LinkRewritePipeline',
    'MarkdownReader',
    'MarkdownWriter',
    'attachment_url',
    'is_image_filename',
    'resolve_link_target',
    'slugify'
]
