"""Path, slug and attachment URL conventions shared by sync and render.

The sync engine writes documents and attachments using these rules and the
link rewriting pipeline computes URLs with the same functions, so a document
written by the engine is always reachable at the URL a link resolves to.
"""

import re
from typing import Optional, Tuple
from urllib.parse import unquote

IMAGE_EXTENSIONS = frozenset({
    'jpg', 'jpeg', 'png', 'gif', 'svg', 'webp', 'apng', 'bmp', 'ico'
})

ATTACHMENTS_URL_PREFIX = '/attachments/'
LEGACY_PREFIXES = ('wiki/', '/wiki/')

_WHITESPACE = re.compile(r'\s+')
_SLUG_DISALLOWED = re.compile(r'[^\w\-/]')
_FRAGMENT_DISALLOWED = re.compile(r'[^\w\-]')
_URL_SCHEME = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*:')


def is_image_filename(name: str) -> bool:
    """Check whether a filename (or path) has an image extension."""
    filename = filename_of(name)
    if '.' not in filename:
        return False
    return filename.rsplit('.', 1)[-1].lower() in IMAGE_EXTENSIONS


def filename_of(path: str) -> str:
    """Last segment of a slash-separated path."""
    return path.rstrip('/').rsplit('/', 1)[-1]


def is_external_url(url: str) -> bool:
    """True for URLs with a scheme (http:, mailto:, data:) or protocol-relative URLs."""
    return bool(_URL_SCHEME.match(url)) or url.startswith('//')


def has_legacy_prefix(path: str) -> bool:
    return path.startswith(LEGACY_PREFIXES)


def strip_wiki_prefix(path: str) -> str:
    """Remove a leading ``wiki/`` or ``/wiki/``."""
    for prefix in LEGACY_PREFIXES:
        if path.startswith(prefix):
            return path[len(prefix):]
    return path


def remove_index_suffix(path: str) -> str:
    """Remove a trailing ``/index.md``, ``/index`` or ``.md``."""
    if path in ('index', 'index.md'):
        return ''
    if path.endswith('/index.md'):
        return path[:-len('/index.md')]
    if path.endswith('/index'):
        return path[:-len('/index')]
    if path.endswith('.md'):
        return path[:-len('.md')]
    return path


def slugify(text: str) -> str:
    """Lowercase, whitespace to hyphens, drop anything outside ``[\\w-/]``."""
    slug = _WHITESPACE.sub('-', text.strip().lower())
    return _SLUG_DISALLOWED.sub('', slug)


def slugify_fragment(heading: str) -> str:
    """Slug for a heading anchor; slashes are dropped as well."""
    slug = _WHITESPACE.sub('-', heading.strip().lower())
    return _FRAGMENT_DISALLOWED.sub('', slug)


def ensure_leading_slash(path: str) -> str:
    return path if path.startswith('/') else f'/{path}'


def split_fragment(url: str) -> Tuple[str, Optional[str]]:
    """Split ``path#fragment`` into its parts; fragment is None when absent."""
    if '#' not in url:
        return url, None
    path, fragment = url.split('#', 1)
    return path, fragment


def attachment_url(target: str) -> str:
    """Published URL of an attachment; nested source directories are flattened."""
    return ATTACHMENTS_URL_PREFIX + filename_of(unquote(target))


def resolve_link_target(target: str, heading: Optional[str] = None) -> str:
    """Published URL of a document given its repository-relative target.

    Examples:
        >>> resolve_link_target('Getting Started/Setup')
        '/getting-started/setup'
        >>> resolve_link_target('wiki/Page.md', 'Section One')
        '/page#section-one'
    """
    return site_url(strip_wiki_prefix(target.strip()), heading)


def site_url(path: str, heading: Optional[str] = None) -> str:
    """Published URL of a path already relative to the wiki root."""
    path = remove_index_suffix(path)
    fragment = f'#{slugify_fragment(heading)}' if heading else ''
    if not path:
        return fragment or '/'
    return ensure_leading_slash(slugify(path)) + fragment


def document_url(relative_path: str) -> str:
    """URL of a document synced to ``relative_path`` under its target directory."""
    return site_url(relative_path)


__all__ = [
    'IMAGE_EXTENSIONS',
    'ATTACHMENTS_URL_PREFIX',
    'is_image_filename',
    'filename_of',
    'is_external_url',
    'has_legacy_prefix',
    'strip_wiki_prefix',
    'remove_index_suffix',
    'slugify',
    'slugify_fragment',
    'ensure_leading_slash',
    'split_fragment',
    'attachment_url',
    'resolve_link_target',
    'site_url',
    'document_url'
]
