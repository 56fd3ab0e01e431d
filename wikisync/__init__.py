"""
Obsidian wiki sync.

Mirrors a wiki kept in a GitHub repository into a static site's content
directory, incrementally, and rewrites Obsidian wikilinks and callouts for
publishing.
"""

__version__ = "1.0.0"

from .exceptions import ConfigurationError, ErrorCategory, RemoteError, ValidationError, WikiSyncError

__all__ = [
    '__version__',
    'ConfigurationError',
    'ErrorCategory',
    'RemoteError',
    'ValidationError',
    'WikiSyncError'
]
