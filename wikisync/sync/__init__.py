"""Incremental synchronization of repository content and attachments."""

from .attachment_index import AttachmentIndexer
from .attachment_manager import AttachmentResolver, extract_image_references
from .cache_manager import DEFAULT_CACHE_PATH, SyncCache
from .content_sync import ContentSyncEngine, filter_entries

__all__ = [
    'AttachmentIndexer',
    'AttachmentResolver',
    'ContentSyncEngine',
    'SyncCache',
    'DEFAULT_CACHE_PATH',
    'extract_image_references',
    'filter_entries'
]
