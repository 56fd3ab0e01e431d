"""Persistent record of what was last synchronized."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from ..models import CACHE_SCHEMA_VERSION, CacheDocument

logger = logging.getLogger('wikisync.sync.cache')

DEFAULT_CACHE_PATH = os.path.join('.astro', 'github-wiki-cache.json')


class SyncCache:
    """Loads and atomically saves the single cache document of a site."""

    def __init__(self, cache_path: Union[str, Path] = DEFAULT_CACHE_PATH):
        """
        Initialize the cache store.

        Args:
            cache_path: Location of the JSON cache document
        """
        self.cache_path = Path(cache_path)

    def load(self) -> CacheDocument:
        """
        Load the cache document.

        A missing, unreadable, malformed or other-version document yields an
        empty document; nothing from another schema version is trusted.

        Returns:
            CacheDocument
        """
        if not self.cache_path.exists():
            logger.debug(f"No cache at {self.cache_path}, starting empty")
            return CacheDocument()

        try:
            with open(self.cache_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Cache read error for {self.cache_path}: {str(e)} - rebuilding cache")
            return CacheDocument()

        if not isinstance(data, dict) or data.get('schemaVersion') != CACHE_SCHEMA_VERSION:
            version = data.get('schemaVersion') if isinstance(data, dict) else None
            logger.warning(
                f"Cache version mismatch (found {version}, expected {CACHE_SCHEMA_VERSION}), "
                "rebuilding cache"
            )
            return CacheDocument()

        try:
            document = CacheDocument.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Malformed cache document {self.cache_path}: {str(e)} - rebuilding cache")
            return CacheDocument()

        logger.info(
            f"Loaded cache: {len(document.files)} files, {len(document.attachments)} attachments"
        )
        return document

    def save(self, document: CacheDocument) -> None:
        """
        Write the document to a temporary file beside the cache and rename it
        over the canonical path, so the previous valid document is never left
        half-written.

        Args:
            document: CacheDocument to persist
        """
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            prefix=f".{self.cache_path.name}.",
            suffix='.tmp',
            dir=str(self.cache_path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document.to_dict(), f, ensure_ascii=False, indent=2)
                f.write('\n')
            os.replace(temp_path, self.cache_path)
        except BaseException:
            try:
                os.remove(temp_path)
            except OSError:
                pass
            raise

        logger.debug(f"Cache stored: {self.cache_path}")

    @staticmethod
    def local_file_exists(path: Union[str, Path]) -> bool:
        """Filesystem probe used to detect drift between cache and disk."""
        return os.path.isfile(path)


__all__ = ['SyncCache', 'DEFAULT_CACHE_PATH']
