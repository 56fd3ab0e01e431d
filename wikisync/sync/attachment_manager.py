"""Attachment discovery, download and cleanup for synced documents."""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Dict, Optional, Set, Union
from urllib.parse import unquote

from tqdm import tqdm

from ..converters.paths import filename_of, is_external_url, is_image_filename
from ..exceptions import RemoteError
from ..models import AttachmentCacheEntry, AttachmentIndexEntry, CacheDocument, utc_timestamp
from .cache_manager import SyncCache

EMBED_PATTERN = re.compile(r'!\[\[([^\]|]+?)(?:\|[^\]]*)?\]\]')
IMAGE_PATTERN = re.compile(r'!\[([^\]]*)\]\(([^)]+)\)')


def _reference_filename(target: str) -> Optional[str]:
    """Filename an image target points at, or None if it is not a local image."""
    target = target.strip()
    if target.startswith('<') and '>' in target:
        target = target[1:target.index('>')]
    elif ' ' in target:
        # ![alt](path "title")
        target = target.split(' ', 1)[0]

    if not target or is_external_url(target):
        return None

    target = target.split('#', 1)[0].split('?', 1)[0]
    filename = filename_of(unquote(target))
    if not filename or not is_image_filename(filename):
        return None
    return filename


def extract_image_references(text: str) -> Set[str]:
    """
    Collect the filenames of local images referenced by a document.

    Both ``![[diagram.png]]`` embeds and ``![alt](assets/diagram.png)`` images
    are recognized. Absolute URLs are never collected and only the filename
    part of a target is kept, because attachments are published flat.

    Args:
        text: Raw markdown document text

    Returns:
        Set of referenced image filenames
    """
    references = set()

    for match in EMBED_PATTERN.finditer(text):
        target = match.group(1).split('#', 1)[0]
        filename = _reference_filename(target)
        if filename:
            references.add(filename)

    for match in IMAGE_PATTERN.finditer(text):
        filename = _reference_filename(match.group(2))
        if filename:
            references.add(filename)

    return references


class AttachmentResolver:
    """
    Makes the local attachments directory match the images documents reference.

    Each referenced filename is looked up in the run's attachment index and
    downloaded only when its content hash changed or the local copy vanished.
    Cached attachments nobody references anymore are deleted.
    """

    def __init__(self, client, show_progress: bool = True, logger: Optional[logging.Logger] = None):
        """
        Initialize the resolver.

        Args:
            client: Remote tree client providing ``file_at(path, ref)``
            show_progress: Show a tqdm progress bar on interactive terminals
            logger: Logger instance
        """
        self.client = client
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('wikisync.sync.attachments')

        self.stats = {
            'referenced': 0,
            'downloaded': 0,
            'skipped': 0,
            'missing': 0,
            'failed': 0,
            'deleted': 0,
            'total_size_bytes': 0
        }

    def resolve(
        self,
        image_references: Dict[str, Set[str]],
        index: Dict[str, AttachmentIndexEntry],
        cache: CacheDocument,
        attachments_dir: Union[str, Path],
        ref: str
    ) -> CacheDocument:
        """
        Download changed attachments and remove unreferenced ones.

        Args:
            image_references: Referenced filename -> paths of documents referencing it
            index: Attachment index of the current tree
            cache: Cache document, updated in place
            attachments_dir: Directory attachments are written to
            ref: Ref attachments are fetched at

        Returns:
            The updated cache document
        """
        attachments_dir = str(attachments_dir)
        filenames = sorted(image_references)
        self.stats['referenced'] = len(filenames)
        self.logger.info(f"Resolving {len(filenames)} referenced attachment(s)")

        filenames_iter = filenames
        if self._should_show_progress():
            filenames_iter = tqdm(filenames, desc="Attachments", unit="file", leave=False)

        for filename in filenames_iter:
            referenced_by = sorted(image_references[filename])
            entry = index.get(filename)
            if entry is None:
                self.logger.warning(
                    f"Attachment not found in repository: {filename} "
                    f"(referenced by {', '.join(referenced_by)})"
                )
                self.stats['missing'] += 1
                continue

            local_path = os.path.join(attachments_dir, filename)
            cached = cache.attachments.get(filename)
            if (
                cached is not None
                and cached.content_hash == entry.content_hash
                and os.path.normpath(cached.local_path) == os.path.normpath(local_path)
                and SyncCache.local_file_exists(cached.local_path)
            ):
                cached.referenced_by = referenced_by
                self.logger.debug(f"Attachment unchanged, skipping: {filename}")
                self.stats['skipped'] += 1
                continue

            try:
                content = self.client.file_at(entry.repository_path, ref)
            except RemoteError as e:
                self.logger.warning(f"Failed to download attachment {entry.repository_path}: {e}")
                self.stats['failed'] += 1
                continue

            os.makedirs(attachments_dir, exist_ok=True)
            with open(local_path, 'wb') as f:
                f.write(content)

            cache.attachments[filename] = AttachmentCacheEntry(
                content_hash=entry.content_hash,
                source_path=entry.repository_path,
                local_path=local_path,
                synced_at=utc_timestamp(),
                referenced_by=referenced_by
            )
            self.stats['downloaded'] += 1
            self.stats['total_size_bytes'] += len(content)
            self.logger.info(f"Downloaded attachment: {entry.repository_path} -> {local_path}")

        self._cleanup(image_references, cache)

        self.logger.info(
            f"Attachments: {self.stats['downloaded']} downloaded, {self.stats['skipped']} unchanged, "
            f"{self.stats['missing']} missing, {self.stats['deleted']} deleted"
        )
        return cache

    def _cleanup(self, image_references: Dict[str, Set[str]], cache: CacheDocument) -> None:
        """Delete cached attachments that no synced document references."""
        for filename in sorted(cache.attachments):
            if filename in image_references:
                continue
            entry = cache.attachments.pop(filename)
            try:
                os.remove(entry.local_path)
                self.logger.info(f"Deleted unreferenced attachment: {entry.local_path}")
            except FileNotFoundError:
                self.logger.debug(f"Unreferenced attachment already gone: {entry.local_path}")
            except OSError as e:
                self.logger.warning(f"Could not delete {entry.local_path}: {e}")
            self.stats['deleted'] += 1

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be displayed."""
        return self.show_progress and sys.stdout.isatty()

    def get_stats(self) -> Dict[str, int]:
        """Get attachment processing statistics."""
        return self.stats.copy()


__all__ = ['AttachmentResolver', 'extract_image_references']
