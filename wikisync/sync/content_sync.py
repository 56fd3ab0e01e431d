"""Incremental mirror of remote repository subtrees into local directories."""

import logging
import os
import sys
from typing import Dict, Iterable, List, Optional, Set

from tqdm import tqdm

from ..converters.paths import document_url
from ..exceptions import RemoteError
from ..models import (
    CacheDocument,
    FileCacheEntry,
    SyncMapping,
    SyncResult,
    TreeEntry,
    utc_timestamp
)
from .attachment_index import AttachmentIndexer
from .attachment_manager import extract_image_references
from .cache_manager import SyncCache


def _is_within(path: str, directory: str) -> bool:
    path = os.path.abspath(path)
    directory = os.path.abspath(directory)
    try:
        return os.path.commonpath([path, directory]) == directory
    except ValueError:
        return False


def filter_entries(tree: Iterable[TreeEntry], mapping: SyncMapping) -> List[TreeEntry]:
    """
    Select the documents of ``tree`` that ``mapping`` synchronizes.

    An entry qualifies when it is a file below ``source_path``, carries the
    document extension, is not an excluded filename (case-insensitive) and,
    inside a collection directory, is that directory's index document.

    Args:
        tree: Tree entries of the current snapshot
        mapping: Sync mapping to filter for

    Returns:
        Matching entries in tree order
    """
    prefix = f"{mapping.source_path}/" if mapping.source_path else ''
    extension = mapping.document_extension.lower()
    excluded = {name.lower() for name in mapping.exclude_filenames}
    collections = [c.strip('/') for c in mapping.collections if c.strip('/')]

    selected = []
    for entry in tree:
        if not entry.is_file or not entry.path.startswith(prefix):
            continue
        if not entry.path.lower().endswith(extension):
            continue
        if entry.filename.lower() in excluded:
            continue

        relative = entry.path[len(prefix):]
        in_collection = False
        for collection in collections:
            if relative.startswith(collection + '/'):
                in_collection = relative != f"{collection}/{mapping.index_filename}"
                break
        if in_collection:
            continue

        selected.append(entry)
    return selected


class ContentSyncEngine:
    """
    Mirrors configured repository subtrees into local directories.

    Downloads happen only for documents whose content hash changed or whose
    local copy disappeared. Every synced document, downloaded or not, is
    scanned for image references so attachment resolution always sees the
    complete reference set.
    """

    def __init__(
        self,
        client,
        continue_on_error: bool = False,
        show_progress: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the engine.

        Args:
            client: Remote tree client (``head_content_hash``, ``tree``, ``blob``)
            continue_on_error: Log and skip documents whose blob cannot be fetched
                instead of aborting the run
            show_progress: Show a tqdm progress bar on interactive terminals
            logger: Logger instance
        """
        self.client = client
        self.continue_on_error = continue_on_error
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('wikisync.sync.engine')
        self.indexer = AttachmentIndexer()

        self.stats = {
            'documents_total': 0,
            'documents_downloaded': 0,
            'documents_skipped': 0,
            'documents_failed': 0,
            'documents_deleted': 0,
            'bytes_downloaded': 0
        }

    def sync(self, ref: str, mappings: List[SyncMapping], cache: CacheDocument) -> SyncResult:
        """
        Bring every mapping's target directory up to date with ``ref``.

        Args:
            ref: Branch, tag or commit to mirror
            mappings: Subtree to directory mappings
            cache: Cache document from the previous run, updated in place

        Returns:
            SyncResult with the updated cache, image references and attachment index

        Raises:
            RemoteError: When the ref or tree cannot be fetched, or a document
                blob cannot be fetched and ``continue_on_error`` is off
        """
        head_hash = self.client.head_content_hash(ref)
        self.logger.debug(f"Head of {ref}: {head_hash}")

        if head_hash and head_hash == cache.repository_content_hash:
            if self._fast_path_valid(cache, mappings):
                self.logger.info(f"Repository unchanged since last sync ({head_hash[:7]}), skipping")
                return SyncResult(cache=cache, fast_path=True, stats=self.get_stats())
            self.logger.info("Repository unchanged but local files are missing, running full sync")

        tree = self.client.tree(ref)
        index, collisions = self.indexer.build(tree)

        image_references: Dict[str, Set[str]] = {}
        present: Set[str] = set()

        for mapping in mappings:
            entries = filter_entries(tree, mapping)
            self.logger.info(
                f"Found {len(entries)} document(s) under '{mapping.source_path}' -> {mapping.target_dir}"
            )
            present.update(entry.path for entry in entries)
            self._sync_mapping(entries, mapping, cache, image_references)

        self._delete_stale(cache, present)

        if self.stats['documents_failed']:
            # Keep the next run off the fast path so failed documents are retried
            cache.repository_content_hash = ''
        else:
            cache.repository_content_hash = head_hash
        cache.last_sync_timestamp = utc_timestamp()

        return SyncResult(
            cache=cache,
            image_references=image_references,
            attachment_index=index,
            collisions=collisions,
            fast_path=False,
            stats=self.get_stats()
        )

    def _fast_path_valid(self, cache: CacheDocument, mappings: List[SyncMapping]) -> bool:
        """Check that every cached artifact is still on disk."""
        for key, entry in cache.files.items():
            if not SyncCache.local_file_exists(entry.local_path):
                self.logger.debug(f"Cached document missing locally: {key}")
                return False

        for filename, entry in cache.attachments.items():
            if not SyncCache.local_file_exists(entry.local_path):
                self.logger.debug(f"Cached attachment missing locally: {filename}")
                return False

        for mapping in mappings:
            if not any(_is_within(entry.local_path, mapping.target_dir) for entry in cache.files.values()):
                self.logger.debug(f"No synced documents in {mapping.target_dir}")
                return False

        return True

    def _sync_mapping(
        self,
        entries: List[TreeEntry],
        mapping: SyncMapping,
        cache: CacheDocument,
        image_references: Dict[str, Set[str]]
    ) -> None:
        prefix_length = len(mapping.source_path) + 1 if mapping.source_path else 0

        entries_iter = entries
        if self._should_show_progress():
            entries_iter = tqdm(entries, desc=f"Syncing {mapping.source_path or '/'}", unit="doc", leave=False)

        for entry in entries_iter:
            self.stats['documents_total'] += 1
            relative_path = entry.path[prefix_length:]
            local_path = os.path.join(mapping.target_dir, *relative_path.split('/'))

            text = self._cached_text(cache.files.get(entry.path), entry, local_path)
            if text is not None:
                self.logger.debug(f"Unchanged, skipping download: {entry.path}")
                self.stats['documents_skipped'] += 1
            else:
                try:
                    content = self.client.blob(entry.content_hash)
                except RemoteError as e:
                    if not self.continue_on_error:
                        raise
                    self.logger.warning(f"Failed to fetch {entry.path}, skipping: {e}")
                    self.stats['documents_failed'] += 1
                    continue

                os.makedirs(os.path.dirname(local_path) or '.', exist_ok=True)
                with open(local_path, 'wb') as f:
                    f.write(content)

                cache.files[entry.path] = FileCacheEntry(
                    content_hash=entry.content_hash,
                    local_path=local_path,
                    synced_at=utc_timestamp()
                )
                self.stats['documents_downloaded'] += 1
                self.stats['bytes_downloaded'] += len(content)
                self.logger.info(f"Synced {entry.path} -> {local_path} ({document_url(relative_path)})")
                text = content.decode('utf-8', errors='replace')

            for filename in extract_image_references(text):
                image_references.setdefault(filename, set()).add(entry.path)

    def _cached_text(
        self,
        cached: Optional[FileCacheEntry],
        entry: TreeEntry,
        local_path: str
    ) -> Optional[str]:
        """Local content of an unchanged document, or None if it must be downloaded."""
        if cached is None or cached.content_hash != entry.content_hash:
            return None
        if os.path.normpath(cached.local_path) != os.path.normpath(local_path):
            return None
        if not SyncCache.local_file_exists(cached.local_path):
            return None
        try:
            with open(cached.local_path, 'r', encoding='utf-8', errors='replace') as f:
                return f.read()
        except OSError as e:
            self.logger.warning(f"Could not read cached {cached.local_path}, re-downloading: {e}")
            return None

    def _delete_stale(self, cache: CacheDocument, present: Set[str]) -> None:
        """Remove local documents whose remote path no longer exists under any mapping."""
        for key in sorted(cache.files):
            if key in present:
                continue
            entry = cache.files.pop(key)
            try:
                os.remove(entry.local_path)
                self.logger.info(f"Deleted {entry.local_path} (removed upstream: {key})")
            except FileNotFoundError:
                self.logger.debug(f"Stale document already gone: {entry.local_path}")
            except OSError as e:
                self.logger.warning(f"Could not delete {entry.local_path}: {e}")
            self.stats['documents_deleted'] += 1

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be displayed."""
        return self.show_progress and sys.stdout.isatty()

    def get_stats(self) -> Dict[str, int]:
        """Get document sync statistics."""
        return self.stats.copy()


__all__ = ['ContentSyncEngine', 'filter_entries']
