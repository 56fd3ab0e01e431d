"""One-pass index of image-like blobs in a repository tree."""

import logging
from typing import Dict, Iterable, List, Tuple

from ..converters.paths import is_image_filename
from ..models import AttachmentIndexEntry, TreeEntry

logger = logging.getLogger('wikisync.sync.attachment_index')

AttachmentIndex = Dict[str, AttachmentIndexEntry]
Collisions = Dict[str, List[str]]


class AttachmentIndexer:
    """Indexes image blobs by filename.

    Documents reference attachments by filename only, so the index is keyed by
    filename. When several repository paths share a filename, the
    alphabetically-first path wins regardless of the order the remote lists
    them in, and every competing path is recorded in the collision set.
    """

    def build(self, tree: Iterable[TreeEntry]) -> Tuple[AttachmentIndex, Collisions]:
        """
        Build the filename index for one sync run.

        Args:
            tree: Tree entries of the current snapshot

        Returns:
            Tuple of (index, collisions) where collisions maps a filename to all
            repository paths carrying it, winner first
        """
        images = sorted(
            (entry for entry in tree if entry.is_file and is_image_filename(entry.path)),
            key=lambda entry: entry.path
        )

        index: AttachmentIndex = {}
        collisions: Collisions = {}

        for entry in images:
            filename = entry.filename
            existing = index.get(filename)
            if existing is None:
                index[filename] = AttachmentIndexEntry(
                    filename=filename,
                    repository_path=entry.path,
                    content_hash=entry.content_hash
                )
                continue

            paths = collisions.setdefault(filename, [existing.repository_path])
            paths.append(entry.path)

        for filename, paths in collisions.items():
            logger.warning(
                f"Duplicate attachment name '{filename}' at {', '.join(paths)}; using {paths[0]}"
            )

        logger.info(f"Indexed {len(index)} attachments ({len(collisions)} name collision(s))")
        return index, collisions


__all__ = ['AttachmentIndexer', 'AttachmentIndex', 'Collisions']
