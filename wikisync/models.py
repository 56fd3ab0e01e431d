"""Data models for the wiki synchronization pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


CACHE_SCHEMA_VERSION = 1


def utc_timestamp() -> str:
    """Current time as an ISO 8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


class EntryKind(Enum):
    """Kinds of entries in a repository tree snapshot."""
    FILE = "file"
    OTHER = "other"


@dataclass(frozen=True)
class RepositoryRef:
    """Identity of the remote repository and the ref being mirrored."""

    owner: str
    name: str
    ref: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def with_ref(self, ref: str) -> 'RepositoryRef':
        """Return a copy pinned to a concrete ref."""
        return RepositoryRef(owner=self.owner, name=self.name, ref=ref)


@dataclass(frozen=True)
class TreeEntry:
    """One record of the remote repository snapshot."""

    path: str
    content_hash: str
    kind: EntryKind = EntryKind.FILE

    @property
    def filename(self) -> str:
        return self.path.rsplit('/', 1)[-1]

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE


@dataclass(frozen=True)
class SyncMapping:
    """Maps a subtree of the remote repository onto a local directory.

    Documents named like ``exclude_filenames`` (case-insensitive) are never
    synced. Directories listed in ``collections`` (relative to ``source_path``)
    only contribute their ``index_filename`` document.
    """

    source_path: str
    target_dir: str
    document_extension: str = '.md'
    exclude_filenames: Tuple[str, ...] = ('readme.md',)
    collections: Tuple[str, ...] = ()
    index_filename: str = 'index.md'

    def __post_init__(self) -> None:
        object.__setattr__(self, 'source_path', self.source_path.strip('/'))


@dataclass
class FileCacheEntry:
    """Cached record of a synced document."""

    content_hash: str
    local_path: str
    synced_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'contentHash': self.content_hash,
            'localPath': self.local_path,
            'syncedAt': self.synced_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FileCacheEntry':
        return cls(
            content_hash=data['contentHash'],
            local_path=data['localPath'],
            synced_at=data.get('syncedAt', '')
        )


@dataclass
class AttachmentCacheEntry:
    """Cached record of a downloaded attachment."""

    content_hash: str
    source_path: str
    local_path: str
    synced_at: str
    referenced_by: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'contentHash': self.content_hash,
            'sourcePath': self.source_path,
            'localPath': self.local_path,
            'syncedAt': self.synced_at,
            'referencedBy': list(self.referenced_by)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttachmentCacheEntry':
        return cls(
            content_hash=data['contentHash'],
            source_path=data.get('sourcePath', ''),
            local_path=data['localPath'],
            synced_at=data.get('syncedAt', ''),
            referenced_by=list(data.get('referencedBy', []))
        )


@dataclass
class CacheDocument:
    """Everything remembered about the last synchronization of one site."""

    schema_version: int = CACHE_SCHEMA_VERSION
    repository_content_hash: str = ''
    last_sync_timestamp: str = ''
    files: Dict[str, FileCacheEntry] = field(default_factory=dict)
    attachments: Dict[str, AttachmentCacheEntry] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON layout."""
        return {
            'schemaVersion': self.schema_version,
            'repositoryContentHash': self.repository_content_hash,
            'lastSyncTimestamp': self.last_sync_timestamp,
            'files': {key: entry.to_dict() for key, entry in sorted(self.files.items())},
            'attachments': {
                key: entry.to_dict() for key, entry in sorted(self.attachments.items())
            }
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheDocument':
        """Deserialize from the persisted JSON layout.

        Raises:
            KeyError, TypeError, ValueError: If the document is malformed
        """
        return cls(
            schema_version=int(data['schemaVersion']),
            repository_content_hash=data.get('repositoryContentHash', ''),
            last_sync_timestamp=data.get('lastSyncTimestamp', ''),
            files={
                key: FileCacheEntry.from_dict(value)
                for key, value in data.get('files', {}).items()
            },
            attachments={
                key: AttachmentCacheEntry.from_dict(value)
                for key, value in data.get('attachments', {}).items()
            }
        )


@dataclass(frozen=True)
class AttachmentIndexEntry:
    """Where an image-like blob lives in the repository."""

    filename: str
    repository_path: str
    content_hash: str


@dataclass(frozen=True)
class WikilinkReference:
    """A parsed ``[[target|alias]]`` / ``![[target#heading]]`` reference."""

    raw_target: str
    alias: Optional[str] = None
    heading_fragment: Optional[str] = None
    is_embed: bool = False

    @property
    def display_name(self) -> str:
        """Alias if given, otherwise the last path segment of the target."""
        if self.alias:
            return self.alias
        return self.raw_target.rsplit('/', 1)[-1] or self.heading_fragment or ''


@dataclass
class SyncResult:
    """Outcome of one ContentSyncEngine run."""

    cache: CacheDocument
    image_references: Dict[str, Set[str]] = field(default_factory=dict)
    attachment_index: Dict[str, AttachmentIndexEntry] = field(default_factory=dict)
    collisions: Dict[str, List[str]] = field(default_factory=dict)
    fast_path: bool = False
    stats: Dict[str, int] = field(default_factory=dict)


__all__ = [
    'CACHE_SCHEMA_VERSION',
    'utc_timestamp',
    'EntryKind',
    'RepositoryRef',
    'TreeEntry',
    'SyncMapping',
    'FileCacheEntry',
    'AttachmentCacheEntry',
    'CacheDocument',
    'AttachmentIndexEntry',
    'WikilinkReference',
    'SyncResult'
]
