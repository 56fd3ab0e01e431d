"""
Sync report aggregating engine and resolver statistics.

This module turns the statistics of one sync run into a report for console
display and JSON export.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..logger import ProgressTracker

STATUS_COMPLETED = 'completed'
STATUS_UNCHANGED = 'unchanged'
STATUS_SKIPPED = 'skipped'


@dataclass
class SyncReport:
    """Outcome of one sync run."""

    status: str
    repository: str = ''
    ref: str = ''
    content_hash: str = ''
    fast_path: bool = False
    documents: Dict[str, int] = field(default_factory=dict)
    attachments: Dict[str, int] = field(default_factory=dict)
    collisions: Dict[str, List[str]] = field(default_factory=dict)
    request_count: Optional[int] = None
    duration_seconds: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def skipped(self) -> bool:
        return self.status == STATUS_SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'repository': self.repository,
            'ref': self.ref,
            'content_hash': self.content_hash,
            'fast_path': self.fast_path,
            'documents': dict(self.documents),
            'attachments': dict(self.attachments),
            'collisions': {name: list(paths) for name, paths in self.collisions.items()},
            'request_count': self.request_count,
            'duration_seconds': self.duration_seconds,
            'duration_formatted': ProgressTracker.format_elapsed(self.duration_seconds),
            'timestamp': self.timestamp
        }

    def format_console_report(self) -> str:
        """
        Format report for console display.

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append("WIKI SYNC REPORT")
        sections.append("=" * 60)

        if self.skipped:
            sections.append("  Status:      skipped (no network or filesystem work done)")
            sections.append("=" * 60)
            return "\n".join(sections)

        sections.append(f"  Repository:  {self.repository}@{self.ref}")
        sections.append(f"  Commit:      {self.content_hash[:12] or 'unknown'}")
        sections.append(f"  Status:      {self.status}")
        sections.append(f"  Duration:    {ProgressTracker.format_elapsed(self.duration_seconds)}")
        if self.request_count is not None:
            sections.append(f"  API calls:   {self.request_count}")
        sections.append("")

        if self.fast_path:
            sections.append("  Repository unchanged and local mirror verified; nothing fetched.")
        else:
            docs = self.documents
            sections.append("Documents:")
            sections.append(
                f"  {docs.get('documents_downloaded', 0)} downloaded, "
                f"{docs.get('documents_skipped', 0)} unchanged, "
                f"{docs.get('documents_deleted', 0)} deleted, "
                f"{docs.get('documents_failed', 0)} failed"
            )
            att = self.attachments
            sections.append("Attachments:")
            sections.append(
                f"  {att.get('downloaded', 0)} downloaded, "
                f"{att.get('skipped', 0)} unchanged, "
                f"{att.get('missing', 0)} missing, "
                f"{att.get('failed', 0)} failed, "
                f"{att.get('deleted', 0)} deleted"
            )

        if self.collisions:
            sections.append("")
            sections.append("Duplicate attachment names:")
            for filename, paths in sorted(self.collisions.items()):
                sections.append(f"  {filename}: {paths[0]} (used), {', '.join(paths[1:])} (ignored)")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json(self, filepath: str, logger: Optional[logging.Logger] = None) -> None:
        """
        Export report to JSON file.

        Args:
            filepath: Output file path
            logger: Logger instance
        """
        logger = logger or logging.getLogger('wikisync.orchestrator.report')
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"JSON report exported to {filepath}")


__all__ = ['SyncReport', 'STATUS_COMPLETED', 'STATUS_UNCHANGED', 'STATUS_SKIPPED']
