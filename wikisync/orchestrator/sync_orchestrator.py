"""
Sync orchestrator for coordinating one synchronization run.

This module wires the remote client, cache, content sync engine and attachment
resolver together: skip handling, ref resolution, a single cache save at the
end, and operator-facing diagnostics for fatal errors.
"""

import logging
import time
from typing import Optional

from ..config_loader import SyncSettings, should_skip
from ..exceptions import ConfigurationError, ErrorCategory, RemoteError
from ..github_client import GitHubClient
from ..logger import log_section
from ..sync.attachment_manager import AttachmentResolver
from ..sync.cache_manager import SyncCache
from ..sync.content_sync import ContentSyncEngine
from .sync_report import STATUS_COMPLETED, STATUS_SKIPPED, STATUS_UNCHANGED, SyncReport

TROUBLESHOOTING_TIPS = (
    "Verify the GITHUB_TOKEN has access to the repository",
    "Confirm the repository owner and name are correct",
    "Check that the token has not expired",
    'Ensure the token has "repo" scope for private repositories',
)


class SyncOrchestrator:
    """Runs one synchronization of a site's mirror."""

    def __init__(
        self,
        settings: SyncSettings,
        client=None,
        command: str = 'build',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            settings: Validated sync settings
            client: Remote tree client; a GitHubClient is built when omitted
            command: Invoking command, used for skip mode ("build", "dev", "preview")
            logger: Logger instance
        """
        self.settings = settings
        self.client = client
        self.command = command
        self.logger = logger or logging.getLogger('wikisync.orchestrator')

    def run(self) -> SyncReport:
        """
        Synchronize every configured mapping and the referenced attachments.

        Returns:
            SyncReport describing the run

        Raises:
            ConfigurationError: If no token is configured
            RemoteError: If the ref, commit or tree cannot be resolved, or a
                document cannot be fetched and ``continue_on_error`` is off
        """
        settings = self.settings
        repository = settings.repository

        if should_skip(settings, self.command):
            self.logger.info(f"Skipping wiki sync for '{self.command}' (local mirror left untouched)")
            return SyncReport(status=STATUS_SKIPPED, repository=repository.full_name)

        if self.client is None:
            if not settings.token:
                self.logger.error("GITHUB_TOKEN is not set. Provide it in the environment or config file.")
                raise ConfigurationError("GITHUB_TOKEN is required to sync the wiki")
            self.client = GitHubClient(
                token=settings.token,
                owner=repository.owner,
                repo=repository.name,
                api_url=settings.api_url,
                timeout=settings.timeout,
                max_retries=settings.max_retries
            )

        log_section("GitHub wiki sync")
        self.logger.info(f"Repository: {repository.full_name}")
        for mapping in settings.mappings:
            self.logger.info(f"Mapping: {mapping.source_path} -> {mapping.target_dir}")

        start_time = time.time()
        try:
            return self._run(start_time)
        except RemoteError as e:
            self._log_remote_failure(e)
            raise

    def _run(self, start_time: float) -> SyncReport:
        settings = self.settings

        ref = settings.repository.ref or self.client.default_ref()
        repository = settings.repository.with_ref(ref)

        cache_store = SyncCache(settings.cache_path)
        cache = cache_store.load()

        engine = ContentSyncEngine(
            self.client,
            continue_on_error=settings.continue_on_error,
            show_progress=settings.show_progress
        )
        result = engine.sync(ref, list(settings.mappings), cache)

        attachment_stats = {}
        if not result.fast_path:
            self.logger.info(f"Extracted {len(result.image_references)} unique image references")
            resolver = AttachmentResolver(self.client, show_progress=settings.show_progress)
            resolver.resolve(
                result.image_references,
                result.attachment_index,
                result.cache,
                settings.attachments_dir,
                ref
            )
            attachment_stats = resolver.get_stats()
            if attachment_stats['failed']:
                # Keep the next run off the fast path so failed attachments are retried
                result.cache.repository_content_hash = ''

        cache_store.save(result.cache)

        report = SyncReport(
            status=STATUS_UNCHANGED if result.fast_path else STATUS_COMPLETED,
            repository=repository.full_name,
            ref=ref,
            content_hash=result.cache.repository_content_hash,
            fast_path=result.fast_path,
            documents=result.stats,
            attachments=attachment_stats,
            collisions=result.collisions,
            request_count=getattr(self.client, 'request_count', None),
            duration_seconds=time.time() - start_time
        )
        self.logger.info("GitHub wiki sync completed successfully")
        return report

    def _log_remote_failure(self, error: RemoteError) -> None:
        self.logger.error("Failed to sync wiki from GitHub:")
        self.logger.error(str(error))
        self.logger.error(error.hint())
        if error.category in (ErrorCategory.NOT_FOUND, ErrorCategory.UNAUTHORIZED):
            self.logger.error("Troubleshooting tips:")
            for number, tip in enumerate(TROUBLESHOOTING_TIPS, 1):
                self.logger.error(f"{number}. {tip}")


__all__ = ['SyncOrchestrator', 'TROUBLESHOOTING_TIPS']
