"""Run orchestration and reporting."""

from .sync_orchestrator import SyncOrchestrator
from .sync_report import SyncReport

__all__ = ['SyncOrchestrator', 'SyncReport']
