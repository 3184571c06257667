"""
Sync orchestration and triggers.
"""

from .orchestrator import OrchestratorSettings, SyncOrchestrator, TargetPlan
from .scheduler import SyncScheduler

__all__ = ["OrchestratorSettings", "SyncOrchestrator", "TargetPlan", "SyncScheduler"]
