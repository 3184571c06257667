"""
Sync Orchestrator - Reconcile every target provider with its sources

For each target the orchestrator fetches its sources, filters and merges
their records, diffs the result against the target's current records and
applies the actions. Targets are isolated from each other: whatever happens
to one target ends in exactly one history entry and never stops the others.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..core.deduplicator import merge
from ..core.diff_engine import diff
from ..core.errors import (
    ConfigurationError,
    DNSSyncError,
    PartialApplyError,
    ProviderUnavailableError,
    SafetyViolation,
    TargetTimeoutError,
)
from ..core.filters import filter_records, passes
from ..core.locks import ZoneLockRegistry
from ..core.models import (
    Actions,
    ApplyResult,
    ProviderConfig,
    Record,
    Role,
    SyncHistoryEntry,
    SyncOptions,
    SyncRunSummary,
    TargetOutcome,
    TargetState,
)
from ..providers.base_provider import TIMEOUT_ERRORS, RetryPolicy
from ..providers.registry import AdapterRegistry
from ..storage.config_store import ConfigStore
from ..storage.history import DEFAULT_HISTORY_LIMIT, SyncHistory, SyncSettings
from ..storage.providers import ProviderRepository

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorSettings:
    """Concurrency, deadline and retry limits for sync runs."""

    target_concurrency: int = 2
    fetch_concurrency: int = 4
    target_timeout: float = 300.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass
class TargetPlan:
    """Dry-run view of one target: what it should hold and what would change."""

    target: ProviderConfig
    source_names: List[str]
    desired: List[Record]
    existing: List[Record]
    actions: Actions


class SyncOrchestrator:
    """Drives source -> filter -> merge -> diff -> apply for every target."""

    def __init__(
        self,
        store: ConfigStore,
        registry: AdapterRegistry,
        settings: Optional[OrchestratorSettings] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        default_options: Optional[SyncOptions] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the orchestrator with its store and adapter registry."""
        self.registry = registry
        self.settings = settings or OrchestratorSettings()
        self.providers = ProviderRepository(store)
        self.history = SyncHistory(store, history_limit)
        self.sync_settings = SyncSettings(store, default_options)
        self.zone_locks = ZoneLockRegistry()
        self.clock = clock
        self._fetch_slots = asyncio.Semaphore(self.settings.fetch_concurrency)

    async def run_all(self) -> SyncRunSummary:
        """
        Synchronize every valid target once.

        Raises:
            ConfigurationError: before any network call, if there is nothing
                that can be synchronized
        """
        logger.info("Starting DNS sync...")
        providers = self.providers.list_providers()
        targets = select_targets(providers)
        options = self.sync_settings.get_sync_options()
        by_id = {provider.id: provider for provider in providers}

        target_slots = asyncio.Semaphore(self.settings.target_concurrency)

        async def run_one(target: ProviderConfig) -> TargetOutcome:
            async with target_slots:
                return await self.sync_target(target, by_id, options)

        outcomes = await asyncio.gather(*(run_one(target) for target in targets))

        summary = SyncRunSummary()
        for outcome in outcomes:
            summary.add(outcome)

        logger.info(
            f"DNS sync finished, succeeded: {len(summary.success)}, failed: {len(summary.failed)}"
        )
        return summary

    async def sync_target(
        self,
        target: ProviderConfig,
        providers_by_id: Dict[str, ProviderConfig],
        options: SyncOptions,
    ) -> TargetOutcome:
        """Synchronize one target within its deadline and record the outcome."""
        outcome = TargetOutcome(
            target_id=target.id,
            target_name=target.name,
            source_ids=list(target.source_provider_ids),
        )
        logger.info(f"Syncing target provider: {target.name} ({target.id})")

        try:
            await asyncio.wait_for(
                self._sync_target(target, providers_by_id, options, outcome),
                timeout=self.settings.target_timeout,
            )
        except asyncio.TimeoutError:
            error = TargetTimeoutError(
                f"Timed out after {self.settings.target_timeout}s "
                f"while {outcome.state.value.replace('_', ' ')}"
            )
            outcome.error = str(error)
            outcome.state = TargetState.FAILED
            logger.error(f"Sync of {target.name} failed: {outcome.error}")
        except DNSSyncError as e:
            outcome.state = TargetState.FAILED
            outcome.error = str(e)
            logger.error(f"Sync of {target.name} failed: {e}")
        except Exception as e:
            outcome.state = TargetState.FAILED
            outcome.error = f"Unexpected error: {e}"
            logger.exception(f"Unexpected error while syncing {target.name}")

        await self._record_history(target, outcome)
        return outcome

    async def _sync_target(
        self,
        target: ProviderConfig,
        providers_by_id: Dict[str, ProviderConfig],
        options: SyncOptions,
        outcome: TargetOutcome,
    ) -> None:
        """Reconcile one target, keeping adapter timeouts apart from the deadline.

        The deadline reaches this coroutine as a cancellation, so a timeout
        seen here was raised by a provider call.
        """
        try:
            await self._reconcile_target(target, providers_by_id, options, outcome)
        except TIMEOUT_ERRORS as e:
            raise ProviderUnavailableError(
                f"Provider request timed out while {outcome.state.value.replace('_', ' ')}: "
                f"{str(e) or 'no response'}",
                target.name,
            )

    async def _reconcile_target(
        self,
        target: ProviderConfig,
        providers_by_id: Dict[str, ProviderConfig],
        options: SyncOptions,
        outcome: TargetOutcome,
    ) -> None:
        outcome.state = TargetState.FETCHING_SOURCES
        source_lists, outcome.source_names = await self._fetch_sources(target, providers_by_id)

        outcome.state = TargetState.MERGING
        desired = self._desired_records(target, source_lists)
        outcome.record_count = len(desired)
        if not desired:
            raise SafetyViolation(
                f"No source records available for {target.name}; refusing to sync"
            )

        adapter = self.registry.for_provider(target)
        zone_keys = {(target.vendor_type.value, record.zone_name) for record in desired}

        async with self.zone_locks.hold(zone_keys):
            outcome.state = TargetState.DIFFING
            existing = await self._fetch_target_scope(target, desired)
            actions = diff(desired, existing, options)

            outcome.state = TargetState.APPLYING
            logger.info(
                f"Applying {actions.total_changes} changes to {target.name} "
                f"({len(desired)} desired records)"
            )
            outcome.result = ApplyResult()
            if not actions.is_empty():
                await adapter.apply_actions(
                    target, actions, self.settings.retry, result=outcome.result
                )

        classify_outcome(outcome)

    async def plan(self, target_id: str) -> TargetPlan:
        """Compute the actions for one target without applying them."""
        providers = self.providers.list_providers()
        by_id = {provider.id: provider for provider in providers}
        target = by_id.get(target_id)
        if target is None or not target.is_target:
            raise ConfigurationError(f"Target provider {target_id} not found")

        options = self.sync_settings.get_sync_options()
        source_lists, source_names = await self._fetch_sources(target, by_id)
        desired = self._desired_records(target, source_lists)
        if not desired:
            raise SafetyViolation(f"No source records available for {target.name}")

        existing = await self._fetch_target_scope(target, desired)
        return TargetPlan(target, source_names, desired, existing, diff(desired, existing, options))

    async def _fetch_sources(
        self, target: ProviderConfig, providers_by_id: Dict[str, ProviderConfig]
    ) -> Tuple[List[List[Record]], List[str]]:
        """Fetch every source concurrently; failed sources are left out."""
        sources = []
        for source_id in target.source_provider_ids:
            if source_id == target.id:
                logger.warning(f"Target {target.name} lists itself as a source, skipping")
                continue
            source = providers_by_id.get(source_id)
            if source is None:
                logger.warning(f"Source provider {source_id} does not exist, skipping")
                continue
            sources.append(source)

        results = await asyncio.gather(*(self._fetch_source(source) for source in sources))

        record_lists = []
        names = []
        for source, records in zip(sources, results):
            if records is None:
                continue
            record_lists.append(records)
            names.append(source.name)
        return record_lists, names

    async def _fetch_source(self, source: ProviderConfig) -> Optional[List[Record]]:
        try:
            adapter = self.registry.for_provider(source)
            async with self._fetch_slots:
                records = await adapter.fetch_records(source)
        except DNSSyncError as e:
            logger.warning(f"Failed to fetch DNS records from source {source.name}: {e}")
            return None
        except TIMEOUT_ERRORS as e:
            logger.warning(f"Fetching DNS records from source {source.name} timed out: {e}")
            return None

        filtered = filter_records(records, source.include_filters, source.exclude_filters)
        logger.info(f"Fetched {len(filtered)} records from source {source.name}")
        return filtered

    def _desired_records(
        self, target: ProviderConfig, source_lists: Sequence[List[Record]]
    ) -> List[Record]:
        merged = merge(source_lists)
        return filter_records(merged, target.include_filters, target.exclude_filters)

    async def _fetch_target_scope(
        self, target: ProviderConfig, desired: Sequence[Record]
    ) -> List[Record]:
        """Target records in the desired zones that the target's filters manage."""
        adapter = self.registry.for_provider(target)
        async with self._fetch_slots:
            existing = await adapter.fetch_records(target)

        zones = {record.zone_name.lower() for record in desired}
        return [
            record
            for record in existing
            if record.zone_name.lower() in zones
            and passes(record, target.include_filters, target.exclude_filters)
        ]

    async def _record_history(self, target: ProviderConfig, outcome: TargetOutcome) -> None:
        entry = SyncHistoryEntry(
            timestamp=int(self.clock() * 1000),
            source_provider_ids=tuple(target.source_provider_ids),
            source_names=tuple(outcome.source_names),
            target_provider_id=target.id,
            target_name=target.name,
            record_count=outcome.record_count,
            success=outcome.state == TargetState.SUCCEEDED,
            status=outcome.state.value,
            error=outcome.error,
            failed_operations=tuple(op.to_dict() for op in outcome.result.failed_operations),
            created=outcome.result.created,
            updated=outcome.result.updated,
            deleted=outcome.result.deleted,
        )
        try:
            await self.history.append(entry)
        except (OSError, DNSSyncError) as e:
            logger.error(f"Failed to save sync history for {target.name}: {e}")


def select_targets(providers: Sequence[ProviderConfig]) -> List[ProviderConfig]:
    """
    Pick the targets that can be synchronized.

    Raises:
        ConfigurationError: if no valid source/target pairing exists
    """
    if not providers:
        raise ConfigurationError("At least one DNS provider is required for sync")

    sources = [p for p in providers if p.role == Role.SOURCE]
    targets = [p for p in providers if p.role == Role.TARGET]
    logger.info(f"Source providers: {len(sources)}, target providers: {len(targets)}")

    if not sources:
        raise ConfigurationError("No source providers configured")
    if not targets:
        raise ConfigurationError("No target providers configured")

    valid = []
    for target in targets:
        usable = [s for s in target.source_provider_ids if s != target.id]
        if usable:
            valid.append(target)
        else:
            logger.warning(f"Target {target.name} has no usable source providers, skipping")

    if not valid:
        raise ConfigurationError("No target provider has source providers configured")
    return valid


def classify_outcome(outcome: TargetOutcome) -> None:
    """Set the final state from the apply result."""
    result = outcome.result
    failed = len(result.failed_operations)
    if not failed:
        outcome.state = TargetState.SUCCEEDED
        logger.info(
            f"Target {outcome.target_name} synced: {result.created} created, "
            f"{result.updated} updated, {result.deleted} deleted"
        )
        return

    error = PartialApplyError(
        f"{failed} of {failed + result.succeeded} record operations failed",
        result.failed_operations,
    )
    outcome.error = str(error)
    if result.succeeded > failed:
        outcome.state = TargetState.SUCCEEDED_WITH_ERRORS
        logger.warning(f"Target {outcome.target_name} synced with errors: {error}")
    else:
        outcome.state = TargetState.FAILED
        logger.error(f"Target {outcome.target_name} failed: {error}")
