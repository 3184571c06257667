"""
Step definitions for DNS Sync Manager scenarios.
"""

import asyncio

from behave import given, then, when

from dns_sync_manager.core.errors import ProviderUnavailableError
from dns_sync_manager.core.models import SyncOptions, VendorType
from dns_sync_manager.providers.memory_provider import MemoryDNSProvider
from dns_sync_manager.providers.registry import AdapterRegistry
from dns_sync_manager.storage.config_store import YAMLConfigStore
from dns_sync_manager.sync.orchestrator import SyncOrchestrator


def _orchestrator(context):
    if not hasattr(context, "orchestrator"):
        context.memory = MemoryDNSProvider()
        context.store = YAMLConfigStore(str(context.test_data_dir / "state.yaml"))
        context.orchestrator = SyncOrchestrator(
            context.store, AdapterRegistry({VendorType.MEMORY: context.memory})
        )
    return context.orchestrator


def _provider_id(context, name):
    for provider in _orchestrator(context).providers.list_providers():
        if provider.name == name:
            return provider.id
    raise AssertionError(f"Provider {name} is not configured")


@given('a source provider "{name}"')
def step_source_provider(context, name):
    _orchestrator(context).providers.save_provider(
        {"id": name, "name": name, "type": "memory", "role": "source"}
    )


@given('a target provider "{name}" syncing from "{sources}"')
def step_target_provider(context, name, sources):
    source_ids = [_provider_id(context, s.strip()) for s in sources.split(",")]
    _orchestrator(context).providers.save_provider(
        {"id": name, "name": name, "type": "memory", "role": "target", "sourceProviderIds": source_ids}
    )


@given('"{name}" excludes "{pattern}"')
def step_exclude(context, name, pattern):
    _orchestrator(context).providers.save_provider(
        {"id": _provider_id(context, name), "excludeDomains": [pattern]}
    )


@given('"{name}" has the record "{record}"')
def step_seed_record(context, name, record):
    record_type, fqdn, content, ttl = record.split()
    zone = ".".join(fqdn.split(".")[-2:])
    _orchestrator(context)
    context.memory.seed(
        _provider_id(context, name),
        [{"type": record_type, "name": fqdn, "content": content, "ttl": int(ttl), "zone_name": zone}],
    )


@given('"{name}" is unreachable')
def step_unreachable(context, name):
    _orchestrator(context)
    context.memory.fetch_errors[_provider_id(context, name)] = ProviderUnavailableError(
        "connection refused", name
    )


@given("delete extra is enabled")
@when("delete extra is enabled")
def step_delete_extra(context):
    _orchestrator(context).sync_settings.save_sync_options(SyncOptions(delete_extra=True))


@when("I run the sync")
def step_run_sync(context):
    context.summary = asyncio.run(_orchestrator(context).run_all())


def _outcome(context, name):
    for outcome in context.summary.success + context.summary.failed:
        if outcome.target_name == name:
            return outcome
    raise AssertionError(f"No outcome for target {name}")


@then('the sync succeeds for "{name}"')
def step_sync_succeeds(context, name):
    outcome = _outcome(context, name)
    assert outcome.succeeded, f"{name} ended in {outcome.state.value}: {outcome.error}"


@then('the sync fails for "{name}" with "{message}"')
def step_sync_fails(context, name, message):
    outcome = _outcome(context, name)
    assert not outcome.succeeded, f"{name} unexpectedly succeeded"
    assert message in (outcome.error or ""), outcome.error


@then('"{name}" has exactly the records')
def step_exact_records(context, name):
    expected = sorted(
        (row["type"], row["name"], row["content"], int(row["ttl"])) for row in context.table
    )
    actual = sorted(
        (r.type.value, r.name, r.content, r.ttl)
        for r in context.memory.records(_provider_id(context, name))
    )
    assert actual == expected, f"Expected {expected}, got {actual}"


@then('"{name}" has {count:d} records')
def step_record_count(context, name, count):
    records = context.memory.records(_provider_id(context, name))
    assert len(records) == count, f"Expected {count} records, got {len(records)}"


@then('the latest history entry for "{name}" is not successful')
def step_history_failed(context, name):
    entries = [e for e in context.orchestrator.history.list() if e.target_name == name]
    assert entries, f"No history for {name}"
    assert not entries[0].success
