"""
Diff Engine - Compare desired records with a target's existing records

This module turns the desired record set and the target's current records
into an ordered list of update, create and delete actions. Records are
identified by ``(type, lowercase(name))``; content is not part of the
identity.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from .models import (
    PROTECTED_TYPES,
    Actions,
    Record,
    SyncOptions,
    with_identity_of,
)

logger = logging.getLogger(__name__)


def index_by_identity(records: Sequence[Record]) -> Dict[Tuple[str, str], Record]:
    """Map identity -> record; the last record wins for repeated keys."""
    return {record.identity: record for record in records}


def collapse_desired(desired: Sequence[Record]) -> List[Record]:
    """
    Keep the first desired record for each identity.

    Several values under one name (round-robin A records, multiple TXT
    strings) cannot be represented under a ``(type, name)`` identity, so
    only the first value is synced and the rest are reported.
    """
    collapsed = []
    seen = set()
    for record in desired:
        if record.identity in seen:
            logger.warning(
                f"Multiple desired values for {record.type.value} {record.name}, "
                f"ignoring '{record.content}'"
            )
            continue
        seen.add(record.identity)
        collapsed.append(record)
    return collapsed


def diff(
    desired: Sequence[Record], existing: Sequence[Record], options: SyncOptions
) -> Actions:
    """
    Compute the actions that converge existing records to the desired set.

    Args:
        desired: Records the target should contain
        existing: Records the target currently contains
        options: Sync options (overwrite_all allows creates, delete_extra
            allows deletes)

    Returns:
        Actions with updates, creates and deletes in apply order
    """
    logger.info("Analyzing DNS record changes...")

    desired = collapse_desired(desired)
    existing_by_identity = index_by_identity(existing)
    actions = Actions()

    for record in desired:
        current = existing_by_identity.get(record.identity)

        if current is not None:
            if record.same_values(current):
                actions.no_changes.append(current)
                logger.debug(f"No change needed: {record.type.value} {record.name}")
            else:
                actions.updates.append(with_identity_of(record, current))
                logger.info(
                    f"Update needed: {record.type.value} {record.name} "
                    f"{current.content} -> {record.content}"
                )
        elif options.overwrite_all:
            actions.creates.append(record)
            logger.info(f"Create needed: {record.type.value} {record.name} -> {record.content}")

    # An empty desired set never deletes anything.
    if options.delete_extra and desired:
        desired_identities = {record.identity for record in desired}
        for current in existing:
            if current.identity in desired_identities:
                continue
            if current.type in PROTECTED_TYPES:
                logger.debug(f"Keeping protected record: {current.type.value} {current.name}")
                continue
            actions.deletes.append(current)
            logger.info(f"Delete needed: {current.type.value} {current.name} -> {current.content}")

    logger.info(
        f"Change analysis complete: {len(actions.updates)} updates, "
        f"{len(actions.creates)} creates, {len(actions.deletes)} deletes, "
        f"{len(actions.no_changes)} no changes"
    )
    return actions


def simulate_apply(actions: Actions, existing: Sequence[Record]) -> List[Record]:
    """
    Return the record set a target would hold after applying actions.

    Used for dry runs and to check that a plan converges.
    """
    records = list(existing)
    positions = {}
    for index, record in enumerate(records):
        positions[(record.id, record.identity)] = index

    for update in actions.updates:
        index = positions.get((update.id, update.identity))
        if index is not None:
            records[index] = update

    records.extend(actions.creates)

    deleted = set(actions.deletes)
    return [record for record in records if record not in deleted]
