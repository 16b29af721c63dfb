"""
Selection reconciliation.

Merges a fresh catalog snapshot into the user's selection set:

1. Selected notices that vanished from the catalog are dropped.
2. Selected notices whose post date changed are dropped (a re-dated
   notice is treated as a different notice and is not re-selected).
3. Survivors take the new canonical record and keep their annotation.
4. Notices that are new to the catalog but were already selected are
   invalid pre-selections and are dropped.

``check_order`` is filtered, never re-sorted.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from kaptwatch.core.errors import ReconciliationIntegrityWarning
from kaptwatch.core.logging import get_logger
from kaptwatch.core.models import (
    BidSnapshot,
    SelectionEntry,
    SelectionSet,
    SyncReport,
)
from kaptwatch.core.normalize.diff import compute_diff


logger = get_logger("reconcile")


@dataclass
class ReconcileResult:
    """Updated selection plus the counts describing the merge."""

    selection: SelectionSet
    report: SyncReport
    integrity_warnings: list[ReconciliationIntegrityWarning] = field(default_factory=list)


def reconcile(
    old_snapshot: BidSnapshot,
    new_snapshot: BidSnapshot,
    old_selection: SelectionSet,
) -> ReconcileResult:
    """Reconcile a selection set against a new snapshot.

    Never raises on inconsistent selection data; problems are repaired
    and reported as ``ReconciliationIntegrityWarning``.

    Args:
        old_snapshot: Snapshot the selection was made against
        new_snapshot: Freshly assembled snapshot
        old_selection: Current selection set (not modified)

    Returns:
        ReconcileResult with the new selection and a report whose
        ``total_bids`` is the size of the new snapshot
    """
    old_index = old_snapshot.by_id()
    new_index = new_snapshot.by_id()

    report = SyncReport(total_bids=len(new_snapshot))
    integrity: list[ReconciliationIntegrityWarning] = []

    order = _repaired_order(old_selection, integrity)

    entries: dict[str, SelectionEntry] = {}
    survivors: list[str] = []
    changed_fields: dict[str, list[str]] = {}

    for bid_id in order:
        entry = old_selection.entries[bid_id]
        new_record = new_index.get(bid_id)

        if new_record is None:
            logger.info(f"Selected notice {bid_id} no longer listed, removing")
            report.removed_from_selection += 1
            report.removed_ids.append(bid_id)
            continue

        old_record = old_index.get(bid_id)
        if old_record is not None and old_record.post_date_key() != new_record.post_date_key():
            logger.info(
                f"Selected notice {bid_id} re-dated "
                f"({old_record.post_date_key()} -> {new_record.post_date_key()}), removing"
            )
            report.removed_from_selection += 1
            report.removed_ids.append(bid_id)
            continue

        baseline = old_record if old_record is not None else entry.record
        diff = compute_diff(baseline, new_record)
        changed_fields[bid_id] = diff.changed_fields
        if diff.has_changes:
            logger.debug(f"Selected notice {bid_id} changed: {diff.summary}")

        entries[bid_id] = SelectionEntry(record=new_record, annotation=entry.annotation)
        survivors.append(bid_id)

    newly_added = [bid_id for bid_id in new_snapshot.ids() if bid_id not in old_index]
    report.newly_added = len(newly_added)
    report.newly_added_ids = newly_added

    for bid_id in newly_added:
        if bid_id not in old_selection.entries:
            continue
        logger.info(f"Notice {bid_id} is new but was already selected, removing")
        entries.pop(bid_id, None)
        report.invalid_selections_removed += 1

    check_order = [bid_id for bid_id in survivors if bid_id in entries]

    for bid_id in check_order:
        if changed_fields[bid_id]:
            report.updated_in_selection += 1
            report.field_changes[bid_id] = changed_fields[bid_id]
        else:
            report.unchanged_in_selection += 1

    for warning in integrity:
        logger.warning(f"Selection integrity: {warning}")
    report.warnings.extend(str(w) for w in integrity)

    return ReconcileResult(
        selection=SelectionSet(entries=entries, check_order=check_order),
        report=report,
        integrity_warnings=integrity,
    )


def _repaired_order(
    selection: SelectionSet,
    integrity: list[ReconciliationIntegrityWarning],
) -> list[str]:
    """Walk order for a selection whose mapping and order may disagree.

    Dangling ids are skipped, repeats are visited once, and mapping ids
    missing from the order are appended in mapping order.
    """
    order: list[str] = []
    seen: set[str] = set()

    for bid_id in selection.check_order:
        if bid_id in seen:
            integrity.append(ReconciliationIntegrityWarning("duplicate id in checkOrder", bid_id))
            continue
        seen.add(bid_id)
        if bid_id not in selection.entries:
            integrity.append(ReconciliationIntegrityWarning("checkOrder id has no selection entry", bid_id))
            continue
        order.append(bid_id)

    for bid_id in selection.entries:
        if bid_id not in seen:
            integrity.append(ReconciliationIntegrityWarning("selected id missing from checkOrder", bid_id))
            order.append(bid_id)

    return order
