"""
Tests for selection reconciliation.
"""

from datetime import datetime

from kaptwatch.core.models import (
    SelectionAnnotation,
    SelectionEntry,
    SelectionSet,
    SiteVisit,
    SubmissionMethod,
)
from kaptwatch.core.reconcile import reconcile

from conftest import make_record, make_snapshot


def select_all(*records, annotations=None) -> SelectionSet:
    """Selection with ``records`` in the given order (first = top)."""
    annotations = annotations or {}
    selection = SelectionSet()
    for record in reversed(records):
        selection.select(record, annotations.get(record.id))
    return selection


class TestRemovalRules:

    def test_deadline_change_keeps_entry_as_updated(self):
        old = make_record("123", deadline=datetime(2025, 6, 10, 17, 0), deadline_raw="2025-06-10 17:00:00")
        new = make_record("123", deadline=datetime(2025, 6, 12, 17, 0), deadline_raw="2025-06-12 17:00:00")

        result = reconcile(make_snapshot(old), make_snapshot(new), select_all(old))

        assert result.selection.check_order == ["123"]
        assert result.selection.entries["123"].record.deadline == datetime(2025, 6, 12, 17, 0)
        assert result.report.updated_in_selection == 1
        assert result.report.unchanged_in_selection == 0
        assert result.report.removed_from_selection == 0
        assert "deadline" in result.report.field_changes["123"]

    def test_changed_post_date_drops_entry(self):
        old = make_record("123")
        new = make_record(
            "123",
            post_date=datetime(2025, 6, 12, 9, 0),
            post_date_raw="2025-06-12 09:00:00",
        )

        result = reconcile(make_snapshot(old), make_snapshot(new), select_all(old))

        assert "123" not in result.selection
        assert result.selection.check_order == []
        assert result.report.removed_from_selection == 1
        assert result.report.removed_ids == ["123"]

    def test_vanished_notice_is_dropped(self):
        kept = make_record("100")
        gone = make_record("456")

        result = reconcile(
            make_snapshot(kept, gone),
            make_snapshot(kept),
            select_all(gone, kept),
        )

        assert result.selection.check_order == ["100"]
        assert "456" not in result.selection.entries
        assert result.report.removed_from_selection == 1
        assert result.report.total_bids == 1

    def test_undated_post_date_compares_raw_text(self):
        old = make_record("7", post_date=None, post_date_raw="미정")
        same = make_record("7", post_date=None, post_date_raw="미정", title="changed")
        changed = make_record("7", post_date=None, post_date_raw="추후공지")

        assert reconcile(make_snapshot(old), make_snapshot(same), select_all(old)).selection.check_order == ["7"]
        assert reconcile(make_snapshot(old), make_snapshot(changed), select_all(old)).selection.check_order == []


class TestSurvivors:

    def test_unchanged_entry_counts_as_unchanged(self):
        record = make_record("1")
        rescraped = make_record("1", scraped_at=datetime(2025, 6, 12, 9, 0))

        result = reconcile(make_snapshot(record), make_snapshot(rescraped), select_all(record))

        assert result.report.unchanged_in_selection == 1
        assert result.report.updated_in_selection == 0
        assert result.report.field_changes == {}
        assert result.selection.entries["1"].record.scraped_at == datetime(2025, 6, 12, 9, 0)

    def test_annotations_survive_record_update(self):
        old = make_record("1")
        new = make_record("1", status="마감임박")
        annotation = SelectionAnnotation(
            bid_time="14:00",
            submission_method=SubmissionMethod.IN_PERSON,
            site_visit=SiteVisit(enabled=True, date="2025-06-12", start_time="10:00", end_time="12:00"),
        )

        result = reconcile(
            make_snapshot(old),
            make_snapshot(new),
            select_all(old, annotations={"1": annotation}),
        )

        entry = result.selection.entries["1"]
        assert entry.annotation == annotation
        assert entry.record.status == "마감임박"

    def test_check_order_is_filtered_not_resorted(self):
        records = [make_record(str(n), post_date=datetime(2025, 6, n, 9, 0)) for n in range(1, 6)]
        selection = SelectionSet()
        for record in records:
            selection.select(record)
        # Most recently selected first: 5, 4, 3, 2, 1
        new_snapshot = make_snapshot(*[r for r in records if r.id != "3"])

        result = reconcile(make_snapshot(*records), new_snapshot, selection)

        assert result.selection.check_order == ["5", "4", "2", "1"]

    def test_input_selection_is_not_modified(self):
        old = make_record("1")
        selection = select_all(old)
        before = selection.to_dict()

        reconcile(make_snapshot(old), make_snapshot(), selection)

        assert selection.to_dict() == before

    def test_reconcile_is_idempotent(self):
        a, b, c = make_record("a"), make_record("b"), make_record("c")
        old_snapshot = make_snapshot(a, b, c)
        new_snapshot = make_snapshot(a, make_record("b", status="마감"), make_record("d"))
        selection = select_all(c, b, a)

        first = reconcile(old_snapshot, new_snapshot, selection)
        second = reconcile(new_snapshot, new_snapshot, first.selection)

        assert second.selection.to_dict() == first.selection.to_dict()
        assert second.report.removed_from_selection == 0
        assert second.report.newly_added == 0
        assert second.report.unchanged_in_selection == len(first.selection)

    def test_selected_notice_missing_from_old_snapshot_is_invalid(self):
        stored = make_record("9", status="진행중")
        selection = select_all(stored)
        new = make_record("9", status="마감")
        # "9" existed in an earlier catalog but the stored snapshot predates it
        old_snapshot = make_snapshot(make_record("8"))

        result = reconcile(old_snapshot, make_snapshot(make_record("8"), new), selection)

        assert result.report.invalid_selections_removed == 1
        assert "9" not in result.selection


class TestNewlyAdded:

    def test_new_ids_are_counted(self):
        existing = make_record("1")
        result = reconcile(
            make_snapshot(existing),
            make_snapshot(make_record("2"), existing, make_record("3")),
            SelectionSet(),
        )

        assert result.report.newly_added == 2
        assert result.report.newly_added_ids == ["2", "3"]

    def test_preselected_new_notice_is_invalid(self):
        existing = make_record("1")
        phantom = make_record("2")

        result = reconcile(
            make_snapshot(existing),
            make_snapshot(existing, phantom),
            select_all(phantom, existing),
        )

        assert result.selection.check_order == ["1"]
        assert result.report.invalid_selections_removed == 1
        assert result.report.updated_in_selection + result.report.unchanged_in_selection == 1

    def test_first_sync_invalidates_every_selected_notice(self):
        record = make_record("1")

        result = reconcile(make_snapshot(), make_snapshot(record), select_all(record))

        assert len(result.selection) == 0
        assert result.report.newly_added == 1
        assert result.report.invalid_selections_removed == 1


class TestIntegrityRepair:

    def test_dangling_order_id_is_skipped_with_warning(self):
        record = make_record("1")
        selection = SelectionSet(
            entries={"1": SelectionEntry(record=record)},
            check_order=["ghost", "1"],
        )

        result = reconcile(make_snapshot(record), make_snapshot(record), selection)

        assert result.selection.check_order == ["1"]
        assert [w.bid_id for w in result.integrity_warnings] == ["ghost"]
        assert any("ghost" in w for w in result.report.warnings)

    def test_duplicate_order_id_is_visited_once(self):
        record = make_record("1")
        selection = SelectionSet(
            entries={"1": SelectionEntry(record=record)},
            check_order=["1", "1"],
        )

        result = reconcile(make_snapshot(record), make_snapshot(record), selection)

        assert result.selection.check_order == ["1"]
        assert result.report.unchanged_in_selection == 1
        assert len(result.integrity_warnings) == 1

    def test_entry_missing_from_order_is_appended(self):
        a, b = make_record("a"), make_record("b")
        selection = SelectionSet(
            entries={"a": SelectionEntry(record=a), "b": SelectionEntry(record=b)},
            check_order=["b"],
        )

        result = reconcile(make_snapshot(a, b), make_snapshot(a, b), selection)

        assert result.selection.check_order == ["b", "a"]
        assert result.selection.is_consistent()
        assert [w.bid_id for w in result.integrity_warnings] == ["a"]

    def test_consistent_selection_produces_no_warnings(self):
        record = make_record("1")

        result = reconcile(make_snapshot(record), make_snapshot(record), select_all(record))

        assert result.integrity_warnings == []
        assert result.report.warnings == []
